from fastapi import APIRouter, HTTPException, Request

from appprompt.dependencies import ErrorResponse
from appprompt.models import ErrorCode

from . import auth, community, payments, prompts, users

router = APIRouter(prefix="/api")
router.include_router(auth.router)
# payment creation and the status poll that reconciles subscriptions
router.include_router(payments.router)
router.include_router(prompts.router)
router.include_router(users.router)
router.include_router(community.router)


# Must stay last: anything else under /api gets a JSON 404 instead of the UI
@router.api_route(
    "/{path:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    include_in_schema=False,
)
async def api_not_found(path: str, request: Request):
    err = ErrorResponse(
        code=ErrorCode.NOT_FOUND,
        message=f"Route {request.method} {request.url.path} not found",
    )
    raise HTTPException(status_code=404, detail=err.model_dump())
