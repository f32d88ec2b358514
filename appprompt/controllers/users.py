import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import IntegrityError

from appprompt import db as db_module
from appprompt.controllers.auth import normalize_email
from appprompt.dependencies import (
    ErrorResponse,
    ensure_same_user,
    get_current_user_id,
    parse_body,
    raise_error,
)
from appprompt.models import ErrorCode, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


class ProfileUpdateRequest(BaseModel):
    """Editable profile fields. Entitlement fields are never accepted here."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    email: str = Field(min_length=3)


@router.patch(
    "/{user_id}",
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
async def update_profile(
    user_id: int, request: Request, auth_user: int = Depends(get_current_user_id)
):
    ensure_same_user(auth_user, user_id)
    body = await parse_body(request, ProfileUpdateRequest, "Invalid profile data")
    email = normalize_email(body.email)

    def _db_call() -> None:
        with db_module.SessionLocal() as db:
            user = db.get(User, user_id)
            if user is None:
                raise_error(404, ErrorCode.NOT_FOUND, "User not found")
            taken = (
                db.query(User.id)
                .filter(User.email == email, User.id != user_id)
                .first()
            )
            if taken:
                raise_error(400, ErrorCode.EMAIL_TAKEN, "Email already registered")
            user.name = body.name.strip()
            user.email = email
            db.add(user)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                err = ErrorResponse(
                    code=ErrorCode.EMAIL_TAKEN, message="Email already registered"
                )
                raise HTTPException(status_code=400, detail=err.model_dump()) from exc

    await asyncio.to_thread(_db_call)
    logger.info("user %s updated profile", user_id)
    return {"success": True}
