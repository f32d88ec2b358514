import asyncio
from datetime import datetime

from fastapi import APIRouter, Depends, Request
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from appprompt import db as db_module
from appprompt.dependencies import (
    ErrorResponse,
    ensure_same_user,
    get_current_user_id,
    parse_body,
    raise_error,
    require_entitlement,
)
from appprompt.models import ErrorCode, Prompt
from appprompt.services.entitlement import as_utc

router = APIRouter(prefix="/prompts", tags=["prompts"])


class PromptCreateRequest(BaseModel):
    user_id: int = Field(validation_alias=AliasChoices("userId", "user_id"))
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    ia_type: str | None = Field(None, validation_alias=AliasChoices("iaType", "ia_type"))
    category: str | None = None
    level: str | None = None


class FavoriteRequest(BaseModel):
    is_favorite: bool = Field(validation_alias=AliasChoices("isFavorite", "is_favorite"))


class PromptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    title: str
    content: str
    ia_type: str | None = None
    category: str | None = None
    level: str | None = None
    is_favorite: bool
    created_at: datetime


@router.get(
    "/{user_id}",
    response_model=list[PromptOut],
    responses={401: {"model": ErrorResponse}},
)
async def list_prompts(user_id: int, auth_user: int = Depends(get_current_user_id)):
    ensure_same_user(auth_user, user_id)

    def _db_call() -> list[PromptOut]:
        with db_module.SessionLocal() as db:
            rows = (
                db.query(Prompt)
                .filter_by(user_id=user_id)
                .order_by(Prompt.created_at.desc(), Prompt.id.desc())
                .all()
            )
            items = [PromptOut.model_validate(row) for row in rows]
        for item in items:
            item.created_at = as_utc(item.created_at)
        return items

    return await asyncio.to_thread(_db_call)


@router.post(
    "",
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        402: {"model": ErrorResponse},
    },
)
async def create_prompt(request: Request, auth_user: int = Depends(require_entitlement)):
    body = await parse_body(request, PromptCreateRequest, "Invalid prompt data")
    ensure_same_user(auth_user, body.user_id)

    def _db_call() -> int:
        with db_module.SessionLocal() as db:
            prompt = Prompt(
                user_id=body.user_id,
                title=body.title,
                content=body.content,
                ia_type=body.ia_type,
                category=body.category,
                level=body.level,
            )
            db.add(prompt)
            db.commit()
            return prompt.id

    prompt_id = await asyncio.to_thread(_db_call)
    return {"id": prompt_id}


@router.delete("/{prompt_id}", responses={401: {"model": ErrorResponse}})
async def delete_prompt(prompt_id: int, auth_user: int = Depends(get_current_user_id)):
    # Deleting an unknown id succeeds without doing anything
    def _db_call() -> None:
        with db_module.SessionLocal() as db:
            db.query(Prompt).filter_by(id=prompt_id, user_id=auth_user).delete()
            db.commit()

    await asyncio.to_thread(_db_call)
    return {"success": True}


@router.patch(
    "/{prompt_id}/favorite",
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
async def set_favorite(
    prompt_id: int, request: Request, auth_user: int = Depends(get_current_user_id)
):
    body = await parse_body(request, FavoriteRequest, "Invalid favorite flag")

    def _db_call() -> int:
        with db_module.SessionLocal() as db:
            updated = (
                db.query(Prompt)
                .filter_by(id=prompt_id, user_id=auth_user)
                .update({Prompt.is_favorite: body.is_favorite})
            )
            db.commit()
            return updated

    if not await asyncio.to_thread(_db_call):
        raise_error(404, ErrorCode.NOT_FOUND, "Prompt not found")
    return {"success": True}
