import asyncio
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Request
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy import update

from appprompt import db as db_module
from appprompt.dependencies import (
    ErrorResponse,
    ensure_same_user,
    parse_body,
    raise_error,
    require_entitlement,
)
from appprompt.models import CommunityPost, ErrorCode, User
from appprompt.services.entitlement import as_utc

router = APIRouter(prefix="/community", tags=["community"])


class PostCreateRequest(BaseModel):
    user_id: int = Field(validation_alias=AliasChoices("userId", "user_id"))
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    type: Literal["prompt", "code"] = "prompt"


class PostOut(BaseModel):
    id: int
    user_id: int
    title: str
    content: str
    type: str
    likes: int
    created_at: datetime
    author_name: str


@router.get("", response_model=list[PostOut])
async def list_posts():
    def _db_call() -> list[PostOut]:
        with db_module.SessionLocal() as db:
            rows = (
                db.query(CommunityPost, User.name)
                .join(User, CommunityPost.user_id == User.id)
                .order_by(CommunityPost.created_at.desc(), CommunityPost.id.desc())
                .all()
            )
            return [
                PostOut(
                    id=post.id,
                    user_id=post.user_id,
                    title=post.title,
                    content=post.content,
                    type=post.type,
                    likes=post.likes,
                    created_at=as_utc(post.created_at),
                    author_name=author,
                )
                for post, author in rows
            ]

    return await asyncio.to_thread(_db_call)


@router.post(
    "",
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        402: {"model": ErrorResponse},
    },
)
async def create_post(request: Request, auth_user: int = Depends(require_entitlement)):
    body = await parse_body(request, PostCreateRequest, "Invalid post data")
    ensure_same_user(auth_user, body.user_id)

    def _db_call() -> int:
        with db_module.SessionLocal() as db:
            post = CommunityPost(
                user_id=body.user_id,
                title=body.title,
                content=body.content,
                type=body.type,
            )
            db.add(post)
            db.commit()
            return post.id

    return {"id": await asyncio.to_thread(_db_call)}


@router.post("/like/{post_id}", responses={404: {"model": ErrorResponse}})
async def like_post(post_id: int):
    def _db_call() -> int:
        with db_module.SessionLocal() as db:
            result = db.execute(
                update(CommunityPost)
                .where(CommunityPost.id == post_id)
                .values(likes=CommunityPost.likes + 1)
            )
            db.commit()
            return result.rowcount

    if not await asyncio.to_thread(_db_call):
        raise_error(404, ErrorCode.NOT_FOUND, "Post not found")
    return {"success": True}
