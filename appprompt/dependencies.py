from __future__ import annotations

import asyncio
import json
import logging

import jwt
from fastapi import Depends, Header, HTTPException, Request
from pydantic import BaseModel, ValidationError

from appprompt import db as db_module
from appprompt.config import Settings
from appprompt.metrics import paywall_redirect_total
from appprompt.models import ErrorCode, User
from appprompt.security import decode_access_token
from appprompt.services import entitlement
from appprompt.services.entitlement import AccessDecision, Entitlement

settings = Settings()
logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    code: str
    message: str


class PaywallResponse(ErrorResponse):
    checkout_url: str


def raise_error(status_code: int, code: ErrorCode, message: str) -> None:
    err = ErrorResponse(code=code, message=message)
    raise HTTPException(status_code=status_code, detail=err.model_dump())


async def get_current_user_id(
    authorization: str | None = Header(None, alias="Authorization"),
) -> int:
    """Reject the request unless it carries a valid bearer token."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise_error(401, ErrorCode.UNAUTHORIZED, "Missing bearer token")
    token = authorization.split(" ", 1)[1].strip()
    try:
        return decode_access_token(token)
    except jwt.ExpiredSignatureError as exc:
        err = ErrorResponse(code=ErrorCode.UNAUTHORIZED, message="Expired token")
        raise HTTPException(status_code=401, detail=err.model_dump()) from exc
    except jwt.PyJWTError as exc:
        err = ErrorResponse(code=ErrorCode.UNAUTHORIZED, message="Invalid token")
        raise HTTPException(status_code=401, detail=err.model_dump()) from exc


def ensure_same_user(auth_user: int, user_id: int) -> None:
    if auth_user != user_id:
        raise_error(401, ErrorCode.UNAUTHORIZED, "User ID mismatch")


def load_entitlement_sync(user_id: int) -> Entitlement | None:
    """Read the user row afresh and evaluate it; ``None`` if the user is gone."""
    with db_module.SessionLocal() as db:
        user = db.get(User, user_id)
        if user is None:
            return None
        return entitlement.evaluate(user, entitlement.utcnow())


async def require_entitlement(user_id: int = Depends(get_current_user_id)) -> int:
    """Let the request through only while the trial or a subscription is running."""
    current = await asyncio.to_thread(load_entitlement_sync, user_id)
    decision = entitlement.decide(current)
    if decision is AccessDecision.REJECT:
        raise_error(401, ErrorCode.UNAUTHORIZED, "Unknown user")
    if decision is AccessDecision.CHECKOUT:
        paywall_redirect_total.inc()
        logger.info("user %s sent to checkout", user_id)
        err = PaywallResponse(
            code=ErrorCode.SUBSCRIPTION_REQUIRED,
            message="Trial expired, subscription required",
            checkout_url=settings.checkout_url,
        )
        raise HTTPException(status_code=402, detail=err.model_dump())
    return user_id


async def parse_body(request: Request, model: type[BaseModel], message: str):
    """Decode a JSON body into ``model``; malformed input is a 400."""
    try:
        payload = await request.json()
    except json.JSONDecodeError as exc:
        err = ErrorResponse(code=ErrorCode.BAD_REQUEST, message="Invalid JSON payload")
        raise HTTPException(status_code=400, detail=err.model_dump()) from exc
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        err = ErrorResponse(code=ErrorCode.BAD_REQUEST, message=message)
        raise HTTPException(status_code=400, detail=err.model_dump()) from exc
