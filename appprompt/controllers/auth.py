import asyncio
import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError

from appprompt import db as db_module
from appprompt.config import Settings
from appprompt.dependencies import (
    ErrorResponse,
    get_current_user_id,
    parse_body,
    raise_error,
)
from appprompt.models import ErrorCode, User
from appprompt.security import (
    create_access_token,
    dummy_verify,
    hash_password,
    verify_password,
)
from appprompt.services import entitlement

settings = Settings()
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class SignupRequest(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)


class LoginRequest(BaseModel):
    email: str
    password: str


class SignupResponse(BaseModel):
    id: int
    name: str
    email: str
    trial_ends_at: datetime
    access_token: str


class UserStatusResponse(BaseModel):
    id: int
    name: str
    email: str
    is_subscriber: bool
    is_trial_active: bool
    trial_ends_at: datetime | None = None
    subscription_ends_at: datetime | None = None


class LoginResponse(UserStatusResponse):
    access_token: str


class AccessResponse(BaseModel):
    decision: entitlement.AccessDecision
    is_trial_active: bool
    is_subscriber: bool
    checkout_url: str | None = None


def normalize_email(email: str) -> str:
    return email.strip().lower()


def user_status(user: User, now: datetime) -> dict:
    """Public view of ``user`` with entitlement flags computed at ``now``."""
    current = entitlement.evaluate(user, now)
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "is_subscriber": current.is_subscription_active,
        "is_trial_active": current.is_trial_active,
        "trial_ends_at": entitlement.as_utc(user.trial_ends_at),
        "subscription_ends_at": entitlement.as_utc(user.subscription_ends_at),
    }


@router.post(
    "/signup",
    response_model=SignupResponse,
    responses={400: {"model": ErrorResponse}},
)
async def signup(request: Request):
    body = await parse_body(request, SignupRequest, "Invalid signup data")
    email = normalize_email(body.email)
    now = entitlement.utcnow()
    trial_ends_at = now + timedelta(hours=settings.trial_hours)
    password_hash = await asyncio.to_thread(hash_password, body.password)

    def _db_call() -> User:
        with db_module.SessionLocal() as db:
            if db.query(User).filter_by(email=email).first():
                raise_error(400, ErrorCode.EMAIL_TAKEN, "Email already registered")
            user = User(
                name=body.name.strip(),
                email=email,
                password_hash=password_hash,
                trial_ends_at=trial_ends_at,
            )
            db.add(user)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                err = ErrorResponse(
                    code=ErrorCode.EMAIL_TAKEN, message="Email already registered"
                )
                raise HTTPException(status_code=400, detail=err.model_dump()) from exc
            db.refresh(user)
            return user

    user = await asyncio.to_thread(_db_call)
    logger.info("user %s signed up, trial until %s", user.id, trial_ends_at.isoformat())
    return SignupResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        trial_ends_at=trial_ends_at,
        access_token=create_access_token(user.id),
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={401: {"model": ErrorResponse}},
)
async def login(request: Request):
    body = await parse_body(request, LoginRequest, "Invalid login data")
    email = normalize_email(body.email)

    def _db_call() -> User | None:
        with db_module.SessionLocal() as db:
            user = db.query(User).filter_by(email=email).first()
            if user is None:
                dummy_verify()
                return None
            if not verify_password(body.password, user.password_hash):
                return None
            return user

    user = await asyncio.to_thread(_db_call)
    if user is None:
        raise_error(401, ErrorCode.INVALID_CREDENTIALS, "Invalid credentials")
    return LoginResponse(
        **user_status(user, entitlement.utcnow()),
        access_token=create_access_token(user.id),
    )


@router.get(
    "/status/{user_id}",
    response_model=UserStatusResponse,
    responses={404: {"model": ErrorResponse}},
)
async def status(user_id: int):
    def _db_call() -> User | None:
        with db_module.SessionLocal() as db:
            return db.get(User, user_id)

    user = await asyncio.to_thread(_db_call)
    if user is None:
        raise_error(404, ErrorCode.NOT_FOUND, "User not found")
    return UserStatusResponse(**user_status(user, entitlement.utcnow()))


@router.get(
    "/access",
    response_model=AccessResponse,
    responses={401: {"model": ErrorResponse}},
)
async def access(user_id: int = Depends(get_current_user_id)):
    def _db_call() -> User | None:
        with db_module.SessionLocal() as db:
            return db.get(User, user_id)

    user = await asyncio.to_thread(_db_call)
    current = entitlement.evaluate(user, entitlement.utcnow()) if user else None
    decision = entitlement.decide(current)
    if decision is entitlement.AccessDecision.REJECT:
        raise_error(401, ErrorCode.UNAUTHORIZED, "Unknown user")
    return AccessResponse(
        decision=decision,
        is_trial_active=current.is_trial_active,
        is_subscriber=current.is_subscription_active,
        checkout_url=(
            settings.checkout_url
            if decision is entitlement.AccessDecision.CHECKOUT
            else None
        ),
    )
