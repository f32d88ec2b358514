import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from appprompt import db as db_module
from appprompt.config import Settings
from appprompt.dependencies import (
    ErrorResponse,
    ensure_same_user,
    get_current_user_id,
    parse_body,
    raise_error,
)
from appprompt.metrics import (
    payment_created_total,
    payment_fail_total,
    payment_reconciled_total,
)
from appprompt.models import ErrorCode, PaymentIntent, User
from appprompt.services import (
    GatewayUnavailable,
    PixGatewayError,
    create_payment_intent,
    get_payment_status,
)
from appprompt.services import entitlement
from appprompt.services.reconciliation import reconcile_payment_sync

settings = Settings()
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payment", tags=["payment"])


class PaymentCreateRequest(BaseModel):
    user_id: int = Field(validation_alias=AliasChoices("userId", "user_id"))
    name: str | None = None
    email: str | None = None
    tax_id: str | None = Field(
        None, validation_alias=AliasChoices("taxId", "tax_id", "cpf")
    )


class PaymentCreateResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    payment_id: str
    qr_image_url: str | None = None
    qr_code_text: str | None = None
    amount: float
    expires_at: str | None = None


@router.post(
    "/create",
    response_model=PaymentCreateResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def create_payment(request: Request, auth_user: int = Depends(get_current_user_id)):
    body = await parse_body(request, PaymentCreateRequest, "Invalid payment data")
    ensure_same_user(auth_user, body.user_id)

    tax_id = (body.tax_id or "").strip()
    if not tax_id:
        raise_error(400, ErrorCode.TAX_ID_REQUIRED, "CPF is required for Pix payments")

    def _load_user() -> User | None:
        with db_module.SessionLocal() as db:
            return db.get(User, body.user_id)

    user = await asyncio.to_thread(_load_user)
    if user is None:
        raise_error(404, ErrorCode.NOT_FOUND, "User not found")

    try:
        charge = await create_payment_intent(
            user.id, body.name or user.name, body.email or user.email, tax_id
        )
    except GatewayUnavailable as exc:
        payment_fail_total.labels(reason="unavailable").inc()
        err = ErrorResponse(
            code=ErrorCode.GATEWAY_UNAVAILABLE,
            message="Payment provider unavailable, try again",
        )
        raise HTTPException(status_code=500, detail=err.model_dump()) from exc
    except PixGatewayError as exc:
        payment_fail_total.labels(reason="refused").inc()
        err = ErrorResponse(code=ErrorCode.PAYMENT_FAILED, message=exc.message)
        raise HTTPException(status_code=400, detail=err.model_dump()) from exc

    amount_cents = round(settings.subscription_price * 100)

    def _db_call() -> None:
        with db_module.SessionLocal() as db:
            db.add(
                PaymentIntent(
                    user_id=user.id,
                    provider_payment_id=charge.payment_id,
                    amount=amount_cents,
                    currency="BRL",
                    status="pending",
                )
            )
            row = db.get(User, user.id)
            if row is not None:
                row.pix_payment_id = charge.payment_id
                db.add(row)
            db.commit()

    await asyncio.to_thread(_db_call)
    payment_created_total.inc()
    logger.info(
        "payment %s created for user %s",
        charge.payment_id,
        user.id,
        extra={"user_id": user.id, "payment_id": charge.payment_id},
    )

    expires_at = charge.raw.get("expires_at")
    return PaymentCreateResponse(
        payment_id=charge.payment_id,
        qr_image_url=charge.qr_image_url,
        qr_code_text=charge.qr_code_text,
        amount=settings.subscription_price,
        expires_at=str(expires_at) if expires_at is not None else None,
    )


@router.get(
    "/status/{payment_id}",
    responses={500: {"model": ErrorResponse}},
)
async def payment_status(payment_id: str):
    """Relay the provider status; a ``completed`` payment is reconciled on the way."""
    try:
        status = await get_payment_status(payment_id)
    except PixGatewayError as exc:
        err = ErrorResponse(
            code=ErrorCode.GATEWAY_UNAVAILABLE,
            message="Could not fetch payment status",
        )
        raise HTTPException(status_code=500, detail=err.model_dump()) from exc

    result = await asyncio.to_thread(
        reconcile_payment_sync, payment_id, status.status, entitlement.utcnow()
    )
    if result.extended:
        payment_reconciled_total.inc()
    return status.raw
