"""PixGo payment gateway client.

Only two calls are needed: create a Pix charge for the monthly subscription
and read back its status. Nothing is persisted here.
"""
from __future__ import annotations

import logging
from typing import Any, NamedTuple

import httpx

from appprompt.config import Settings

logger = logging.getLogger(__name__)

COMPLETED = "completed"
GENERIC_CREATE_ERROR = "Erro ao criar pagamento Pix."


class PixGatewayError(Exception):
    """The provider answered but refused the request."""

    def __init__(self, message: str, payload: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}


class GatewayUnavailable(PixGatewayError):
    """The provider could not be reached or sent an unreadable answer."""


class PixCharge(NamedTuple):
    payment_id: str
    qr_image_url: str | None
    qr_code_text: str | None
    raw: dict[str, Any]


class PixStatus(NamedTuple):
    status: str
    raw: dict[str, Any]

    @property
    def is_completed(self) -> bool:
        return self.status == COMPLETED


def _headers(settings: Settings) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "X-API-Key": settings.pixgo_api_key,
    }


def _decode(resp: httpx.Response) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError as exc:
        logger.error("PixGo response parsing failed: %s", exc)
        raise GatewayUnavailable("Invalid response from payment provider") from exc
    if not isinstance(data, dict):
        logger.error("PixGo returned a non-object payload")
        raise GatewayUnavailable("Invalid response from payment provider")
    return data


async def create_payment_intent(
    user_id: int, name: str, email: str, tax_id: str
) -> PixCharge:
    """Create a Pix charge for one month of subscription.

    ``tax_id`` (CPF) is forwarded as-is; the provider validates it.
    """
    settings = Settings()
    payload = {
        "amount": settings.subscription_price,
        "description": settings.subscription_description,
        "customer_name": name,
        "customer_email": email,
        "customer_cpf": tax_id,
        "external_id": f"user_{user_id}",
    }
    url = f"{settings.pixgo_api_url.rstrip('/')}/payment/create"
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                url,
                json=payload,
                headers=_headers(settings),
                timeout=settings.pixgo_timeout_s,
            )
    except httpx.HTTPError as exc:
        logger.error("PixGo create request failed: %s", exc)
        raise GatewayUnavailable("Payment provider unavailable") from exc

    result = _decode(resp)
    data = result.get("data")
    if not result.get("success") or not isinstance(data, dict):
        message = result.get("message") or GENERIC_CREATE_ERROR
        logger.warning("PixGo refused charge for user %s: %s", user_id, message)
        raise PixGatewayError(message, result)

    payment_id = data.get("payment_id")
    if not payment_id:
        logger.error("PixGo charge for user %s has no payment_id", user_id)
        raise GatewayUnavailable("Invalid response from payment provider")

    return PixCharge(
        payment_id=str(payment_id),
        qr_image_url=data.get("qr_image_url"),
        qr_code_text=data.get("qr_code"),
        raw=data,
    )


async def get_payment_status(payment_id: str) -> PixStatus:
    """Return the provider status of ``payment_id`` together with its envelope."""
    settings = Settings()
    url = f"{settings.pixgo_api_url.rstrip('/')}/payment/{payment_id}/status"
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.get(
                url, headers=_headers(settings), timeout=settings.pixgo_timeout_s
            )
    except httpx.HTTPError as exc:
        logger.error("PixGo status request failed: %s", exc)
        raise GatewayUnavailable("Payment provider unavailable") from exc

    result = _decode(resp)
    data = result.get("data") if result.get("success") else None
    status = ""
    if isinstance(data, dict):
        status = str(data.get("status") or "")
    return PixStatus(status=status, raw=result)


__all__ = [
    "COMPLETED",
    "PixGatewayError",
    "GatewayUnavailable",
    "PixCharge",
    "PixStatus",
    "create_payment_intent",
    "get_payment_status",
]
