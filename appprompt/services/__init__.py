from .pixgo import (
    GatewayUnavailable,
    PixCharge,
    PixGatewayError,
    PixStatus,
    create_payment_intent,
    get_payment_status,
)

__all__ = [
    "GatewayUnavailable",
    "PixCharge",
    "PixGatewayError",
    "PixStatus",
    "create_payment_intent",
    "get_payment_status",
]
