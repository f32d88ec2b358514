from enum import Enum


class ErrorCode(str, Enum):
    """Machine-readable error codes returned in ``detail.code``."""

    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    NOT_FOUND = "NOT_FOUND"
    EMAIL_TAKEN = "EMAIL_TAKEN"
    TAX_ID_REQUIRED = "TAX_ID_REQUIRED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    GATEWAY_UNAVAILABLE = "GATEWAY_UNAVAILABLE"
    SUBSCRIPTION_REQUIRED = "SUBSCRIPTION_REQUIRED"


__all__ = ["ErrorCode"]
