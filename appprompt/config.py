from __future__ import annotations

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings

DEFAULT_PIXGO_URL = "https://pixgo.org/api/v1"


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    jwt_secret: str = Field("test-jwt-secret", alias="JWT_SECRET")
    jwt_ttl_h: int = Field(24 * 7, alias="JWT_TTL_H")

    database_url: str = Field("sqlite:////tmp/appprompt_test.db", alias="DATABASE_URL")
    db_create_all: bool = Field(False, alias="DB_CREATE_ALL")

    pixgo_api_url: str = Field(DEFAULT_PIXGO_URL, alias="PIXGO_API_URL")
    pixgo_api_key: str = Field("test-pixgo-key", alias="PIXGO_API_KEY")
    pixgo_timeout_s: float = Field(10.0, alias="PIXGO_TIMEOUT_S")

    # Single subscription product, no plan catalog
    subscription_price: float = Field(19.90, alias="SUBSCRIPTION_PRICE")
    subscription_description: str = Field(
        "Assinatura Mensal AppPrompt", alias="SUBSCRIPTION_DESCRIPTION"
    )
    subscription_months: int = Field(1, alias="SUBSCRIPTION_MONTHS")
    subscription_stacking: bool = Field(
        False,
        alias="SUBSCRIPTION_STACKING",
        description="Extend from the current expiry when renewing early",
    )
    trial_hours: int = Field(24, alias="TRIAL_HOURS")
    checkout_url: str = Field("/checkout", alias="CHECKOUT_URL")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    model_config = ConfigDict(
        extra="ignore",
        env_file=".env",
        case_sensitive=False,
    )
