from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from appprompt.models.base import Base


class PaymentIntent(Base):
    """One Pix charge requested from the provider on behalf of a user."""

    __tablename__ = "payment_intents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    provider_payment_id = Column(String, nullable=False, unique=True)
    amount = Column(Integer, nullable=False)  # centavos
    currency = Column(String, nullable=False, default="BRL")
    status = Column(String, nullable=False, default="pending")
    # set once, in the transaction that extends the subscription
    reconciled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


__all__ = ["PaymentIntent"]
