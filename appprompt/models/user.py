from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from appprompt.models.base import Base


class User(Base):
    """Account holder.

    ``is_subscriber`` is intentionally absent: it is derived from
    ``subscription_ends_at`` on every read.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    trial_ends_at = Column(DateTime(timezone=True))
    subscription_ends_at = Column(DateTime(timezone=True))
    # latest payment intent created for this user
    pix_payment_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


__all__ = ["User"]
