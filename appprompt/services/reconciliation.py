"""Turn a provider-confirmed Pix payment into subscription time.

Each payment intent is reconciled at most once: the ``reconciled_at`` marker
is claimed with a conditional UPDATE, and only the transaction that claims it
extends the owner's subscription. Repeated or concurrent status polls for the
same payment therefore never add more than one period.
"""
from __future__ import annotations

import calendar
import logging
from datetime import datetime
from typing import NamedTuple

from sqlalchemy import update

from appprompt import db as db_module
from appprompt.config import Settings
from appprompt.models import PaymentIntent, User
from appprompt.services.entitlement import as_utc
from appprompt.services.pixgo import COMPLETED

logger = logging.getLogger(__name__)

EXTENDED = "extended"
ALREADY_RECONCILED = "already_reconciled"
NOT_COMPLETED = "not_completed"
UNKNOWN_PAYMENT = "unknown_payment"


class ReconcileResult(NamedTuple):
    outcome: str
    user_id: int | None = None
    subscription_ends_at: datetime | None = None

    @property
    def extended(self) -> bool:
        return self.outcome == EXTENDED


def add_months(value: datetime, months: int) -> datetime:
    """Calendar month arithmetic, clamped to the last day of the target month."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def next_subscription_end(
    current_end: datetime | None,
    now: datetime,
    months: int,
    stacking: bool = False,
) -> datetime:
    """Expiry after one more paid period starting at ``now``.

    With ``stacking`` an early renewal keeps the unused time of the running
    subscription.
    """
    base = as_utc(now)
    current_end = as_utc(current_end)
    if stacking and current_end is not None and current_end > base:
        base = current_end
    return add_months(base, months)


def reconcile_payment_sync(
    payment_id: str, provider_status: str, now: datetime
) -> ReconcileResult:
    """Apply a provider status for ``payment_id`` (synchronous, for asyncio.to_thread)."""
    if provider_status != COMPLETED:
        logger.debug("payment %s still %r", payment_id, provider_status)
        return ReconcileResult(NOT_COMPLETED)

    settings = Settings()
    now = as_utc(now)
    with db_module.SessionLocal() as db:
        claimed = db.execute(
            update(PaymentIntent)
            .where(
                PaymentIntent.provider_payment_id == payment_id,
                PaymentIntent.reconciled_at.is_(None),
            )
            .values(reconciled_at=now, status=COMPLETED, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            db.rollback()
            intent = (
                db.query(PaymentIntent)
                .filter_by(provider_payment_id=payment_id)
                .first()
            )
            if intent is None:
                logger.warning("completed payment %s is not in the ledger", payment_id)
                return ReconcileResult(UNKNOWN_PAYMENT)
            return ReconcileResult(ALREADY_RECONCILED, user_id=intent.user_id)

        intent = (
            db.query(PaymentIntent).filter_by(provider_payment_id=payment_id).one()
        )
        user = (
            db.query(User).filter_by(id=intent.user_id).with_for_update().one_or_none()
        )
        if user is None:
            db.rollback()
            logger.warning("payment %s belongs to missing user %s", payment_id, intent.user_id)
            return ReconcileResult(UNKNOWN_PAYMENT)

        new_end = next_subscription_end(
            user.subscription_ends_at,
            now,
            settings.subscription_months,
            stacking=settings.subscription_stacking,
        )
        user.subscription_ends_at = new_end
        db.add(user)
        db.commit()

        logger.info(
            "payment %s reconciled: user %s subscribed until %s",
            payment_id,
            user.id,
            new_end.isoformat(),
            extra={"user_id": user.id, "payment_id": payment_id, "outcome": EXTENDED},
        )
        return ReconcileResult(EXTENDED, user_id=user.id, subscription_ends_at=new_end)


__all__ = [
    "EXTENDED",
    "ALREADY_RECONCILED",
    "NOT_COMPLETED",
    "UNKNOWN_PAYMENT",
    "ReconcileResult",
    "add_months",
    "next_subscription_end",
    "reconcile_payment_sync",
]
