"""Access tier computation.

A user has access while either the signup trial or a paid subscription is
running. Both windows are open intervals: at the exact expiry instant access
is already gone.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, NamedTuple


class Entitlement(NamedTuple):
    is_trial_active: bool
    is_subscription_active: bool

    @property
    def has_access(self) -> bool:
        return self.is_trial_active or self.is_subscription_active


class AccessDecision(str, Enum):
    ALLOW = "allow"
    CHECKOUT = "checkout"
    REJECT = "reject"


def utcnow() -> datetime:
    """Current time; the only clock used for entitlement decisions."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | str | None) -> datetime | None:
    """Normalize timestamps read back from the database to aware UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _active(ends_at: datetime | str | None, now: datetime) -> bool:
    ends_at = as_utc(ends_at)
    return ends_at is not None and ends_at > as_utc(now)


def evaluate(user: Any, now: datetime) -> Entitlement:
    """Return the entitlement of ``user`` at ``now``. Never touches the database."""
    return Entitlement(
        is_trial_active=_active(user.trial_ends_at, now),
        is_subscription_active=_active(user.subscription_ends_at, now),
    )


def decide(entitlement: Entitlement | None) -> AccessDecision:
    """Map an entitlement to a gate decision; ``None`` means unauthenticated."""
    if entitlement is None:
        return AccessDecision.REJECT
    if entitlement.has_access:
        return AccessDecision.ALLOW
    return AccessDecision.CHECKOUT


__all__ = [
    "Entitlement",
    "AccessDecision",
    "utcnow",
    "as_utc",
    "evaluate",
    "decide",
]
