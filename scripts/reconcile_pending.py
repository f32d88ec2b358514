"""Re-check Pix payments that are still waiting for confirmation.

The web client stops polling when the checkout page is closed; a payment
completed after that is picked up here.

Usage:
  python scripts/reconcile_pending.py
  python scripts/reconcile_pending.py --max-age-hours 48 --limit 100
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import datetime, timedelta, timezone

from appprompt.config import Settings
from appprompt.db import SessionLocal, init_db
from appprompt.logger import setup_logging
from appprompt.models import PaymentIntent
from appprompt.services.pixgo import GatewayUnavailable, get_payment_status
from appprompt.services.reconciliation import reconcile_payment_sync

logger = logging.getLogger("reconcile_pending")


def _pending_ids(max_age_hours: int, limit: int) -> list[str]:
    cutoff = datetime.now(timezone.utc) - timedelta(hours=max_age_hours)
    with SessionLocal() as session:
        rows = (
            session.query(PaymentIntent.provider_payment_id)
            .filter(
                PaymentIntent.reconciled_at.is_(None),
                PaymentIntent.created_at >= cutoff,
            )
            .order_by(PaymentIntent.created_at.asc())
            .limit(limit)
            .all()
        )
    return [row[0] for row in rows]


async def run(max_age_hours: int = 24, limit: int = 200) -> dict[str, int]:
    """Poll the provider once per pending intent; returns outcome counts."""
    counts: dict[str, int] = {}
    for payment_id in await asyncio.to_thread(_pending_ids, max_age_hours, limit):
        try:
            status = await get_payment_status(payment_id)
        except GatewayUnavailable:
            counts["unavailable"] = counts.get("unavailable", 0) + 1
            continue
        result = await asyncio.to_thread(
            reconcile_payment_sync,
            payment_id,
            status.status,
            datetime.now(timezone.utc),
        )
        counts[result.outcome] = counts.get(result.outcome, 0) + 1
    return counts


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--max-age-hours", type=int, default=24)
    parser.add_argument("--limit", type=int, default=200)
    args = parser.parse_args()

    settings = Settings()
    setup_logging(settings.log_level)
    init_db(settings)

    counts = asyncio.run(run(args.max_age_hours, args.limit))
    logger.info("pending payments checked: %s", counts)


if __name__ == "__main__":
    main()
