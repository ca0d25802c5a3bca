"""Monthly job — close out last month's billing and refill token balances."""

from __future__ import annotations

import logging

from sqlmodel import select

from mysre.core import cache
from mysre.core.database import async_session_factory
from mysre.core.exceptions import MySREError
from mysre.models.base import utcnow
from mysre.models.user import User
from mysre.services.billing_analytics import BillingAggregator
from mysre.services.ledger import TokenLedger, previous_month

logger = logging.getLogger(__name__)


async def run_billing_cycle(ctx: dict) -> dict:
    """Materialise billing records for the closed month, then reset every balance.

    Records are written first so a failed reset never loses the month's
    totals. Tests inject a session factory via ``ctx["session_factory"]``.
    """
    factory = ctx.get("session_factory", async_session_factory)
    period = previous_month(utcnow().date())
    reset = failed = 0

    async with factory() as session:
        records = await BillingAggregator(session).materialize_billing_records(period)

        user_ids = list((await session.execute(select(User.id))).scalars().all())
        ledger = TokenLedger(session)
        for user_id in user_ids:
            try:
                await ledger.reset_monthly_balance(user_id)
                reset += 1
            except MySREError:
                failed += 1
                logger.exception("Balance reset failed for user %s", user_id)

    cache.invalidate_prefix(("billing",))
    logger.info(
        "Billing cycle %s: %d records, %d balances reset, %d failed",
        f"{period:%Y-%m}", len(records), reset, failed,
    )
    return {"period": f"{period:%Y-%m}", "records": len(records), "reset": reset, "failed": failed}
