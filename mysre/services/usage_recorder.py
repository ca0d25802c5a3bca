"""Usage recorder — the entry point feature code uses to bill AI tokens."""

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from mysre.core import cache
from mysre.core.config import get_settings
from mysre.services.ledger import UsageLedger, UsageResult

logger = logging.getLogger(__name__)


@dataclass
class LowBalanceWarning:
    remaining_balance: int
    threshold: int
    message: str


@dataclass
class RecordOutcome:
    result: UsageResult
    warning: LowBalanceWarning | None = None


class UsageRecorder:
    """Debits through a ledger and flags balances under the warning threshold.

    Ledger errors propagate unchanged. The low-balance warning is advisory:
    the debit has already committed when it is produced.
    """

    def __init__(self, ledger: UsageLedger, threshold: int | None = None) -> None:
        self._ledger = ledger
        self._threshold = threshold if threshold is not None else get_settings().low_balance_threshold

    async def record(
        self,
        user_id: uuid.UUID,
        action: str,
        tokens_used: int,
        context: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> RecordOutcome:
        result = await self._ledger.record_usage(user_id, action, tokens_used, context, metadata)
        cache.invalidate_prefix(("billing",))

        warning = None
        if result.remaining_balance < self._threshold:
            warning = LowBalanceWarning(
                remaining_balance=result.remaining_balance,
                threshold=self._threshold,
                message=(
                    f"Only {result.remaining_balance} tokens remaining. "
                    "Consider upgrading your plan."
                ),
            )
            logger.warning("User %s is low on tokens: %d left", user_id, result.remaining_balance)
        return RecordOutcome(result=result, warning=warning)
