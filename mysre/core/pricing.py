"""Centralized tier pricing configuration.

Single source of truth for per-token costs and monthly quotas.
Used by the token ledger and exposed via GET /api/billing/pricing.
"""

from decimal import Decimal
from enum import StrEnum

from mysre.core.exceptions import InvalidTier


class Tier(StrEnum):
    BASIC = "basic"
    PRO = "pro"
    ENTERPRISE = "enterprise"


# Currency units per token. Changing a rate only affects new usage events;
# recorded events keep the rate they were written with.
TIER_PRICING: dict[Tier, Decimal] = {
    Tier.BASIC:      Decimal("0.000002"),
    Tier.PRO:        Decimal("0.0000015"),
    Tier.ENTERPRISE: Decimal("0.000001"),
}

TIER_MONTHLY_LIMITS: dict[Tier, int] = {
    Tier.BASIC:      1_000,
    Tier.PRO:        10_000,
    Tier.ENTERPRISE: 100_000,
}


def _resolve(tier: str) -> Tier:
    try:
        return Tier(tier)
    except ValueError:
        raise InvalidTier(tier) from None


def cost_per_token(tier: str) -> Decimal:
    """Return the per-token rate for a tier. Unknown tiers raise InvalidTier."""
    return TIER_PRICING[_resolve(tier)]


def monthly_token_limit(tier: str) -> int:
    return TIER_MONTHLY_LIMITS[_resolve(tier)]


def calc_cost(tier: str, tokens: int) -> Decimal:
    """Calculate the cost of ``tokens`` at the tier's current rate."""
    return cost_per_token(tier) * tokens
