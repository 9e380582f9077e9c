"""Read-only catalog types for usage sections.

Tiers, limits and tiered blocks are immutable frozen dataclasses supplied by
the catalog owner. Prices are Decimal per currency code. A limit or block max
of -1 means unbounded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from usage_billing.errors import CatalogError

UNLIMITED = -1


class UsageType(str, Enum):
    CAPACITY = "CAPACITY"
    CONSUMABLE = "CONSUMABLE"


class BillingMode(str, Enum):
    IN_ADVANCE = "IN_ADVANCE"
    IN_ARREAR = "IN_ARREAR"


class TierBlockPolicy(str, Enum):
    ALL_TIERS = "ALL_TIERS"
    TOP_TIER = "TOP_TIER"


class BillingPeriod(str, Enum):
    """Billing period granularity.

    Month-based periods honour the bill cycle day; day-based periods are
    anchored on the interval start date.
    """

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    THIRTY_DAYS = "THIRTY_DAYS"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    BIANNUAL = "BIANNUAL"
    ANNUAL = "ANNUAL"
    BIENNIAL = "BIENNIAL"
    NO_BILLING_PERIOD = "NO_BILLING_PERIOD"

    @property
    def number_of_months(self) -> int:
        return _PERIOD_MONTHS.get(self, 0)

    @property
    def number_of_days(self) -> int:
        return _PERIOD_DAYS.get(self, 0)


_PERIOD_MONTHS = {
    BillingPeriod.MONTHLY: 1,
    BillingPeriod.QUARTERLY: 3,
    BillingPeriod.BIANNUAL: 6,
    BillingPeriod.ANNUAL: 12,
    BillingPeriod.BIENNIAL: 24,
}

_PERIOD_DAYS = {
    BillingPeriod.DAILY: 1,
    BillingPeriod.WEEKLY: 7,
    BillingPeriod.BIWEEKLY: 14,
    BillingPeriod.THIRTY_DAYS: 30,
}


def _price_for(prices: Dict[str, Decimal], currency: str, what: str) -> Decimal:
    try:
        return prices[currency]
    except KeyError:
        raise CatalogError(f"No {currency} price defined for {what}") from None


@dataclass(frozen=True)
class Limit:
    """Maximum allowed quantity of a unit within a capacity tier."""

    unit: str
    max: float
    min: Optional[float] = None

    @property
    def is_unbounded(self) -> bool:
        return self.max == UNLIMITED


@dataclass(frozen=True)
class TieredBlock:
    """Price per block of `size` units, for at most `max` blocks."""

    unit: str
    size: int
    max: int
    prices: Dict[str, Decimal] = field(default_factory=dict, hash=False, compare=False)

    def __post_init__(self) -> None:
        if self.size <= 0:
            raise CatalogError(f"Tiered block for unit {self.unit} must have a positive size, got {self.size}")

    def get_price(self, currency: str) -> Decimal:
        return _price_for(self.prices, currency, f"tiered block {self.unit}/{self.size}")


@dataclass(frozen=True)
class Tier:
    """One step of a usage section's tier ladder."""

    limits: Tuple[Limit, ...] = ()
    blocks: Tuple[TieredBlock, ...] = ()
    recurring_prices: Dict[str, Decimal] = field(default_factory=dict, hash=False, compare=False)

    def get_recurring_price(self, currency: str) -> Decimal:
        return _price_for(self.recurring_prices, currency, "capacity tier")

    def get_limit(self, unit_type: str) -> Optional[Limit]:
        for limit in self.limits:
            if limit.unit == unit_type:
                return limit
        return None


@dataclass(frozen=True)
class Usage:
    """An in-arrear usage section of a plan phase."""

    name: str
    usage_type: UsageType
    billing_period: BillingPeriod = BillingPeriod.MONTHLY
    billing_mode: BillingMode = BillingMode.IN_ARREAR
    tier_block_policy: TierBlockPolicy = TierBlockPolicy.ALL_TIERS
    tiers: Tuple[Tier, ...] = ()


# ── Lookups ─────────────────────────────────────────────────────


def get_capacity_in_arrear_tiers(usage: Usage) -> List[Tier]:
    """Capacity tiers in catalog order. Raises CatalogError if there are none."""
    if usage.usage_type != UsageType.CAPACITY:
        raise CatalogError(f"Usage section {usage.name} is not a capacity usage")
    if not usage.tiers:
        raise CatalogError(f"Usage section {usage.name} defines no tiers")
    return list(usage.tiers)


def get_capacity_in_arrear_unit_types(usage: Usage) -> Set[str]:
    return {limit.unit for tier in usage.tiers for limit in tier.limits}


def get_consumable_in_arrear_tiered_blocks(usage: Usage, unit_type: str) -> List[TieredBlock]:
    """Tiered blocks for one unit, in ladder order across all tiers."""
    if usage.usage_type != UsageType.CONSUMABLE:
        raise CatalogError(f"Usage section {usage.name} is not a consumable usage")
    blocks = [b for tier in usage.tiers for b in tier.blocks if b.unit == unit_type]
    if not blocks:
        raise CatalogError(f"Usage section {usage.name} has no tiered block for unit {unit_type}")
    return blocks


def get_consumable_in_arrear_unit_types(usage: Usage) -> Set[str]:
    return {block.unit for tier in usage.tiers for block in tier.blocks}


def get_unit_types(usage: Usage) -> Set[str]:
    """Units declared by the usage section, according to its type."""
    if usage.usage_type == UsageType.CAPACITY:
        return get_capacity_in_arrear_unit_types(usage)
    return get_consumable_in_arrear_unit_types(usage)
