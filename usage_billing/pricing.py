"""Capacity and consumable tier pricing for in-arrear usage.

Pure functions over catalog data. Every result is a list of
ConsumableInArrearDetail lines whose amounts sum to the price due.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Sequence

from usage_billing.catalog import (
    UNLIMITED,
    TierBlockPolicy,
    TieredBlock,
    Usage,
    get_capacity_in_arrear_tiers,
    get_consumable_in_arrear_tiered_blocks,
)
from usage_billing.details import ConsumableInArrearDetail
from usage_billing.errors import CatalogError, TierBlockPolicyError
from usage_billing.models import RolledUpUnit
from usage_billing.utils import ceil_div


def _exceeds(blocks_needed: int, block: TieredBlock) -> bool:
    return block.max != UNLIMITED and blocks_needed > block.max


# ── Capacity ────────────────────────────────────────────────────


def compute_to_be_billed_capacity_in_arrear(
    usage: Usage,
    rolled_up_units: Sequence[RolledUpUnit],
    currency: str,
) -> List[ConsumableInArrearDetail]:
    """Price one interval against the first tier every unit complies with.

    The tier price is charged once, on the last unit line.
    """
    if not rolled_up_units:
        return []

    tiers = get_capacity_in_arrear_tiers(usage)
    declared = {limit.unit for tier in tiers for limit in tier.limits}
    undeclared = sorted({ro.unit_type for ro in rolled_up_units} - declared)
    if undeclared:
        raise CatalogError(f"Could not find unit type(s) {', '.join(undeclared)} in any tier of usage {usage.name}")

    for tier_num, tier in enumerate(tiers, start=1):
        complies = True
        for ro in rolled_up_units:
            limit = tier.get_limit(ro.unit_type)
            # Only max matters; tiers are contiguous and the last one uses -1
            if limit is None or (not limit.is_unbounded and ro.amount > limit.max):
                complies = False
                break
        if complies:
            price = tier.get_recurring_price(currency)
            details = [
                ConsumableInArrearDetail(tier_num, ro.unit_type, price, ro.amount, Decimal("0"))
                for ro in rolled_up_units
            ]
            details[-1].amount = price
            return details

    units = ", ".join(f"{ro.unit_type}={ro.amount}" for ro in rolled_up_units)
    raise CatalogError(f"Could not find tier for usage {usage.name} matching with data = {units}")

# ── Consumable ──────────────────────────────────────────────────


def compute_to_be_billed_consumable_in_arrear_all_tiers(
    tiered_blocks: Sequence[TieredBlock],
    units: int,
    currency: str,
) -> List[ConsumableInArrearDetail]:
    """Fill each tier up to its max blocks before spilling into the next."""
    details: List[ConsumableInArrearDetail] = []
    remaining = units
    for tier_num, block in enumerate(tiered_blocks, start=1):
        blocks_needed = ceil_div(remaining, block.size)
        if _exceeds(blocks_needed, block):
            used_blocks = block.max
            remaining -= block.max * block.size
        else:
            used_blocks = blocks_needed
            remaining = 0
        details.append(ConsumableInArrearDetail.for_blocks(tier_num, block.unit, block.get_price(currency), used_blocks))
        if remaining <= 0:
            break
    return details


def compute_to_be_billed_consumable_in_arrear_top_tier(
    tiered_blocks: Sequence[TieredBlock],
    units: int,
    currency: str,
) -> ConsumableInArrearDetail:
    """Bill the whole quantity at the tier the total lands in."""
    tier_num = len(tiered_blocks)
    target = tiered_blocks[-1]
    remaining = units
    for num, block in enumerate(tiered_blocks, start=1):
        blocks_needed = ceil_div(remaining, block.size)
        if _exceeds(blocks_needed, block):
            remaining -= block.max * block.size
        else:
            tier_num, target = num, block
            break
    nb_blocks = ceil_div(units, target.size)
    return ConsumableInArrearDetail.for_blocks(tier_num, target.unit, target.get_price(currency), nb_blocks)


def compute_to_be_billed_consumable_in_arrear(
    usage: Usage,
    rolled_up_unit: RolledUpUnit,
    currency: str,
) -> List[ConsumableInArrearDetail]:
    """Price one unit's rolled-up quantity using the section's block policy."""
    tiered_blocks = get_consumable_in_arrear_tiered_blocks(usage, rolled_up_unit.unit_type)
    units = rolled_up_unit.amount or 0

    policy = usage.tier_block_policy
    if policy == TierBlockPolicy.ALL_TIERS:
        return compute_to_be_billed_consumable_in_arrear_all_tiers(tiered_blocks, units, currency)
    if policy == TierBlockPolicy.TOP_TIER:
        return [compute_to_be_billed_consumable_in_arrear_top_tier(tiered_blocks, units, currency)]
    raise TierBlockPolicyError(f"Unknown TierBlockPolicy {policy!r} for usage {usage.name}")
