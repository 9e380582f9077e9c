"""Tests for capacity and consumable tier pricing."""

from __future__ import annotations

from decimal import Decimal

import pytest

from usage_billing.catalog import TierBlockPolicy, TieredBlock, Usage, UsageType
from usage_billing.errors import CatalogError, TierBlockPolicyError
from usage_billing.models import RolledUpUnit
from usage_billing.pricing import (
    compute_to_be_billed_capacity_in_arrear,
    compute_to_be_billed_consumable_in_arrear,
    compute_to_be_billed_consumable_in_arrear_all_tiers,
    compute_to_be_billed_consumable_in_arrear_top_tier,
)
from tests.builders import capacity_usage, consumable_usage, usd


def _lines(details):
    return [(x.tier, x.tier_unit, x.quantity, x.amount) for x in details]


def _ladder(*blocks):
    return [TieredBlock(unit="A", size=size, max=mx, prices=usd(price)) for size, mx, price in blocks]


LADDER = _ladder((10, 2, "1"), (10, -1, "2"))


# ── Capacity ────────────────────────────────────────────────────


class TestCapacityPricing:
    def test_first_tier_selected(self):
        details = compute_to_be_billed_capacity_in_arrear(
            capacity_usage(), [RolledUpUnit("bandwidth", 7)], "USD")
        assert _lines(details) == [(1, "bandwidth", 7, Decimal("5"))]

    def test_unbounded_last_tier_selected(self):
        details = compute_to_be_billed_capacity_in_arrear(
            capacity_usage(), [RolledUpUnit("bandwidth", 15)], "USD")
        assert _lines(details) == [(2, "bandwidth", 15, Decimal("2"))]

    def test_quantity_equal_to_max_complies(self):
        details = compute_to_be_billed_capacity_in_arrear(
            capacity_usage(), [RolledUpUnit("bandwidth", 10)], "USD")
        assert details[0].tier == 1

    def test_price_on_last_unit_line_only(self):
        usage = capacity_usage(tiers=[
            ({"A": 10, "B": 100}, "5"),
            ({"A": -1, "B": -1}, "20"),
        ])
        details = compute_to_be_billed_capacity_in_arrear(
            usage, [RolledUpUnit("A", 5), RolledUpUnit("B", 200)], "USD")
        assert _lines(details) == [(2, "A", 5, Decimal("0")), (2, "B", 200, Decimal("20"))]
        assert all(x.tier_price == Decimal("20") for x in details)

    def test_all_units_must_comply(self):
        usage = capacity_usage(tiers=[
            ({"A": 10, "B": 100}, "5"),
            ({"A": -1, "B": -1}, "20"),
        ])
        details = compute_to_be_billed_capacity_in_arrear(
            usage, [RolledUpUnit("A", 5), RolledUpUnit("B", 50)], "USD")
        assert sum(x.amount for x in details) == Decimal("5")

    def test_unit_missing_from_every_tier_raises(self):
        with pytest.raises(CatalogError, match="unit type"):
            compute_to_be_billed_capacity_in_arrear(capacity_usage(), [RolledUpUnit("storage", 1)], "USD")

    def test_no_complying_tier_raises(self):
        usage = capacity_usage(tiers=[({"bandwidth": 10}, "5")])
        with pytest.raises(CatalogError, match="Could not find tier"):
            compute_to_be_billed_capacity_in_arrear(usage, [RolledUpUnit("bandwidth", 11)], "USD")

    def test_missing_currency_raises(self):
        with pytest.raises(CatalogError):
            compute_to_be_billed_capacity_in_arrear(capacity_usage(), [RolledUpUnit("bandwidth", 1)], "EUR")


# ── Consumable ──────────────────────────────────────────────────


class TestAllTiers:
    def test_spills_into_next_tier(self):
        details = compute_to_be_billed_consumable_in_arrear_all_tiers(LADDER, 25, "USD")
        assert _lines(details) == [(1, "A", 2, Decimal("2")), (2, "A", 1, Decimal("2"))]

    def test_stops_in_first_tier(self):
        details = compute_to_be_billed_consumable_in_arrear_all_tiers(LADDER, 15, "USD")
        assert _lines(details) == [(1, "A", 2, Decimal("2"))]

    def test_three_tiers(self):
        ladder = _ladder((10, 2, "1"), (10, 3, "2"), (100, -1, "3"))
        details = compute_to_be_billed_consumable_in_arrear_all_tiers(ladder, 75, "USD")
        assert _lines(details) == [
            (1, "A", 2, Decimal("2")),
            (2, "A", 3, Decimal("6")),
            (3, "A", 1, Decimal("3")),
        ]

    def test_zero_quantity_is_zero_line(self):
        details = compute_to_be_billed_consumable_in_arrear_all_tiers(LADDER, 0, "USD")
        assert _lines(details) == [(1, "A", 0, Decimal("0"))]


class TestTopTier:
    def test_bills_total_at_landing_tier(self):
        detail = compute_to_be_billed_consumable_in_arrear_top_tier(LADDER, 25, "USD")
        assert (detail.tier, detail.quantity, detail.amount) == (2, 3, Decimal("6"))

    def test_stays_in_first_tier(self):
        detail = compute_to_be_billed_consumable_in_arrear_top_tier(LADDER, 15, "USD")
        assert (detail.tier, detail.quantity, detail.amount) == (1, 2, Decimal("2"))

    def test_falls_through_to_last_tier(self):
        ladder = _ladder((10, 1, "1"), (10, 1, "2"))
        detail = compute_to_be_billed_consumable_in_arrear_top_tier(ladder, 50, "USD")
        assert (detail.tier, detail.quantity, detail.amount) == (2, 5, Decimal("10"))

    def test_uses_landing_tier_block_size(self):
        ladder = _ladder((10, 1, "1"), (100, -1, "5"))
        detail = compute_to_be_billed_consumable_in_arrear_top_tier(ladder, 250, "USD")
        assert (detail.tier, detail.quantity, detail.amount) == (2, 3, Decimal("15"))


class TestConsumableDispatch:
    def test_all_tiers_policy(self):
        usage = consumable_usage(policy=TierBlockPolicy.ALL_TIERS)
        details = compute_to_be_billed_consumable_in_arrear(usage, RolledUpUnit("cell-phone-minutes", 25), "USD")
        assert len(details) == 2

    def test_top_tier_policy(self):
        usage = consumable_usage(policy=TierBlockPolicy.TOP_TIER)
        details = compute_to_be_billed_consumable_in_arrear(usage, RolledUpUnit("cell-phone-minutes", 25), "USD")
        assert _lines(details) == [(2, "cell-phone-minutes", 3, Decimal("6"))]

    def test_unknown_policy_raises(self):
        base = consumable_usage()
        usage = Usage(name=base.name, usage_type=UsageType.CONSUMABLE, tier_block_policy="BOTTOM_TIER", tiers=base.tiers)
        with pytest.raises(TierBlockPolicyError):
            compute_to_be_billed_consumable_in_arrear(usage, RolledUpUnit("cell-phone-minutes", 25), "USD")
        assert issubclass(TierBlockPolicyError, CatalogError)

    def test_unit_without_blocks_raises(self):
        with pytest.raises(CatalogError):
            compute_to_be_billed_consumable_in_arrear(consumable_usage(), RolledUpUnit("sms", 1), "USD")

    def test_block_size_must_be_positive(self):
        with pytest.raises(CatalogError):
            TieredBlock(unit="A", size=0, max=1, prices=usd("1"))
