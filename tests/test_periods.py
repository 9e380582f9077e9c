"""Tests for billing cycle arithmetic and local-date conversion."""

from __future__ import annotations

import datetime

import pytest

from usage_billing.catalog import BillingMode, BillingPeriod
from usage_billing.errors import CatalogError, ComputationStateError, ConfigError, UsageBillingError
from usage_billing.periods import BillingIntervalDetail, get_time_zone, to_local_date
from tests.builders import d


def _bid(start, end, target, bcd=1, period=BillingPeriod.MONTHLY, mode=BillingMode.IN_ARREAR):
    return BillingIntervalDetail(start, end, target, bcd, period, mode)


# ── Cycle dates ─────────────────────────────────────────────────


class TestFutureBillingDates:
    def test_first_cycle_date_after_mid_month_start(self):
        bid = _bid(d(2024, 1, 15), None, d(2024, 3, 20))
        assert bid.first_billing_cycle_date == d(2024, 2, 1)
        assert bid.future_billing_date_for(1) == d(2024, 3, 1)
        assert bid.future_billing_date_for(2) == d(2024, 4, 1)

    def test_start_on_bcd_is_first_cycle_date(self):
        bid = _bid(d(2024, 1, 1), None, d(2024, 3, 20))
        assert bid.first_billing_cycle_date == d(2024, 1, 1)

    def test_bcd_clamped_to_month_length_without_drift(self):
        bid = _bid(d(2024, 1, 31), None, d(2024, 6, 1), bcd=31)
        assert bid.future_billing_date_for(0) == d(2024, 1, 31)
        assert bid.future_billing_date_for(1) == d(2024, 2, 29)
        assert bid.future_billing_date_for(2) == d(2024, 3, 31)
        assert bid.future_billing_date_for(3) == d(2024, 4, 30)

    def test_quarterly_anchored_on_start_month(self):
        bid = _bid(d(2024, 1, 15), None, d(2024, 3, 20), period=BillingPeriod.QUARTERLY)
        assert bid.first_billing_cycle_date == d(2024, 4, 1)
        assert bid.future_billing_date_for(1) == d(2024, 7, 1)

    def test_annual_crosses_year(self):
        bid = _bid(d(2023, 6, 10), None, d(2024, 1, 1), bcd=5, period=BillingPeriod.ANNUAL)
        assert bid.first_billing_cycle_date == d(2024, 6, 5)

    def test_weekly_ignores_bcd(self):
        bid = _bid(d(2024, 1, 3), None, d(2024, 2, 1), bcd=15, period=BillingPeriod.WEEKLY)
        assert bid.first_billing_cycle_date == d(2024, 1, 3)
        assert bid.future_billing_date_for(2) == d(2024, 1, 17)

    @pytest.mark.parametrize("bcd", [0, 32])
    def test_invalid_bcd_raises(self, bcd):
        with pytest.raises(ComputationStateError):
            _bid(d(2024, 1, 1), None, d(2024, 2, 1), bcd=bcd)

    def test_unsupported_period_raises(self):
        with pytest.raises(CatalogError):
            _bid(d(2024, 1, 1), None, d(2024, 2, 1), period=BillingPeriod.NO_BILLING_PERIOD)

    def test_period_errors_share_base_error(self):
        with pytest.raises(UsageBillingError):
            _bid(d(2024, 1, 1), None, d(2024, 2, 1), bcd=40)


# ── Next billing cycle date ─────────────────────────────────────


class TestNextBillingCycleDate:
    def test_in_arrear_mid_period(self):
        bid = _bid(d(2024, 1, 15), None, d(2024, 3, 20))
        assert bid.last_billing_cycle_date == d(2024, 3, 1)
        assert bid.next_billing_cycle_date == d(2024, 4, 1)

    def test_in_arrear_target_on_cycle_date(self):
        bid = _bid(d(2024, 1, 1), None, d(2024, 3, 1))
        assert bid.last_billing_cycle_date == d(2024, 3, 1)
        assert bid.next_billing_cycle_date == d(2024, 4, 1)

    def test_in_arrear_target_before_first_cycle(self):
        bid = _bid(d(2024, 1, 15), None, d(2024, 1, 20))
        assert bid.last_billing_cycle_date is None
        assert bid.next_billing_cycle_date == d(2024, 2, 1)

    def test_in_arrear_closed_interval_before_target(self):
        bid = _bid(d(2024, 1, 1), d(2024, 2, 15), d(2024, 5, 10))
        assert bid.last_billing_cycle_date == d(2024, 2, 1)
        assert bid.next_billing_cycle_date == d(2024, 3, 1)

    def test_in_arrear_daily(self):
        bid = _bid(d(2024, 1, 1), None, d(2024, 1, 10), period=BillingPeriod.DAILY)
        assert bid.next_billing_cycle_date == d(2024, 1, 11)

    def test_in_advance_next_is_end_of_paid_period(self):
        bid = _bid(d(2024, 1, 1), None, d(2024, 1, 15), mode=BillingMode.IN_ADVANCE)
        assert bid.next_billing_cycle_date == d(2024, 2, 1)

    def test_in_advance_capped_by_end_date(self):
        bid = _bid(d(2024, 1, 1), d(2024, 1, 20), d(2024, 1, 15), mode=BillingMode.IN_ADVANCE)
        assert bid.next_billing_cycle_date == d(2024, 1, 20)


# ── Local dates ─────────────────────────────────────────────────


class TestLocalDate:
    def test_date_passthrough(self):
        assert to_local_date(d(2024, 3, 1)) == d(2024, 3, 1)

    def test_aware_datetime_converted_to_zone(self):
        pst = datetime.timezone(datetime.timedelta(hours=-8))
        dt = datetime.datetime(2024, 3, 1, 2, 0, tzinfo=datetime.timezone.utc)
        assert to_local_date(dt, pst) == d(2024, 2, 29)

    def test_naive_datetime_is_utc(self):
        assert to_local_date(datetime.datetime(2024, 3, 1, 23, 59), "UTC") == d(2024, 3, 1)

    def test_unknown_zone_raises(self):
        with pytest.raises(ConfigError):
            get_time_zone("Not/A_Zone")
