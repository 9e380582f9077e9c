"""Billing period arithmetic -- cycle dates, next billing date, local dates.

Pure functions and value objects, no I/O. Month-based periods are aligned on
the bill cycle day (clamped to the month length); day-based periods are
anchored on the interval start date.
"""

from __future__ import annotations

import calendar
import datetime
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from usage_billing.catalog import BillingMode, BillingPeriod
from usage_billing.errors import CatalogError, ComputationStateError, ConfigError


def get_time_zone(name: str) -> datetime.tzinfo:
    """Resolve a time zone name. Raises ConfigError if unknown."""
    if name.upper() == "UTC":
        return datetime.timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigError(f"Unknown time zone: {name}") from None


def to_local_date(
    value: Union[datetime.date, datetime.datetime],
    time_zone: Union[str, datetime.tzinfo] = "UTC",
) -> datetime.date:
    """Return the account-local date for a date or datetime.

    Naive datetimes are assumed to be UTC.
    """
    if not isinstance(value, datetime.datetime):
        return value
    tz = get_time_zone(time_zone) if isinstance(time_zone, str) else time_zone
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(tz).date()


def _month_index(d: datetime.date) -> int:
    return d.year * 12 + (d.month - 1)


def _aligned_date(month_index: int, billing_cycle_day: int) -> datetime.date:
    year, month0 = divmod(month_index, 12)
    last_day = calendar.monthrange(year, month0 + 1)[1]
    return datetime.date(year, month0 + 1, min(billing_cycle_day, last_day))


class BillingIntervalDetail:
    """Billing cycle dates for one [start_date, end_date) interval.

    Usage::

        bid = BillingIntervalDetail(start, None, target, 1, BillingPeriod.MONTHLY, BillingMode.IN_ARREAR)
        bid.first_billing_cycle_date      # first cycle date on/after start
        bid.future_billing_date_for(2)    # two periods after the first
        bid.next_billing_cycle_date       # when to look at this interval again
    """

    def __init__(
        self,
        start_date: datetime.date,
        end_date: Optional[datetime.date],
        target_date: datetime.date,
        billing_cycle_day: int,
        billing_period: BillingPeriod,
        billing_mode: BillingMode,
    ) -> None:
        if not 1 <= billing_cycle_day <= 31:
            raise ComputationStateError(f"billing_cycle_day must be within 1..31, got {billing_cycle_day}")
        if billing_period.number_of_months == 0 and billing_period.number_of_days == 0:
            raise CatalogError(f"Unsupported billing period: {billing_period}")
        self.start_date = start_date
        self.end_date = end_date
        self.target_date = target_date
        self.billing_cycle_day = billing_cycle_day
        self.billing_period = billing_period
        self.billing_mode = billing_mode

        self._months = billing_period.number_of_months
        self._days = billing_period.number_of_days
        self._first_month_index = 0
        self.first_billing_cycle_date = self._compute_first_billing_cycle_date()
        self.last_billing_cycle_date: Optional[datetime.date] = None
        self.next_billing_cycle_date: datetime.date = self.first_billing_cycle_date
        if billing_mode == BillingMode.IN_ADVANCE:
            self._compute_in_advance()
        else:
            self._compute_in_arrear()

    # ── Cycle dates ─────────────────────────────────────────────

    def _compute_first_billing_cycle_date(self) -> datetime.date:
        if self._days:
            return self.start_date
        idx = _month_index(self.start_date)
        if _aligned_date(idx, self.billing_cycle_day) < self.start_date:
            idx += self._months
        self._first_month_index = idx
        return _aligned_date(idx, self.billing_cycle_day)

    def future_billing_date_for(self, nb_periods: int) -> datetime.date:
        """Cycle date `nb_periods` periods after the first billing cycle date."""
        if self._days:
            return self.first_billing_cycle_date + datetime.timedelta(days=nb_periods * self._days)
        return _aligned_date(self._first_month_index + nb_periods * self._months, self.billing_cycle_day)

    def _period_on_or_before(self, d: datetime.date) -> Optional[int]:
        """Largest n with future_billing_date_for(n) <= d, None if there is none."""
        if d < self.first_billing_cycle_date:
            return None
        if self._days:
            return (d - self.first_billing_cycle_date).days // self._days
        n = max(0, (_month_index(d) - self._first_month_index) // self._months)
        while n > 0 and self.future_billing_date_for(n) > d:
            n -= 1
        while self.future_billing_date_for(n + 1) <= d:
            n += 1
        return n

    # ── Mode specific boundaries ────────────────────────────────

    def _compute_in_arrear(self) -> None:
        bound = self.target_date
        if self.end_date is not None and self.end_date < bound:
            bound = self.end_date
        n = self._period_on_or_before(bound)
        if n is None:
            self.next_billing_cycle_date = self.first_billing_cycle_date
        else:
            self.last_billing_cycle_date = self.future_billing_date_for(n)
            self.next_billing_cycle_date = self.future_billing_date_for(n + 1)

    def _compute_in_advance(self) -> None:
        n = self._period_on_or_before(self.target_date)
        proposed = self.future_billing_date_for(0 if n is None else n + 1)
        if self.end_date is not None and self.end_date < proposed:
            proposed = self.end_date
        self.next_billing_cycle_date = proposed

    def __repr__(self) -> str:
        return (
            f"BillingIntervalDetail(start={self.start_date}, end={self.end_date}, "
            f"target={self.target_date}, bcd={self.billing_cycle_day}, "
            f"period={self.billing_period.value}, mode={self.billing_mode.value})"
        )
