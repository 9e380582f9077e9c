"""Contiguous in-arrear usage interval -- one per subscription and usage section.

Two phases: billing events are appended while NOT_BUILT, then build()
freezes the transition dates and the instance only computes.

Usage::

    interval = ContiguousIntervalUsageInArrear(usage, account_id, invoice_id,
                                               raw_usage, target_date, raw_usage_start_date)
    for event in billing_events:
        interval.add_billing_event(event)
    interval.build(closed_interval=False)
    result = interval.compute_missing_items_and_next_notification_date(existing_items)
"""

from __future__ import annotations

import datetime
import logging
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Sequence

from usage_billing.catalog import BillingMode, Usage, UsageType, get_unit_types
from usage_billing.config import InvoiceConfig, UsageDetailMode
from usage_billing.details import ConsumableInArrearDetail, to_json, total_amount
from usage_billing.errors import ComputationStateError
from usage_billing.models import (
    BillingEvent,
    InvoiceItem,
    RawUsage,
    RolledUpUnit,
    RolledUpUsage,
    UsageInArrearItemsAndNextNotificationDate,
)
from usage_billing.periods import BillingIntervalDetail, get_time_zone, to_local_date
from usage_billing.pricing import (
    compute_to_be_billed_capacity_in_arrear,
    compute_to_be_billed_consumable_in_arrear,
)
from usage_billing.reconcile import (
    compute_billed_usage,
    get_billed_items,
    needs_reconciliation,
    reconcile_existing_billed_with_to_be_billed,
)
from usage_billing.rollup import roll_up_usage

logger = logging.getLogger(__name__)


class BuildState(str, Enum):
    NOT_BUILT = "NOT_BUILT"
    BUILT = "BUILT"


class ContiguousIntervalUsageInArrear:
    """Missing usage items for one usage section over contiguous billing events."""

    def __init__(
        self,
        usage: Usage,
        account_id: str,
        invoice_id: str,
        raw_subscription_usage: Sequence[RawUsage],
        target_date: datetime.date,
        raw_usage_start_date: datetime.date,
        invoice_config: Optional[InvoiceConfig] = None,
        tenant_id: Optional[str] = None,
    ) -> None:
        self.usage = usage
        self.account_id = account_id
        self.invoice_id = invoice_id
        self.unit_types = get_unit_types(usage)
        self.raw_subscription_usage = list(raw_subscription_usage)
        self.target_date = target_date
        self.raw_usage_start_date = raw_usage_start_date
        self.invoice_config = invoice_config or InvoiceConfig()
        self.tenant_id = tenant_id
        self._tz = get_time_zone(self.invoice_config.time_zone)
        self._billing_events: List[BillingEvent] = []
        self._transition_times: List[datetime.date] = []
        self._state = BuildState.NOT_BUILT

    # ── Phase checks ────────────────────────────────────────────

    @property
    def is_built(self) -> bool:
        return self._state == BuildState.BUILT

    def _require_built(self) -> None:
        if not self.is_built:
            raise ComputationStateError(f"Usage interval for {self.usage.name} has not been built")

    def _require_not_built(self) -> None:
        if self.is_built:
            raise ComputationStateError(f"Usage interval for {self.usage.name} is already built")

    def _require_events(self) -> None:
        if not self._billing_events:
            raise ComputationStateError(f"Usage interval for {self.usage.name} has no billing event")

    # ── Accumulation ────────────────────────────────────────────

    def add_billing_event(self, event: BillingEvent) -> None:
        self._require_not_built()
        self._billing_events.append(event)

    @property
    def billing_events(self) -> List[BillingEvent]:
        return list(self._billing_events)

    @property
    def transition_times(self) -> List[datetime.date]:
        return list(self._transition_times)

    def _local_date(self, event: BillingEvent) -> datetime.date:
        return to_local_date(event.effective_date, self._tz)

    # ── Build ───────────────────────────────────────────────────

    def build(self, closed_interval: bool) -> "ContiguousIntervalUsageInArrear":
        """Compute the transition dates bounding each period to bill.

        Args:
            closed_interval: True when a last billing event ends the usage
                section; False when it is ongoing and target_date is the end.
        """
        self._require_not_built()
        required = 2 if closed_interval else 1
        if len(self._billing_events) < required:
            raise ComputationStateError(
                f"Usage interval for {self.usage.name} needs at least {required} billing event(s) "
                f"to build a {'closed' if closed_interval else 'open'} interval, "
                f"got {len(self._billing_events)}"
            )

        start_date = self._local_date(self._billing_events[0])
        if self.target_date < start_date:
            logger.debug("usage %s: target %s before start %s, nothing to bill",
                         self.usage.name, self.target_date, start_date)
            self._state = BuildState.BUILT
            return self

        end_date = self._local_date(self._billing_events[-1]) if closed_interval else self.target_date

        bid = BillingIntervalDetail(start_date, end_date, self.target_date, self.bcd,
                                    self.usage.billing_period, self.usage.billing_mode)

        transitions: List[datetime.date] = []
        if start_date >= self.raw_usage_start_date:
            transitions.append(start_date)

        nb_periods = 0
        next_bill_cycle_date = bid.future_billing_date_for(nb_periods)
        while next_bill_cycle_date <= end_date:
            if next_bill_cycle_date > start_date and next_bill_cycle_date >= self.raw_usage_start_date:
                transitions.append(next_bill_cycle_date)
            nb_periods += 1
            next_bill_cycle_date = bid.future_billing_date_for(nb_periods)

        if closed_interval and transitions and end_date > transitions[-1]:
            transitions.append(end_date)

        self._transition_times = transitions
        self._state = BuildState.BUILT
        logger.debug("usage %s: built %d transition(s) %s", self.usage.name, len(transitions), transitions)
        return self

    # ── Rollup ──────────────────────────────────────────────────

    def get_rolled_up_usage(self) -> List[RolledUpUsage]:
        self._require_built()
        return roll_up_usage(self._transition_times, self.raw_subscription_usage,
                             self.usage.usage_type, self.subscription_id)

    # ── Pricing ─────────────────────────────────────────────────

    def _billable_units(self, rolled_up: RolledUpUsage) -> List[RolledUpUnit]:
        units = []
        for ro in rolled_up.rolled_up_units:
            if ro.unit_type not in self.unit_types:
                logger.warning("usage %s: skipping unit type %s not declared by the usage section",
                               self.usage.name, ro.unit_type)
                continue
            units.append(ro)
        return units

    def compute_to_be_billed_usage_details(self, rolled_up: RolledUpUsage) -> List[ConsumableInArrearDetail]:
        """Priced detail lines for one rolled-up interval."""
        self._require_built()
        if self.usage.usage_type == UsageType.CAPACITY:
            # Every capacity unit must fit a tier limit; unknown units fail in pricing
            return compute_to_be_billed_capacity_in_arrear(self.usage, rolled_up.rolled_up_units, self.currency)

        details: List[ConsumableInArrearDetail] = []
        for ro in self._billable_units(rolled_up):
            details.extend(compute_to_be_billed_consumable_in_arrear(self.usage, ro, self.currency))
        return details

    # ── Missing items ───────────────────────────────────────────

    def _usage_item(
        self,
        start: datetime.date,
        end: datetime.date,
        amount: Decimal,
        rate: Optional[Decimal] = None,
        quantity: Optional[int] = None,
        item_details: Optional[str] = None,
    ) -> InvoiceItem:
        return InvoiceItem(
            invoice_id=self.invoice_id,
            account_id=self.account_id,
            bundle_id=self.bundle_id,
            subscription_id=self.subscription_id,
            plan_name=self.plan_name,
            phase_name=self.phase_name,
            usage_name=self.usage.name,
            start_date=start,
            end_date=end,
            amount=amount,
            currency=self.currency,
            rate=rate,
            quantity=quantity,
            item_details=item_details,
        )

    def compute_missing_items_and_next_notification_date(
        self,
        existing_usage: Sequence[InvoiceItem],
    ) -> UsageInArrearItemsAndNextNotificationDate:
        """Usage items still to invoice, and when to look at this usage again.

        Amounts already invoiced for an interval are netted out so re-running
        with the previous output as existing_usage bills nothing twice.
        """
        self._require_built()

        if len(self._transition_times) < 2:
            return UsageInArrearItemsAndNextNotificationDate([], self.compute_next_notification_date())

        result: List[InvoiceItem] = []

        # $0 markers anchor the next notification when there is nothing to bill;
        # the invoicing code drops them before persisting
        for prev_date, cur_date in zip(self._transition_times, self._transition_times[1:]):
            result.append(self._usage_item(prev_date, cur_date, Decimal("0")))

        mode = self.invoice_config.get_item_result_behavior_mode(self.tenant_id)
        for ru in self.get_rolled_up_usage():
            to_be_billed_details = self.compute_to_be_billed_usage_details(ru)
            to_be_billed = total_amount(to_be_billed_details)

            billed_items = get_billed_items(self.usage.name, ru.start, ru.end, existing_usage)
            billed = compute_billed_usage(billed_items)

            if not needs_reconciliation(billed_items, billed, to_be_billed):
                continue

            to_be_billed_details = reconcile_existing_billed_with_to_be_billed(billed_items, to_be_billed_details)
            amount_to_bill = total_amount(to_be_billed_details)
            logger.debug("usage %s [%s, %s): to_be_billed=%s billed=%s net=%s",
                         self.usage.name, ru.start, ru.end, to_be_billed, billed, amount_to_bill)
            if amount_to_bill <= 0:
                continue

            if mode == UsageDetailMode.DETAIL:
                for detail in to_be_billed_details:
                    result.append(self._usage_item(ru.start, ru.end, detail.amount,
                                                   rate=detail.tier_price, quantity=detail.quantity))
            else:
                result.append(self._usage_item(ru.start, ru.end, amount_to_bill,
                                               item_details=to_json(to_be_billed_details)))

        return UsageInArrearItemsAndNextNotificationDate(result, self.compute_next_notification_date())

    # ── Next notification ───────────────────────────────────────

    def compute_next_notification_date(self) -> datetime.date:
        """Latest next-billing-cycle date across the billing events."""
        self._require_events()
        period = self.usage.billing_period
        result: Optional[datetime.date] = None

        for this_event, next_event in zip(self._billing_events, self._billing_events[1:]):
            bid = BillingIntervalDetail(self._local_date(this_event), self._local_date(next_event),
                                        self.target_date, this_event.bill_cycle_day_local,
                                        period, BillingMode.IN_ARREAR)
            if result is None or result < bid.next_billing_cycle_date:
                result = bid.next_billing_cycle_date

        last_event = self._billing_events[-1]
        bid = BillingIntervalDetail(self._local_date(last_event), None, self.target_date,
                                    last_event.bill_cycle_day_local, period, BillingMode.IN_ARREAR)
        if result is None or result < bid.next_billing_cycle_date:
            result = bid.next_billing_cycle_date
        return result

    # ── First event accessors ───────────────────────────────────

    def _first_event(self) -> BillingEvent:
        self._require_events()
        return self._billing_events[0]

    @property
    def bcd(self) -> int:
        return self._first_event().bill_cycle_day_local

    @property
    def bundle_id(self) -> str:
        return self._first_event().bundle_id

    @property
    def subscription_id(self) -> str:
        return self._first_event().subscription_id

    @property
    def plan_name(self) -> str:
        return self._first_event().plan_name

    @property
    def phase_name(self) -> str:
        return self._first_event().phase_name

    @property
    def currency(self) -> str:
        return self._first_event().currency

    def __repr__(self) -> str:
        return (
            f"ContiguousIntervalUsageInArrear(usage={self.usage.name!r}, state={self._state.value}, "
            f"transition_times={self._transition_times}, billing_events={len(self._billing_events)}, "
            f"raw_usage={len(self.raw_subscription_usage)}, raw_usage_start_date={self.raw_usage_start_date})"
        )
