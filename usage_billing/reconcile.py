"""Reconcile newly priced usage with what was already invoiced.

Pure functions, no I/O. Amount comparison is in currency, not units.
"""

from __future__ import annotations

import datetime
from decimal import Decimal
from typing import Iterable, List

from usage_billing.details import ConsumableInArrearDetail, from_json
from usage_billing.models import InvoiceItem, InvoiceItemType
from usage_billing.utils import sum_amounts


def get_billed_items(
    usage_name: str,
    start_date: datetime.date,
    end_date: datetime.date,
    existing_usage: Iterable[InvoiceItem],
) -> List[InvoiceItem]:
    """Usage items of this section whose period lies within [start_date, end_date]."""
    return [
        item for item in existing_usage
        if item.invoice_item_type == InvoiceItemType.USAGE
        and item.usage_name == usage_name
        and item.end_date is not None
        and item.start_date >= start_date
        and item.end_date <= end_date
    ]


def compute_billed_usage(billed_items: Iterable[InvoiceItem]) -> Decimal:
    """Amount already billed for the interval, across unit types."""
    return sum_amounts(item.amount for item in billed_items)


def needs_reconciliation(billed_items: List[InvoiceItem], billed: Decimal, to_be_billed: Decimal) -> bool:
    return not billed_items or billed < to_be_billed


def reconcile_existing_billed_with_to_be_billed(
    billed_items: Iterable[InvoiceItem],
    to_be_billed: List[ConsumableInArrearDetail],
) -> List[ConsumableInArrearDetail]:
    """Net previously billed amounts out of the candidate detail lines.

    Candidates absorb old lines of the same unit. Old lines left over, and
    old items with no detail blob, become negated adjustment lines.
    """
    result = list(to_be_billed)
    for item in billed_items:
        billed_details = from_json(item.item_details)

        if billed_details:
            for candidate in to_be_billed:
                billed_details = candidate.reconcile(billed_details)

            for billed in billed_details:
                result.append(ConsumableInArrearDetail(
                    billed.tier, billed.tier_unit, billed.tier_price,
                    billed.quantity, -billed.amount, None, item.id,
                ))
        else:
            result.append(ConsumableInArrearDetail.adjustment(item.rate, item.quantity, -item.amount, item.id))
    return result
