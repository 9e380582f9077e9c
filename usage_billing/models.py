"""Usage billing data models -- billing events, raw usage, invoice items.

All models are plain dataclasses with to_dict() for serialization.
Inputs are frozen; nothing here performs I/O.
"""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from usage_billing.utils import to_decimal


class InvoiceItemType(str, Enum):
    USAGE = "USAGE"
    RECURRING = "RECURRING"
    FIXED = "FIXED"
    CREDIT_ADJ = "CREDIT_ADJ"
    ITEM_ADJ = "ITEM_ADJ"


@dataclass(frozen=True)
class BillingEvent:
    """A subscription transition referencing the usage section.

    effective_date may be a date or an aware datetime; datetimes are
    converted to the account-local date by the computation.
    """

    effective_date: Union[datetime.date, datetime.datetime]
    bill_cycle_day_local: int
    plan_name: str
    phase_name: str
    currency: str
    subscription_id: str
    bundle_id: str


@dataclass(frozen=True)
class RawUsage:
    """A single metering event."""

    subscription_id: str
    date: datetime.date
    unit_type: str
    amount: Optional[int]


@dataclass(frozen=True)
class RolledUpUnit:
    unit_type: str
    amount: int


@dataclass(frozen=True)
class RolledUpUsage:
    """Usage aggregated per unit type over [start, end)."""

    subscription_id: str
    start: datetime.date
    end: datetime.date
    rolled_up_units: Tuple[RolledUpUnit, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subscription_id": self.subscription_id,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "rolled_up_units": {u.unit_type: u.amount for u in self.rolled_up_units},
        }


def _new_item_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class InvoiceItem:
    """An invoice line. Usage items carry usage_name and optional item_details."""

    invoice_id: str
    account_id: str
    bundle_id: str
    subscription_id: str
    plan_name: str
    phase_name: str
    usage_name: Optional[str]
    start_date: datetime.date
    end_date: Optional[datetime.date]
    amount: Decimal
    currency: str
    rate: Optional[Decimal] = None
    quantity: Optional[int] = None
    item_details: Optional[str] = None
    invoice_item_type: InvoiceItemType = InvoiceItemType.USAGE
    id: str = field(default_factory=_new_item_id)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "invoice_item_type": self.invoice_item_type.value,
            "invoice_id": self.invoice_id,
            "account_id": self.account_id,
            "bundle_id": self.bundle_id,
            "subscription_id": self.subscription_id,
            "plan_name": self.plan_name,
            "phase_name": self.phase_name,
            "start_date": self.start_date.isoformat(),
            "amount": str(self.amount),
            "currency": self.currency,
        }
        if self.usage_name is not None:
            d["usage_name"] = self.usage_name
        if self.end_date is not None:
            d["end_date"] = self.end_date.isoformat()
        if self.rate is not None:
            d["rate"] = str(self.rate)
        if self.quantity is not None:
            d["quantity"] = self.quantity
        if self.item_details is not None:
            d["item_details"] = self.item_details
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "InvoiceItem":
        end_date = d.get("end_date")
        rate = d.get("rate")
        return cls(
            id=d.get("id") or _new_item_id(),
            invoice_item_type=InvoiceItemType(d.get("invoice_item_type", "USAGE")),
            invoice_id=d["invoice_id"],
            account_id=d["account_id"],
            bundle_id=d.get("bundle_id", ""),
            subscription_id=d.get("subscription_id", ""),
            plan_name=d.get("plan_name", ""),
            phase_name=d.get("phase_name", ""),
            usage_name=d.get("usage_name"),
            start_date=datetime.date.fromisoformat(d["start_date"]),
            end_date=datetime.date.fromisoformat(end_date) if end_date else None,
            amount=to_decimal(d["amount"]),
            currency=d["currency"],
            rate=to_decimal(rate) if rate is not None else None,
            quantity=d.get("quantity"),
            item_details=d.get("item_details"),
        )


@dataclass(frozen=True)
class UsageInArrearItemsAndNextNotificationDate:
    """Result of one computation: new items plus the re-evaluation date."""

    invoice_items: List[InvoiceItem]
    next_notification_date: datetime.date
