"""Priced usage detail lines and their item_details blob codec.

A blob is a JSON array of records:
    {tier, tierUnit, tierPrice, quantity, amount, existingUsageAmount, reference}
Decimals are written as strings so amounts round-trip exactly.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from usage_billing.errors import DetailSerializationError
from usage_billing.utils import sum_amounts, to_decimal


@dataclass
class ConsumableInArrearDetail:
    """One priced line fragment. Mutable while a candidate set is built."""

    tier: int
    tier_unit: Optional[str]
    tier_price: Optional[Decimal]
    quantity: Optional[int]
    amount: Decimal
    existing_usage_amount: Optional[Decimal] = None
    reference: Optional[str] = None

    @classmethod
    def for_blocks(cls, tier: int, tier_unit: str, tier_price: Decimal, quantity: int) -> "ConsumableInArrearDetail":
        """Line charging `quantity` blocks at `tier_price` each."""
        return cls(tier, tier_unit, tier_price, quantity, tier_price * quantity)

    @classmethod
    def adjustment(
        cls,
        tier_price: Optional[Decimal],
        quantity: Optional[int],
        amount: Decimal,
        reference: Optional[str],
    ) -> "ConsumableInArrearDetail":
        """Unitless line for an already billed item without detail."""
        return cls(0, None, tier_price, quantity, amount, Decimal("0"), reference)

    def reconcile(self, billed_details: List["ConsumableInArrearDetail"]) -> List["ConsumableInArrearDetail"]:
        """Absorb already billed lines for the same unit.

        Returns the billed lines that did not match this unit.
        """
        unreconciled = []
        for billed in billed_details:
            if billed.tier_unit == self.tier_unit:
                absorbed = abs(billed.amount)
                self.existing_usage_amount = (self.existing_usage_amount or Decimal("0")) + absorbed
                self.amount = self.amount - absorbed
            else:
                unreconciled.append(billed)
        return unreconciled

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tier": self.tier,
            "tierUnit": self.tier_unit,
            "tierPrice": None if self.tier_price is None else str(self.tier_price),
            "quantity": self.quantity,
            "amount": str(self.amount),
            "existingUsageAmount": None if self.existing_usage_amount is None else str(self.existing_usage_amount),
            "reference": self.reference,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ConsumableInArrearDetail":
        def _dec(key: str) -> Optional[Decimal]:
            value = d.get(key)
            return None if value is None else to_decimal(value)

        amount = _dec("amount")
        return cls(
            tier=int(d.get("tier", 0)),
            tier_unit=d.get("tierUnit"),
            tier_price=_dec("tierPrice"),
            quantity=None if d.get("quantity") is None else int(d["quantity"]),
            amount=Decimal("0") if amount is None else amount,
            existing_usage_amount=_dec("existingUsageAmount"),
            reference=d.get("reference"),
        )


def total_amount(details: List[ConsumableInArrearDetail]) -> Decimal:
    """Sum of detail amounts."""
    return sum_amounts(d.amount for d in details)


def to_json(details: Optional[List[ConsumableInArrearDetail]]) -> Optional[str]:
    """Serialize details to a blob; None for an empty or missing list."""
    if not details:
        return None
    try:
        return json.dumps([d.to_dict() for d in details], separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise DetailSerializationError(f"Cannot serialize usage details: {exc}") from exc


def from_json(item_details: Optional[str]) -> Optional[List[ConsumableInArrearDetail]]:
    """Deserialize a blob; None when the item carries no detail."""
    if item_details is None:
        return None
    try:
        raw = json.loads(item_details, parse_float=Decimal)
    except ValueError as exc:
        raise DetailSerializationError(f"Malformed usage details: {exc}") from exc
    if not isinstance(raw, list):
        raise DetailSerializationError("Usage details must be a JSON array")
    try:
        return [ConsumableInArrearDetail.from_dict(r) for r in raw]
    except (AttributeError, TypeError, ValueError, InvalidOperation) as exc:
        raise DetailSerializationError(f"Malformed usage detail record: {exc}") from exc
