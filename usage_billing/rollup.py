"""Usage rollup -- aggregate raw usage into one record per billing sub-interval.

Single forward pass over chronologically ordered raw usage. Each record
lands in at most one [prev, cur) interval.
"""

from __future__ import annotations

import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from usage_billing.catalog import UsageType
from usage_billing.models import RawUsage, RolledUpUnit, RolledUpUsage

Combine = Callable[[int, int], int]


def combine_rule(usage_type: UsageType) -> Combine:
    """Running max for capacity usage, running sum for consumable usage."""
    if usage_type == UsageType.CAPACITY:
        return max
    return lambda current, new: current + new


def compute_updated_amount(
    usage_type: UsageType,
    current_amount: Optional[int],
    new_amount: Optional[int],
) -> int:
    current = 0 if current_amount is None else current_amount
    new = 0 if new_amount is None else new_amount
    return combine_rule(usage_type)(current, new)


def roll_up_usage(
    transition_times: Sequence[datetime.date],
    raw_usage: Iterable[RawUsage],
    usage_type: UsageType,
    subscription_id: str,
) -> List[RolledUpUsage]:
    """Roll up raw usage over consecutive transition dates.

    Intervals without any raw usage produce no RolledUpUsage.
    """
    if len(transition_times) < 2:
        return []

    first, last = transition_times[0], transition_times[-1]
    usage_it = iter(raw_usage)

    # First raw usage at or after the first transition; earlier history is ignored
    pending = next((ru for ru in usage_it if ru.date >= first), None)
    if pending is None or pending.date >= last:
        return []

    result: List[RolledUpUsage] = []
    for prev_date, cur_date in zip(transition_times, transition_times[1:]):
        per_unit: Dict[str, int] = {}
        while pending is not None and pending.date < cur_date:
            per_unit[pending.unit_type] = compute_updated_amount(
                usage_type, per_unit.get(pending.unit_type), pending.amount
            )
            pending = next(usage_it, None)

        if per_unit:
            units = tuple(RolledUpUnit(unit_type=u, amount=a) for u, a in per_unit.items())
            result.append(RolledUpUsage(subscription_id, prev_date, cur_date, units))

        if pending is None:
            break
    return result
