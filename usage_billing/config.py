"""Invoice configuration for usage billing.

Reads a YAML file and environment variables with sensible defaults.
Frozen once loaded; safe to share between computations.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from usage_billing.errors import ConfigError


class UsageDetailMode(str, Enum):
    """How computed usage is emitted on the invoice."""

    AGGREGATE = "AGGREGATE"
    DETAIL = "DETAIL"


def _parse_mode(value: Any) -> UsageDetailMode:
    if isinstance(value, UsageDetailMode):
        return value
    try:
        return UsageDetailMode(str(value).strip().upper())
    except ValueError:
        raise ConfigError(
            f"item_result_behavior_mode must be AGGREGATE or DETAIL, got '{value}'"
        ) from None


@dataclass(frozen=True)
class InvoiceConfig:
    """Immutable invoice configuration."""

    item_result_behavior_mode: UsageDetailMode = UsageDetailMode.AGGREGATE
    # Per-tenant override of item_result_behavior_mode
    tenant_modes: Dict[str, UsageDetailMode] = field(default_factory=dict)
    time_zone: str = "UTC"

    def get_item_result_behavior_mode(self, tenant_id: Optional[str] = None) -> UsageDetailMode:
        """Return the output mode for a tenant, falling back to the default."""
        if tenant_id is not None and tenant_id in self.tenant_modes:
            return self.tenant_modes[tenant_id]
        return self.item_result_behavior_mode

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "InvoiceConfig":
        """Build config from a dict."""
        if not isinstance(d, dict):
            raise ConfigError("Invoice config must be a mapping")
        tenants = d.get("tenant_modes") or {}
        if not isinstance(tenants, dict):
            raise ConfigError("tenant_modes must be a mapping of tenant id to mode")
        time_zone = d.get("time_zone", "UTC")
        if not isinstance(time_zone, str) or not time_zone.strip():
            raise ConfigError(f"time_zone must be a non-empty string, got {time_zone!r}")
        return cls(
            item_result_behavior_mode=_parse_mode(
                d.get("item_result_behavior_mode", UsageDetailMode.AGGREGATE)
            ),
            tenant_modes={str(k): _parse_mode(v) for k, v in tenants.items()},
            time_zone=time_zone.strip(),
        )

    @classmethod
    def from_yaml(cls, path: str) -> "InvoiceConfig":
        """Load config from YAML."""
        p = Path(path)
        if not p.exists():
            raise ConfigError(f"Config not found: {path}")
        with open(p) as f:
            raw = yaml.safe_load(f)
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigError(f"Config must be a YAML mapping: {path}")
        return cls.from_dict(raw)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_result_behavior_mode": self.item_result_behavior_mode.value,
            "tenant_modes": {k: v.value for k, v in self.tenant_modes.items()},
            "time_zone": self.time_zone,
        }


def load_config(path: Optional[str] = None, **overrides: Any) -> InvoiceConfig:
    """Load invoice config: YAML file, then environment, then overrides.

    Args:
        path: Optional YAML file
        **overrides: Field overrides applied last

    Returns:
        InvoiceConfig instance
    """
    current = InvoiceConfig.from_yaml(path).to_dict() if path else InvoiceConfig().to_dict()

    mode = os.environ.get("USAGE_BILLING_DETAIL_MODE")
    if mode:
        current["item_result_behavior_mode"] = mode
    time_zone = os.environ.get("USAGE_BILLING_TIME_ZONE")
    if time_zone:
        current["time_zone"] = time_zone

    if overrides:
        unknown = set(overrides) - set(current)
        if unknown:
            raise ConfigError(f"Unknown config fields: {', '.join(sorted(unknown))}")
        current.update(overrides)

    return InvoiceConfig.from_dict(current)
