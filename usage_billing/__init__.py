"""Usage Billing v1.0: in-arrear usage invoice items for metered subscriptions."""

__version__ = "1.0.0"

from usage_billing.catalog import (
    BillingMode,
    BillingPeriod,
    Limit,
    Tier,
    TierBlockPolicy,
    TieredBlock,
    Usage,
    UsageType,
)
from usage_billing.config import InvoiceConfig, UsageDetailMode, load_config
from usage_billing.details import ConsumableInArrearDetail
from usage_billing.interval import ContiguousIntervalUsageInArrear
from usage_billing.models import (
    BillingEvent,
    InvoiceItem,
    InvoiceItemType,
    RawUsage,
    RolledUpUnit,
    RolledUpUsage,
    UsageInArrearItemsAndNextNotificationDate,
)
from usage_billing.periods import BillingIntervalDetail
from usage_billing.errors import (
    UsageBillingError,
    ConfigError,
    ComputationStateError,
    CatalogError,
    TierBlockPolicyError,
    DetailSerializationError,
)

__all__ = [
    "BillingMode",
    "BillingPeriod",
    "Limit",
    "Tier",
    "TierBlockPolicy",
    "TieredBlock",
    "Usage",
    "UsageType",
    "InvoiceConfig",
    "UsageDetailMode",
    "load_config",
    "ConsumableInArrearDetail",
    "ContiguousIntervalUsageInArrear",
    "BillingEvent",
    "InvoiceItem",
    "InvoiceItemType",
    "RawUsage",
    "RolledUpUnit",
    "RolledUpUsage",
    "UsageInArrearItemsAndNextNotificationDate",
    "BillingIntervalDetail",
    "UsageBillingError",
    "ConfigError",
    "ComputationStateError",
    "CatalogError",
    "TierBlockPolicyError",
    "DetailSerializationError",
]
