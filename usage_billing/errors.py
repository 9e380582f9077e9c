"""Usage billing error hierarchy."""


class UsageBillingError(Exception):
    """Base error for all usage billing errors."""


class ConfigError(UsageBillingError):
    """Invalid or missing configuration."""


class ComputationStateError(UsageBillingError):
    """Computation used out of order or fed unusable billing events."""


class CatalogError(UsageBillingError):
    """Catalog data is missing a tier, limit, unit or price."""


class TierBlockPolicyError(CatalogError):
    """Unrecognized tiered-block policy."""


class DetailSerializationError(UsageBillingError):
    """Item detail blob could not be written or read."""
