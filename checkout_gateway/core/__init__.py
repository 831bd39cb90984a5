"""Core pricing logic and error taxonomy."""
from .currency import Currency, CurrencyTable, to_decimal
from .exceptions import (
    AuthFailure,
    CaptureIncomplete,
    CredentialsNotConfigured,
    GatewayError,
    MissingApprovalURL,
    PricingConfigError,
    TransportError,
    UnsupportedCurrency,
    UpstreamError,
    ValidationError,
)
from .pricing import DeliveryTier, FeeSchedule, PricingEngine, PricingResult, RegionClassifier

__all__ = [
    "AuthFailure",
    "CaptureIncomplete",
    "CredentialsNotConfigured",
    "Currency",
    "CurrencyTable",
    "DeliveryTier",
    "FeeSchedule",
    "GatewayError",
    "MissingApprovalURL",
    "PricingConfigError",
    "PricingEngine",
    "PricingResult",
    "RegionClassifier",
    "TransportError",
    "UnsupportedCurrency",
    "UpstreamError",
    "ValidationError",
    "to_decimal",
]
