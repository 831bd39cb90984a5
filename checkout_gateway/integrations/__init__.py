"""External integrations for payment processing."""
from .paypal_client import (
    CaptureResult,
    GatewayOrder,
    PayPalClient,
    format_amount_for_gateway,
    generate_idempotency_key,
    is_supported_currency,
)
from .token_manager import AccessToken, TokenManager, TokenStore

__all__ = [
    "AccessToken",
    "CaptureResult",
    "GatewayOrder",
    "PayPalClient",
    "TokenManager",
    "TokenStore",
    "format_amount_for_gateway",
    "generate_idempotency_key",
    "is_supported_currency",
]
