"""
Error taxonomy for the checkout gateway.

Every error carries:
- A stable error code (for client handling)
- The HTTP status the API maps it to
- A retryability hint for callers scheduling their own explicit retries

Nothing in this package retries on its own; the hint only informs callers.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

RETRYABLE_KEYWORDS = (
    "network",
    "timeout",
    "connection",
    "temporary",
    "rate limit",
    "429",
    "502",
    "503",
    "504",
)


class GatewayError(Exception):
    """Base exception for all checkout gateway errors."""

    error_code = "gateway_error"
    http_status = 500

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    @property
    def is_retryable(self) -> bool:
        """Whether a caller may safely re-issue the call (with the same idempotency key)."""
        lowered = self.message.lower()
        return any(keyword in lowered for keyword in RETRYABLE_KEYWORDS)

    def to_envelope(self, request_id: Optional[str] = None) -> Dict[str, Any]:
        """Structured failure body returned to API callers."""
        return {
            "success": False,
            "error": self.message,
            "code": self.error_code,
            "requestId": request_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


class ValidationError(GatewayError):
    """Bad or missing input."""

    error_code = "validation_error"
    http_status = 400


class UnsupportedCurrency(ValidationError):
    """Currency is not in the supported set or has no exchange rate."""

    error_code = "unsupported_currency"

    def __init__(self, currency: str, message: Optional[str] = None):
        super().__init__(message or f"Unsupported currency: {currency}", currency=currency)
        self.currency = currency


class PricingConfigError(GatewayError):
    """The pricing data file is malformed (missing base currency, bad rate, ...)."""

    error_code = "pricing_config_error"


class AuthFailure(GatewayError):
    """
    OAuth2 token exchange failed.

    `credentials_rejected` distinguishes a misconfigured client id/secret
    (provider answered 401 / invalid_client) from a transient failure.
    """

    error_code = "auth_failure"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        credentials_rejected: bool = False,
    ):
        super().__init__(message, status_code=status_code)
        self.status_code = status_code
        self.body = body
        self.credentials_rejected = credentials_rejected

    @property
    def is_retryable(self) -> bool:
        if self.credentials_rejected:
            return False
        return self.status_code is None or self.status_code >= 500 or super().is_retryable


class CredentialsNotConfigured(AuthFailure):
    """PayPal client id/secret are not set in the environment."""

    error_code = "credentials_not_configured"

    def __init__(self) -> None:
        super().__init__(
            "PayPal credentials not configured. "
            "Please set PAYPAL_CLIENT_ID and PAYPAL_CLIENT_SECRET environment variables.",
            credentials_rejected=True,
        )


class UpstreamError(GatewayError):
    """Non-2xx response from the provider on create/capture/status."""

    error_code = "upstream_error"

    def __init__(self, operation: str, status_code: int, body: str):
        super().__init__(
            f"Failed to {operation}: {status_code} - {body}",
            operation=operation,
            status_code=status_code,
        )
        self.operation = operation
        self.status_code = status_code
        self.body = body

    @property
    def http_status(self) -> int:  # type: ignore[override]
        lowered = self.message.lower()
        if self.status_code == 404 or "not found" in lowered or "resource_not_found" in lowered:
            return 404
        if self.status_code >= 500:
            return 502
        return 400

    @property
    def is_retryable(self) -> bool:
        return self.status_code in (429, 502, 503, 504)


class MissingApprovalURL(GatewayError):
    """Provider created an order but returned no approve link."""

    error_code = "missing_approval_url"

    def __init__(self, order_id: Optional[str]):
        super().__init__("No approval URL found in PayPal response", order_id=order_id)
        self.order_id = order_id


class CaptureIncomplete(GatewayError):
    """
    Capture call succeeded at the HTTP level but carried no capture record.

    Money may have moved without a usable reference; callers must reconcile
    against the order status rather than treat this as success.
    """

    error_code = "capture_incomplete"

    def __init__(self, order_id: str, raw: Optional[Dict[str, Any]] = None):
        super().__init__("No transaction ID found in capture result", order_id=order_id)
        self.order_id = order_id
        self.raw = raw

    @property
    def is_retryable(self) -> bool:
        return False


class TransportError(GatewayError):
    """Network-level failure talking to the provider."""

    error_code = "transport_error"

    def __init__(self, operation: str, cause: Exception):
        super().__init__(
            f"Network error during {operation}: {type(cause).__name__}",
            operation=operation,
        )
        self.operation = operation

    @property
    def is_retryable(self) -> bool:
        return True
