"""
PayPal Orders v2 client.

Implements the three-step order protocol:
- create: POST /v2/checkout/orders (idempotent via PayPal-Request-Id)
- capture: POST /v2/checkout/orders/{id}/capture (own idempotency key)
- status: GET /v2/checkout/orders/{id}

Every call is single-attempt. A caller that wants to retry a create or
capture must re-issue it with the same idempotency key.
"""
import secrets
import time
from decimal import Decimal
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
import structlog
from pydantic import BaseModel, Field

from checkout_gateway.config import Settings
from checkout_gateway.core.currency import TWO_PLACES, WHOLE_UNITS, quantize_amount, to_decimal
from checkout_gateway.core.exceptions import (
    CaptureIncomplete,
    CredentialsNotConfigured,
    MissingApprovalURL,
    TransportError,
    UnsupportedCurrency,
    UpstreamError,
    ValidationError,
)
from checkout_gateway.integrations.token_manager import TokenManager
from checkout_gateway.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)

ORDERS_PATH = "/v2/checkout/orders"

# Currencies PayPal charges in whole units
NO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW", "VND", "CLP", "ISK", "HUF", "TWD"})

SUPPORTED_CURRENCIES = (
    "USD", "EUR", "GBP", "CAD", "AUD", "JPY", "CHF", "CNY",
    "INR", "ZAR", "KES", "GHS", "SGD", "HKD", "MXN", "BRL",
    "NOK", "SEK", "DKK", "PLN", "CZK", "HUF", "ILS", "PHP",
    "THB", "TWD", "NZD",
)

# Smallest order PayPal accepts is 0.01, except these whole-unit minimums
WHOLE_UNIT_MINIMUM_CURRENCIES = NO_DECIMAL_CURRENCIES | {"INR", "KES"}


def is_supported_currency(currency: Optional[str]) -> bool:
    return (currency or "").upper() in SUPPORTED_CURRENCIES


def minimum_gateway_amount(currency: str) -> Decimal:
    return WHOLE_UNITS if currency.upper() in WHOLE_UNIT_MINIMUM_CURRENCIES else TWO_PLACES


def format_amount_for_gateway(amount: Any, currency: str) -> str:
    """
    Render an amount the way PayPal expects it.

    Whole-unit currencies become an integer string ("1235"); all others get
    exactly two decimals ("12.50").
    """
    value = to_decimal(amount)
    if currency.upper() in NO_DECIMAL_CURRENCIES:
        return str(quantize_amount(value, WHOLE_UNITS))
    return str(quantize_amount(value, TWO_PLACES))


def generate_idempotency_key(prefix: str, kind: Optional[str] = None) -> str:
    """
    Time-based random key, e.g. "dw-1718000000000-9f1c2ab47e" or
    "dw-capture-1718000000000-03be77d1c4".
    """
    parts = [prefix]
    if kind:
        parts.append(kind)
    parts.append(str(int(time.time() * 1000)))
    parts.append(secrets.token_hex(5))
    return "-".join(parts)


class GatewayOrder(BaseModel):
    """Read-only view of a provider order."""

    id: str
    status: Optional[str] = None
    approval_url: Optional[str] = None
    capture_id: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "GatewayOrder":
        return cls(
            id=str(data.get("id", "")),
            status=data.get("status"),
            approval_url=extract_approval_url(data),
            capture_id=extract_capture_id(data),
            raw=data,
        )


class CaptureResult(BaseModel):
    """Outcome of a capture call with a usable transaction reference."""

    order_id: str
    transaction_id: str
    status: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)


def extract_approval_url(data: Dict[str, Any]) -> Optional[str]:
    for link in data.get("links") or []:
        if isinstance(link, dict) and link.get("rel") in ("approve", "payer-action"):
            return link.get("href")
    return None


def extract_capture_id(data: Dict[str, Any]) -> Optional[str]:
    try:
        capture = data["purchase_units"][0]["payments"]["captures"][0]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(capture, dict):
        return None
    return capture.get("id") or None


class PayPalClient:
    """
    Order gateway for the PayPal REST API.

    Features:
    - Bearer auth via TokenManager
    - Idempotency keys on create and capture
    - Error classification (UpstreamError / TransportError / protocol-shape errors)
    - No automatic retries
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        token_manager: TokenManager,
        base_url: str,
        brand_name: str = "Dritchwear",
        default_description: str = "Dritchwear Purchase",
        return_url: str = "https://dritchwear.com/payment/success",
        cancel_url: str = "https://dritchwear.com/payment/cancel",
        request_id_prefix: str = "dw",
    ) -> None:
        self._http = http_client
        self.token_manager = token_manager
        self.base_url = base_url.rstrip("/")
        self.brand_name = brand_name
        self.default_description = default_description
        self.return_url = return_url
        self.cancel_url = cancel_url
        self.request_id_prefix = request_id_prefix

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: httpx.AsyncClient,
        token_manager: Optional[TokenManager] = None,
    ) -> "PayPalClient":
        """
        Build a client from settings.

        Raises:
            CredentialsNotConfigured: If client id or secret is missing
        """
        if not settings.has_paypal_credentials:
            raise CredentialsNotConfigured()

        token_manager = token_manager or TokenManager(
            http_client,
            client_id=settings.paypal_client_id or "",
            client_secret=settings.paypal_client_secret or "",
            base_url=settings.paypal_base_url,
            buffer_seconds=settings.token_buffer_seconds,
        )
        return cls(
            http_client,
            token_manager,
            base_url=settings.paypal_base_url,
            brand_name=settings.brand_name,
            default_description=settings.default_description,
            return_url=settings.return_url,
            cancel_url=settings.cancel_url,
            request_id_prefix=settings.request_id_prefix,
        )

    async def create_order(
        self,
        amount: Any,
        currency: str,
        description: Optional[str] = None,
        customer_email: Optional[str] = None,
        customer_name: Optional[str] = None,
        user_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> GatewayOrder:
        """
        Create a CAPTURE-intent order.

        Args:
            amount: Order amount in `currency` units
            currency: ISO currency code (case-insensitive)
            description: Purchase unit description
            customer_email: Payer email (not forwarded; PayPal collects it on approval)
            customer_name: Payer name (not forwarded)
            user_id: Stored as the purchase unit custom_id
            idempotency_key: Reuse to make a retried create return the same order

        Returns:
            GatewayOrder: Created order with its approval URL

        Raises:
            ValidationError: Non-positive, non-finite or below-minimum amount
            UnsupportedCurrency: Currency PayPal does not accept
            MissingApprovalURL: Provider omitted the approve link
        """
        value = to_decimal(amount)
        if value <= 0:
            raise ValidationError("Invalid amount: must be a positive number")
        code = (currency or "").upper()
        if not is_supported_currency(code):
            raise UnsupportedCurrency(currency)
        if value < minimum_gateway_amount(code):
            raise ValidationError(
                f"Amount {value} {code} is below the PayPal minimum of {minimum_gateway_amount(code)}"
            )

        formatted_amount = format_amount_for_gateway(value, code)
        request_id = idempotency_key or generate_idempotency_key(self.request_id_prefix)

        payload = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": request_id,
                    "amount": {"currency_code": code, "value": formatted_amount},
                    "description": description or self.default_description,
                    "custom_id": user_id or f"guest_{int(time.time() * 1000)}",
                }
            ],
            "application_context": {
                "brand_name": self.brand_name,
                "landing_page": "NO_PREFERENCE",
                "shipping_preference": "NO_SHIPPING",
                "user_action": "PAY_NOW",
                "return_url": self.return_url,
                "cancel_url": self.cancel_url,
            },
        }

        logger.info(
            "creating_paypal_order",
            amount=formatted_amount,
            currency=code,
            idempotency_key=request_id,
            has_user=bool(user_id),
        )

        data = await self._request(
            "create_order",
            "create PayPal order",
            "POST",
            ORDERS_PATH,
            json=payload,
            idempotency_key=request_id,
        )
        order = GatewayOrder.from_response(data)

        if not order.approval_url:
            logger.error("paypal_order_missing_approval_url", order_id=order.id)
            metrics.record_paypal_api_error("create_order", MissingApprovalURL.error_code)
            raise MissingApprovalURL(order.id or None)

        logger.info("paypal_order_created", order_id=order.id, status=order.status)
        return order

    async def capture_order(
        self, order_id: str, idempotency_key: Optional[str] = None
    ) -> CaptureResult:
        """
        Capture an approved order.

        A fresh idempotency key is generated unless one is supplied; pass the
        key of a previous attempt to retry that exact capture safely.

        Raises:
            ValidationError: Empty order id
            CaptureIncomplete: HTTP success without a capture record
        """
        if not order_id or not order_id.strip():
            raise ValidationError("Missing required field: orderId")

        request_id = idempotency_key or generate_idempotency_key(
            self.request_id_prefix, "capture"
        )
        logger.info("capturing_paypal_order", order_id=order_id, idempotency_key=request_id)

        data = await self._request(
            "capture_order",
            "capture PayPal order",
            "POST",
            f"{ORDERS_PATH}/{quote(order_id, safe='')}/capture",
            idempotency_key=request_id,
        )

        transaction_id = extract_capture_id(data)
        if not transaction_id:
            logger.error(
                "paypal_capture_incomplete",
                order_id=order_id,
                status=data.get("status"),
            )
            metrics.record_paypal_api_error("capture_order", CaptureIncomplete.error_code)
            raise CaptureIncomplete(order_id, data)

        logger.info(
            "paypal_order_captured",
            order_id=order_id,
            transaction_id=transaction_id,
            status=data.get("status"),
        )
        return CaptureResult(
            order_id=order_id,
            transaction_id=transaction_id,
            status=data.get("status"),
            raw=data,
        )

    async def get_order_status(self, order_id: str) -> GatewayOrder:
        """Fetch the current provider view of an order."""
        if not order_id or not order_id.strip():
            raise ValidationError("Missing required field: orderId")

        logger.info("retrieving_paypal_order", order_id=order_id)
        data = await self._request(
            "order_status",
            "get PayPal order status",
            "GET",
            f"{ORDERS_PATH}/{quote(order_id, safe='')}",
        )
        order = GatewayOrder.from_response(data)
        logger.info("paypal_order_retrieved", order_id=order.id, status=order.status)
        return order

    async def _request(
        self,
        operation: str,
        description: str,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        token = await self.token_manager.get_access_token()

        headers = {
            "Authorization": f"Bearer {token.value}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if method != "GET":
            headers["Prefer"] = "return=representation"
        if idempotency_key:
            headers["PayPal-Request-Id"] = idempotency_key

        start_time = time.time()
        try:
            response = await self._http.request(
                method, f"{self.base_url}{path}", headers=headers, json=json
            )
        except httpx.HTTPError as e:
            duration = time.time() - start_time
            metrics.record_paypal_api_call(operation, "transport_error", duration)
            metrics.record_paypal_api_error(operation, TransportError.error_code)
            logger.error(
                "paypal_api_transport_error",
                operation=operation,
                error_type=type(e).__name__,
                error=str(e),
                duration_seconds=duration,
            )
            raise TransportError(description, e) from e

        duration = time.time() - start_time
        metrics.record_paypal_api_call(operation, str(response.status_code), duration)

        if not response.is_success:
            metrics.record_paypal_api_error(operation, UpstreamError.error_code)
            logger.error(
                "paypal_api_error",
                operation=operation,
                status_code=response.status_code,
                error=response.text,
                debug_id=response.headers.get("paypal-debug-id"),
            )
            raise UpstreamError(description, response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as e:
            metrics.record_paypal_api_error(operation, UpstreamError.error_code)
            raise UpstreamError(description, response.status_code, "response body is not JSON") from e
        if not isinstance(data, dict):
            raise UpstreamError(description, response.status_code, "unexpected response shape")
        return data


__all__ = [
    "CaptureResult",
    "GatewayOrder",
    "NO_DECIMAL_CURRENCIES",
    "PayPalClient",
    "SUPPORTED_CURRENCIES",
    "format_amount_for_gateway",
    "generate_idempotency_key",
    "is_supported_currency",
]
