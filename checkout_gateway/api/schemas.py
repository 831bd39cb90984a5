"""
Pydantic schemas for API request/response models.

Gateway requests form a closed union discriminated by `action`; anything
else is rejected before dispatch.
"""
import re
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from checkout_gateway.core.exceptions import ValidationError

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

ACTIONS = ("create-order", "capture-order", "order-status")


class _GatewayRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CreateOrderRequest(_GatewayRequest):
    """Request schema for creating a PayPal order."""

    action: Literal["create-order"]
    amount: float = Field(..., gt=0, description="Order amount in currency units")
    currency: str = Field(..., min_length=3, max_length=3, description="Currency code (e.g., USD)")
    customer_email: str = Field(..., alias="customerEmail", description="Payer email")
    customer_name: Optional[str] = Field(default=None, alias="customerName")
    description: Optional[str] = Field(default=None, max_length=127)
    user_id: Optional[str] = Field(default=None, alias="userId")
    idempotency_key: Optional[str] = Field(
        default=None,
        alias="idempotencyKey",
        max_length=108,
        description="Reuse on retry to avoid creating a duplicate order",
    )
    metadata: Optional[Dict[str, Any]] = Field(default=None)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return v.upper()

    @field_validator("customer_email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("must be a valid email address")
        return v

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={
            "examples": [
                {
                    "action": "create-order",
                    "amount": 49.99,
                    "currency": "USD",
                    "customerEmail": "buyer@example.com",
                    "customerName": "Ada Obi",
                    "description": "Dritchwear Purchase",
                    "userId": "123e4567-e89b-12d3-a456-426614174000",
                }
            ]
        },
    )


class CaptureOrderRequest(_GatewayRequest):
    """Request schema for capturing an approved order."""

    action: Literal["capture-order"]
    order_id: str = Field(..., alias="orderId", min_length=1)
    user_id: Optional[str] = Field(default=None, alias="userId")
    idempotency_key: Optional[str] = Field(default=None, alias="idempotencyKey", max_length=108)


class OrderStatusRequest(_GatewayRequest):
    """Request schema for reading an order."""

    action: Literal["order-status"]
    order_id: str = Field(..., alias="orderId", min_length=1)


GatewayRequest = Annotated[
    Union[CreateOrderRequest, CaptureOrderRequest, OrderStatusRequest],
    Field(discriminator="action"),
]

_gateway_request_adapter: TypeAdapter[Any] = TypeAdapter(GatewayRequest)


def _describe(error: Dict[str, Any]) -> str:
    field = ".".join(str(part) for part in error.get("loc", ()) if part not in ACTIONS)
    if error.get("type") == "missing":
        return f"Missing required field: {field}"
    return f"Invalid {field}: {error.get('msg', 'invalid value')}"


def parse_gateway_request(body: Any) -> Union[CreateOrderRequest, CaptureOrderRequest, OrderStatusRequest]:
    """
    Validate a decoded JSON body into one of the gateway request variants.

    Raises:
        ValidationError: Non-object body, unknown action or invalid fields
    """
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    action = body.get("action")
    if action not in ACTIONS:
        raise ValidationError(f"Unknown action: {action}")
    try:
        return _gateway_request_adapter.validate_python(body)
    except PydanticValidationError as e:
        raise ValidationError(_describe(e.errors()[0])) from None


class PricingQuoteRequest(BaseModel):
    """Request schema for an order price breakdown."""

    subtotal: float = Field(..., ge=0, description="Order subtotal in currency units")
    currency: str = Field(..., min_length=3, max_length=3)
    location: Optional[str] = Field(default=None, description="Free-form delivery location")
    discount_amount: float = Field(default=0, ge=0, alias="discountAmount")
    enforce_minimum: bool = Field(default=False, alias="enforceMinimum")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return v.upper()


class PricingBreakdown(BaseModel):
    """Numeric and formatted amounts of a quote."""

    subtotal: float
    serviceFee: float
    deliveryFee: float
    discountAmount: float
    total: float
    currency: str
    deliveryTier: str


class PricingQuoteResponse(BaseModel):
    """Response schema for pricing quotes."""

    success: bool = True
    pricing: PricingBreakdown
    formatted: Dict[str, str]
    provider: str
    requestId: Optional[str] = None


class CurrencyInfo(BaseModel):
    code: str
    name: str
    symbol: str
    isBaseCurrency: bool
    rate: str
    minimumOrder: str
    provider: str


class CurrencyListResponse(BaseModel):
    success: bool = True
    baseCurrency: str
    currencies: List[CurrencyInfo]
    requestId: Optional[str] = None


class HealthCheckResponse(BaseModel):
    """Response schema for health checks."""

    status: str = Field(..., description="Overall health status (healthy/unhealthy)")
    checks: Optional[Dict[str, Any]] = Field(default=None, description="Individual service checks")
    message: Optional[str] = Field(default=None, description="Status message")
