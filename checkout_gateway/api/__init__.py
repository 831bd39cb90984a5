"""FastAPI application and routes."""
from .main import app, create_app
from .schemas import (
    CaptureOrderRequest,
    CreateOrderRequest,
    OrderStatusRequest,
    PricingQuoteRequest,
    parse_gateway_request,
)

__all__ = [
    "app",
    "create_app",
    "CaptureOrderRequest",
    "CreateOrderRequest",
    "OrderStatusRequest",
    "PricingQuoteRequest",
    "parse_gateway_request",
]
