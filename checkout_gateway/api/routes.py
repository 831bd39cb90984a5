"""
API routes for the PayPal order protocol and pricing.
"""
import json
import time
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from checkout_gateway.core.exceptions import CredentialsNotConfigured, ValidationError
from checkout_gateway.core.pricing import PricingEngine
from checkout_gateway.integrations.paypal_client import PayPalClient
from checkout_gateway.monitoring.health import HealthCheck
from checkout_gateway.monitoring.metrics import metrics

from .schemas import (
    CaptureOrderRequest,
    CreateOrderRequest,
    CurrencyListResponse,
    HealthCheckResponse,
    OrderStatusRequest,
    PricingQuoteRequest,
    PricingQuoteResponse,
    parse_gateway_request,
)

logger = structlog.get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS",
}

payment_router = APIRouter(tags=["payments"])
pricing_router = APIRouter(tags=["pricing"])
monitoring_router = APIRouter(tags=["monitoring"])


def get_request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def get_pricing_engine(request: Request) -> PricingEngine:
    return request.app.state.pricing_engine


def get_gateway(request: Request) -> PayPalClient:
    """PayPal client built at startup; absent when credentials are missing."""
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise CredentialsNotConfigured()
    return gateway


def success_response(request: Request, **fields: Any) -> JSONResponse:
    body: Dict[str, Any] = {"success": True, **fields, "requestId": get_request_id(request)}
    return JSONResponse(status_code=status.HTTP_200_OK, content=body, headers=CORS_HEADERS)


async def read_json_body(request: Request) -> Any:
    content_type = request.headers.get("content-type", "")
    if "application/json" not in content_type:
        raise ValidationError("Content-Type must be application/json")
    raw = await request.body()
    try:
        return json.loads(raw)
    except ValueError:
        raise ValidationError("Invalid JSON in request body") from None


@payment_router.options("/paypal-payment", include_in_schema=False)
async def paypal_preflight() -> Response:
    """CORS preflight: 200, CORS headers, no body."""
    return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)


@payment_router.get(
    "/paypal-payment",
    summary="Get order status",
    description="Read a PayPal order by id (query parameter `orderId`)",
)
async def paypal_order_status(
    request: Request,
    order_id: Optional[str] = Query(default=None, alias="orderId"),
    gateway: PayPalClient = Depends(get_gateway),
) -> JSONResponse:
    if not order_id:
        raise ValidationError("Missing orderId parameter for GET request")

    order = await gateway.get_order_status(order_id)
    return success_response(request, order=order.raw)


@payment_router.post(
    "/paypal-payment",
    summary="PayPal order protocol",
    description="Dispatch create-order, capture-order or order-status by `action`",
)
async def paypal_payment(
    request: Request,
    gateway: PayPalClient = Depends(get_gateway),
) -> JSONResponse:
    body = await read_json_body(request)
    gateway_request = parse_gateway_request(body)
    logger.info("api_paypal_request", action=gateway_request.action)

    if isinstance(gateway_request, CreateOrderRequest):
        return await _create_order(request, gateway, gateway_request)
    if isinstance(gateway_request, CaptureOrderRequest):
        return await _capture_order(request, gateway, gateway_request)
    if isinstance(gateway_request, OrderStatusRequest):
        order = await gateway.get_order_status(gateway_request.order_id)
        return success_response(request, order=order.raw)
    raise ValidationError(f"Unknown action: {gateway_request.action}")


async def _create_order(
    request: Request, gateway: PayPalClient, payload: CreateOrderRequest
) -> JSONResponse:
    start_time = time.time()
    order = await gateway.create_order(
        amount=payload.amount,
        currency=payload.currency,
        description=payload.description,
        customer_email=payload.customer_email,
        customer_name=payload.customer_name,
        user_id=payload.user_id,
        idempotency_key=payload.idempotency_key,
    )
    logger.info(
        "api_create_order_success",
        order_id=order.id,
        currency=payload.currency,
        duration_seconds=time.time() - start_time,
    )
    return success_response(
        request, orderId=order.id, approvalUrl=order.approval_url, order=order.raw
    )


async def _capture_order(
    request: Request, gateway: PayPalClient, payload: CaptureOrderRequest
) -> JSONResponse:
    result = await gateway.capture_order(payload.order_id, payload.idempotency_key)
    logger.info(
        "api_capture_order_success",
        order_id=payload.order_id,
        transaction_id=result.transaction_id,
    )
    return success_response(
        request, captureResult=result.raw, transactionId=result.transaction_id
    )


@pricing_router.post(
    "/pricing/quote",
    response_model=PricingQuoteResponse,
    summary="Price an order",
    description="Service fee, delivery fee, discount and total for an order",
)
async def pricing_quote(
    request: Request,
    payload: PricingQuoteRequest,
    engine: PricingEngine = Depends(get_pricing_engine),
) -> Dict[str, Any]:
    if payload.enforce_minimum:
        engine.check_minimum_order(payload.subtotal, payload.currency)

    result = engine.calculate_order_total(
        payload.subtotal, payload.location, payload.currency, payload.discount_amount
    )
    metrics.record_pricing_quote(result.currency, result.delivery_tier.value)

    amounts = {
        "subtotal": result.subtotal,
        "serviceFee": result.service_fee,
        "deliveryFee": result.delivery_fee,
        "discountAmount": result.discount_amount,
        "total": result.total,
    }
    return {
        "success": True,
        "pricing": {
            **{name: float(value) for name, value in amounts.items()},
            "currency": result.currency,
            "deliveryTier": result.delivery_tier.value,
        },
        "formatted": {
            name: engine.format_currency(value, result.currency) for name, value in amounts.items()
        },
        "provider": engine.currency_table.payment_provider_for(result.currency),
        "requestId": get_request_id(request),
    }


@pricing_router.get(
    "/currencies",
    response_model=CurrencyListResponse,
    summary="Supported currencies",
)
async def list_currencies(
    request: Request,
    engine: PricingEngine = Depends(get_pricing_engine),
) -> Dict[str, Any]:
    table = engine.currency_table
    return {
        "success": True,
        "baseCurrency": table.base_currency.code,
        "currencies": [
            {
                "code": c.code,
                "name": c.name,
                "symbol": c.symbol,
                "isBaseCurrency": c.is_base,
                "rate": str(table.rate_for(c.code)),
                "minimumOrder": str(table.minimum_order_amount(c.code)),
                "provider": table.payment_provider_for(c.code),
            }
            for c in table.currencies()
        ],
        "requestId": get_request_id(request),
    }


@monitoring_router.get("/health", response_model=HealthCheckResponse, summary="Health check")
async def health(request: Request) -> Dict[str, Any]:
    """Configuration and pricing checks; no upstream calls."""
    health_check = HealthCheck(request.app.state.settings)
    return await health_check.check_all(getattr(request.app.state, "pricing_engine", None))


@monitoring_router.get("/health/live", response_model=HealthCheckResponse, summary="Liveness probe")
async def liveness(request: Request) -> Dict[str, Any]:
    return await HealthCheck(request.app.state.settings).liveness()


@monitoring_router.get("/health/ready", response_model=HealthCheckResponse, summary="Readiness probe")
async def readiness(request: Request) -> JSONResponse:
    health_check = HealthCheck(request.app.state.settings)
    result = await health_check.readiness(
        getattr(request.app.state, "pricing_engine", None),
        getattr(request.app.state, "gateway", None),
    )
    code = status.HTTP_200_OK if result["status"] == "healthy" else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=code, content=result)


@monitoring_router.get("/metrics", include_in_schema=False)
async def prometheus_metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
