"""
Main FastAPI application.

Payment gateway and pricing API with:
- CORS configuration
- Structured error envelopes
- Request ID tracking
- Structured logging
- Prometheus metrics
"""
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import httpx
import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from checkout_gateway.config import Settings, get_settings
from checkout_gateway.core.exceptions import (
    CredentialsNotConfigured,
    GatewayError,
    ValidationError,
)
from checkout_gateway.core.pricing import PricingEngine
from checkout_gateway.integrations.paypal_client import PayPalClient
from checkout_gateway.monitoring.logging import mask_secret, setup_logging

from .routes import CORS_HEADERS, get_request_id, monitoring_router, payment_router, pricing_router

# Setup logging first
setup_logging()
logger = structlog.get_logger(__name__)


def _error_response(request: Request, error: GatewayError, status_code: Optional[int] = None) -> JSONResponse:
    request_id = get_request_id(request)
    headers = dict(CORS_HEADERS)
    if request_id:
        # Unhandled errors are answered outside the request-id middleware
        headers["X-Request-ID"] = request_id
    return JSONResponse(
        status_code=status_code or error.http_status,
        content=error.to_envelope(request_id),
        headers=headers,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, Any]:
    """
    Application lifespan manager.

    Creates the shared HTTP client and the PayPal gateway on startup and
    closes the client on shutdown.
    """
    settings: Settings = app.state.settings
    logger.info(
        "application_startup",
        app_name=settings.app_name,
        env=settings.app_env,
        paypal_environment=settings.paypal_environment,
        paypal_base_url=settings.paypal_base_url,
        client_id=mask_secret(settings.paypal_client_id),
        client_secret="SET" if settings.paypal_client_secret else "NOT SET",
    )

    http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    app.state.http_client = http_client
    try:
        app.state.gateway = PayPalClient.from_settings(settings, http_client)
    except CredentialsNotConfigured:
        app.state.gateway = None
        logger.warning("paypal_credentials_missing")

    yield

    logger.info("application_shutdown")
    await http_client.aclose()
    logger.info("http_client_closed")


def create_app(
    settings: Optional[Settings] = None,
    pricing_engine: Optional[PricingEngine] = None,
) -> FastAPI:
    """Build the application. Pricing data is loaded eagerly; it is static."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Checkout Gateway",
        description=(
            "PayPal order protocol (create, capture, status) with idempotency keys, "
            "and multi-currency order pricing."
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings
    app.state.pricing_engine = pricing_engine or PricingEngine.from_file(
        settings.pricing_data_path, settings.service_fee_rate
    )
    app.state.gateway = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins_list(),
        allow_credentials=False,
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    @app.middleware("http")
    async def add_request_id_middleware(request: Request, call_next: Any) -> Response:
        """
        Add request ID to all requests for tracing.

        Reuses an inbound X-Request-ID so callers can correlate their own logs.
        """
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        start_time = time.time()

        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        logger.info(
            "request_started",
            client_host=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_seconds=time.time() - start_time,
            )
            return response

        except Exception as e:
            logger.error(
                "request_failed",
                error=str(e),
                duration_seconds=time.time() - start_time,
            )
            raise

        finally:
            structlog.contextvars.clear_contextvars()

    @app.exception_handler(GatewayError)
    async def gateway_exception_handler(request: Request, exc: GatewayError) -> JSONResponse:
        log = logger.warning if exc.http_status < 500 else logger.error
        log(
            "gateway_error",
            error_code=exc.error_code,
            error=exc.message,
            http_status=exc.http_status,
            retryable=exc.is_retryable,
        )
        return _error_response(request, exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"Invalid {field}: {first.get('msg', 'invalid value')}" if field else "Invalid request"
        logger.warning("request_validation_error", error=message)
        return _error_response(request, ValidationError(message))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            message = f"Method {request.method} not allowed. Only POST and GET requests are supported."
        else:
            message = str(exc.detail)
        error = GatewayError(message)
        return _error_response(request, error, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled exceptions.
        """
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        return _error_response(
            request,
            GatewayError("Internal server error"),
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    app.include_router(payment_router)
    app.include_router(pricing_router)
    app.include_router(monitoring_router)

    @app.get("/", tags=["root"])
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "service": settings.app_name,
            "version": "1.0.0",
            "status": "operational",
            "environment": settings.app_env,
            "paypal_environment": settings.paypal_environment,
            "docs": "/docs",
            "health": "/health",
            "metrics": "/metrics",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "checkout_gateway.api.main:app",
        host=_settings.api_host,
        port=_settings.api_port,
        reload=_settings.debug,
        log_level=_settings.log_level.lower(),
    )
