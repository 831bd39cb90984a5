"""
Pytest configuration and fixtures.

Upstream PayPal calls are served by an in-process stub mounted on
httpx.MockTransport; nothing leaves the test process.
"""
import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator, Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio

from checkout_gateway.api.main import create_app
from checkout_gateway.api.routes import get_gateway
from checkout_gateway.config import Settings
from checkout_gateway.config.settings import DEFAULT_PRICING_DATA
from checkout_gateway.core.pricing import PricingEngine
from checkout_gateway.integrations.paypal_client import PayPalClient
from checkout_gateway.integrations.token_manager import TokenManager

SANDBOX_URL = "https://api-m.sandbox.paypal.com"
TEST_CLIENT_ID = "AbCdEfGhIjKlMnOp-test-client"
TEST_CLIENT_SECRET = "EFgh-test-secret-value"


class FakeClock:
    """Manually advanced clock for token expiry tests."""

    def __init__(self) -> None:
        self.now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakePayPal:
    """
    Minimal PayPal Orders v2 stub.

    Deduplicates order creation on PayPal-Request-Id the way the real API
    does, and records every request so tests can inspect headers and bodies.
    """

    def __init__(self) -> None:
        self.token_calls = 0
        self.token_requests: List[httpx.Request] = []
        self.expires_in = 32400
        self.reject_auth = False
        self.token_delay = 0.0

        self.orders: Dict[str, Dict[str, Any]] = {}
        self.orders_by_key: Dict[str, str] = {}
        self.create_payloads: List[Dict[str, Any]] = []
        self.create_keys: List[Optional[str]] = []
        self.capture_keys: List[Optional[str]] = []
        self.order_requests: List[httpx.Request] = []

        self.omit_approval_link = False
        self.capture_without_record = False
        self.fail_with: Optional[Tuple[int, str]] = None
        self.raise_on_orders: Optional[Exception] = None

    @property
    def order_count(self) -> int:
        return len(self.orders)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/v1/oauth2/token":
            return await self._token(request)

        self.order_requests.append(request)
        if self.raise_on_orders is not None:
            raise self.raise_on_orders
        if self.fail_with is not None:
            status_code, body = self.fail_with
            return httpx.Response(status_code, text=body)
        if not request.headers.get("authorization", "").startswith("Bearer "):
            return httpx.Response(401, json={"error": "invalid_token"})

        if request.method == "POST" and path == "/v2/checkout/orders":
            return self._create(request)
        if request.method == "POST" and path.endswith("/capture"):
            return self._capture(request, path.split("/")[-2])
        if request.method == "GET" and path.startswith("/v2/checkout/orders/"):
            return self._status(path.split("/")[-1])
        return httpx.Response(404, json={"name": "RESOURCE_NOT_FOUND"})

    async def _token(self, request: httpx.Request) -> httpx.Response:
        self.token_calls += 1
        self.token_requests.append(request)
        if self.token_delay:
            await asyncio.sleep(self.token_delay)
        if self.reject_auth:
            return httpx.Response(
                401,
                json={"error": "invalid_client", "error_description": "Client Authentication failed"},
            )
        return httpx.Response(
            200,
            json={
                "scope": "https://uri.paypal.com/services/payments/payment",
                "access_token": f"A21AAtest-token-{self.token_calls}",
                "token_type": "Bearer",
                "app_id": "APP-80W284485P519543T",
                "expires_in": self.expires_in,
            },
        )

    def _create(self, request: httpx.Request) -> httpx.Response:
        key = request.headers.get("paypal-request-id")
        payload = json.loads(request.content)
        self.create_payloads.append(payload)
        self.create_keys.append(key)

        if key and key in self.orders_by_key:
            return httpx.Response(200, json=self.orders[self.orders_by_key[key]])

        order_id = f"5O190127TN36471{len(self.orders) + 1:02d}"
        links = [
            {
                "href": f"{SANDBOX_URL}/v2/checkout/orders/{order_id}",
                "rel": "self",
                "method": "GET",
            }
        ]
        if not self.omit_approval_link:
            links.append(
                {
                    "href": f"https://www.sandbox.paypal.com/checkoutnow?token={order_id}",
                    "rel": "approve",
                    "method": "GET",
                }
            )
        order = {
            "id": order_id,
            "status": "CREATED",
            "purchase_units": payload["purchase_units"],
            "links": links,
        }
        self.orders[order_id] = order
        if key:
            self.orders_by_key[key] = order_id
        return httpx.Response(201, json=order)

    def _capture(self, request: httpx.Request, order_id: str) -> httpx.Response:
        self.capture_keys.append(request.headers.get("paypal-request-id"))
        if order_id not in self.orders:
            return httpx.Response(
                404,
                json={"name": "RESOURCE_NOT_FOUND", "message": "The specified resource does not exist."},
            )

        captures = [] if self.capture_without_record else [
            {
                "id": "3C679366HH908993F",
                "status": "COMPLETED",
                "amount": self.orders[order_id]["purchase_units"][0]["amount"],
            }
        ]
        order = dict(self.orders[order_id], status="COMPLETED")
        order["purchase_units"] = [
            dict(order["purchase_units"][0], payments={"captures": captures})
        ]
        self.orders[order_id] = order
        return httpx.Response(201, json=order)

    def _status(self, order_id: str) -> httpx.Response:
        if order_id not in self.orders:
            return httpx.Response(
                404,
                json={"name": "RESOURCE_NOT_FOUND", "message": "The specified resource does not exist."},
            )
        return httpx.Response(200, json=self.orders[order_id])


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        _env_file=None,
        paypal_client_id=TEST_CLIENT_ID,
        paypal_client_secret=TEST_CLIENT_SECRET,
        paypal_environment="sandbox",
        app_name="checkout-gateway-test",
        app_env="test",
        log_level="DEBUG",
        debug=True,
    )


@pytest.fixture
def unconfigured_settings() -> Settings:
    """Settings without PayPal credentials."""
    return Settings(
        _env_file=None,
        paypal_client_id=None,
        paypal_client_secret=None,
        app_env="test",
    )


@pytest.fixture(scope="session")
def pricing_engine() -> PricingEngine:
    """Pricing engine over the bundled pricing data."""
    return PricingEngine.from_file(DEFAULT_PRICING_DATA)


@pytest.fixture
def paypal_stub() -> FakePayPal:
    return FakePayPal()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def http_client(paypal_stub: FakePayPal) -> AsyncGenerator[httpx.AsyncClient, Any]:
    """HTTP client whose transport is the PayPal stub."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(paypal_stub.handle)) as client:
        yield client


@pytest.fixture
def token_manager(http_client: httpx.AsyncClient, clock: FakeClock) -> TokenManager:
    return TokenManager(
        http_client,
        client_id=TEST_CLIENT_ID,
        client_secret=TEST_CLIENT_SECRET,
        base_url=SANDBOX_URL,
        buffer_seconds=300,
        clock=clock,
    )


@pytest.fixture
def gateway(http_client: httpx.AsyncClient, token_manager: TokenManager) -> PayPalClient:
    return PayPalClient(http_client, token_manager, base_url=SANDBOX_URL)


@pytest_asyncio.fixture
async def api_client(
    test_settings: Settings,
    pricing_engine: PricingEngine,
    gateway: PayPalClient,
) -> AsyncGenerator[httpx.AsyncClient, Any]:
    """ASGI client for the app, with the gateway wired to the PayPal stub."""
    app = create_app(test_settings, pricing_engine)
    app.state.gateway = gateway
    app.dependency_overrides[get_gateway] = lambda: gateway
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def unconfigured_api_client(
    unconfigured_settings: Settings,
    pricing_engine: PricingEngine,
) -> AsyncGenerator[httpx.AsyncClient, Any]:
    """ASGI client for an app started without PayPal credentials."""
    app = create_app(unconfigured_settings, pricing_engine)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def create_order_body() -> Dict[str, Any]:
    """Sample create-order request body."""
    return {
        "action": "create-order",
        "amount": 49.99,
        "currency": "usd",
        "customerEmail": "buyer@example.com",
        "customerName": "Ada Obi",
        "userId": "123e4567-e89b-12d3-a456-426614174000",
    }
