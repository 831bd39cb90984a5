"""
Unit tests for request parsing, settings and log masking.
"""
import io
import json
import logging
from typing import Iterator

import pytest
import structlog

from checkout_gateway.api.schemas import (
    CaptureOrderRequest,
    CreateOrderRequest,
    OrderStatusRequest,
    parse_gateway_request,
)
from checkout_gateway.config import Settings
from checkout_gateway.core.exceptions import GatewayError, ValidationError
from checkout_gateway.monitoring.logging import mask_secret, redact_secrets, setup_logging


class TestParseGatewayRequest:
    """Test suite for the action-discriminated request union."""

    @pytest.mark.unit
    def test_create_order(self) -> None:
        request = parse_gateway_request(
            {
                "action": "create-order",
                "amount": "12.50",
                "currency": "gbp",
                "customerEmail": " buyer@example.com ",
                "idempotencyKey": "dw-1",
            }
        )

        assert isinstance(request, CreateOrderRequest)
        assert request.amount == 12.5
        assert request.currency == "GBP"
        assert request.customer_email == "buyer@example.com"
        assert request.idempotency_key == "dw-1"

    @pytest.mark.unit
    def test_capture_and_status(self) -> None:
        capture = parse_gateway_request({"action": "capture-order", "orderId": "ORDER-1"})
        status = parse_gateway_request({"action": "order-status", "orderId": "ORDER-1"})

        assert isinstance(capture, CaptureOrderRequest)
        assert capture.idempotency_key is None
        assert isinstance(status, OrderStatusRequest)
        assert status.order_id == "ORDER-1"

    @pytest.mark.unit
    @pytest.mark.parametrize("body", [{"action": "refund"}, {}, {"action": None}])
    def test_unknown_action(self, body: dict) -> None:
        """Test actions outside the closed set are rejected."""
        with pytest.raises(ValidationError, match="Unknown action"):
            parse_gateway_request(body)

    @pytest.mark.unit
    def test_missing_order_id(self) -> None:
        with pytest.raises(ValidationError, match="Missing required field: orderId"):
            parse_gateway_request({"action": "capture-order"})

    @pytest.mark.unit
    def test_invalid_email(self) -> None:
        with pytest.raises(ValidationError, match="Invalid customerEmail"):
            parse_gateway_request(
                {
                    "action": "create-order",
                    "amount": 10,
                    "currency": "USD",
                    "customerEmail": "not-an-email",
                }
            )


class TestSettings:
    """Test suite for Settings."""

    @pytest.mark.unit
    def test_defaults(self) -> None:
        settings = Settings(_env_file=None, paypal_client_id=None, paypal_client_secret=None)

        assert settings.paypal_environment == "sandbox"
        assert settings.paypal_base_url == "https://api-m.sandbox.paypal.com"
        assert settings.token_buffer_seconds == 300
        assert not settings.has_paypal_credentials

    @pytest.mark.unit
    def test_base_url_override(self) -> None:
        settings = Settings(_env_file=None, PAYPAL_BASE_URL="http://localhost:9000/")

        assert settings.paypal_base_url == "http://localhost:9000"

    @pytest.mark.unit
    def test_environment_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PAYPAL_ENVIRONMENT", "Production")
        monkeypatch.setenv("PAYPAL_CLIENT_ID", "client")
        monkeypatch.setenv("PAYPAL_CLIENT_SECRET", "secret")

        settings = Settings(_env_file=None)

        assert settings.paypal_environment == "production"
        assert settings.paypal_base_url == "https://api-m.paypal.com"
        assert settings.has_paypal_credentials

    @pytest.mark.unit
    def test_invalid_environment(self) -> None:
        with pytest.raises(ValueError, match="Invalid PayPal environment"):
            Settings(_env_file=None, paypal_environment="staging")

    @pytest.mark.unit
    def test_allowed_origins_list(self) -> None:
        settings = Settings(
            _env_file=None, allowed_origins="https://dritchwear.com, https://admin.dritchwear.com"
        )

        assert settings.get_allowed_origins_list() == [
            "https://dritchwear.com",
            "https://admin.dritchwear.com",
        ]


class TestMaskSecret:
    """Test suite for credential masking."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, "NOT SET"),
            ("", "NOT SET"),
            ("short", "***"),
            ("AbCdEfGhIjKlMnOpQr", "AbCdEfGhIj..."),
        ],
    )
    def test_mask(self, value: str, expected: str) -> None:
        assert mask_secret(value) == expected

    @pytest.mark.unit
    def test_redact_secrets_processor(self) -> None:
        """Test credential-like keys are masked before rendering."""
        event = redact_secrets(
            None,
            "info",
            {
                "event": "access_token_obtained",
                "access_token": "A21AAverysecrettokenvalue",
                "authorization": "Basic QWJjOkRlZg==",
                "order_id": "5O190127TN364715T",
            },
        )

        assert event["access_token"] == "A21AAv..."
        assert event["authorization"] == "Basic ..."
        assert event["order_id"] == "5O190127TN364715T"


@pytest.fixture
def captured_logs() -> Iterator[io.StringIO]:
    """Route logging into a buffer, then put the old root handlers back."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    stream = io.StringIO()
    setup_logging("INFO", stream=stream)
    yield stream
    root.handlers[:] = handlers
    root.setLevel(level)


class TestLogOutput:
    """Test suite for the rendered log lines."""

    @pytest.mark.unit
    def test_structlog_event_is_json_message(self, captured_logs: io.StringIO) -> None:
        """Test structlog JSON arrives as the message of a python-json-logger record."""
        structlog.get_logger("checkout_gateway.tests").info(
            "access_token_obtained", access_token="A21AAverysecrettokenvalue", expires_in=32400
        )

        record = json.loads(captured_logs.getvalue().strip().splitlines()[-1])
        assert record["level"] == "INFO"
        assert record["logger"] == "checkout_gateway.tests"

        event = json.loads(record["message"])
        assert event["event"] == "access_token_obtained"
        assert event["access_token"] == "A21AAv..."
        assert event["expires_in"] == 32400
        assert "A21AAverysecrettokenvalue" not in captured_logs.getvalue()

    @pytest.mark.unit
    def test_stdlib_record_is_plain_message(self, captured_logs: io.StringIO) -> None:
        logging.getLogger("checkout_gateway.tests.stdlib").warning("Started server process")

        record = json.loads(captured_logs.getvalue().strip().splitlines()[-1])
        assert record["message"] == "Started server process"
        assert record["level"] == "WARNING"
        assert record["@timestamp"]


class TestErrorEnvelope:
    """Test suite for the structured failure body."""

    @pytest.mark.unit
    def test_envelope_fields(self) -> None:
        envelope = ValidationError("Invalid amount").to_envelope("req-1")

        assert envelope["success"] is False
        assert envelope["error"] == "Invalid amount"
        assert envelope["code"] == "validation_error"
        assert envelope["requestId"] == "req-1"
        assert envelope["timestamp"]

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "message,retryable",
        [
            ("Network error during capture", True),
            ("upstream returned 503", True),
            ("Invalid amount", False),
        ],
    )
    def test_retryable_classification(self, message: str, retryable: bool) -> None:
        assert GatewayError(message).is_retryable is retryable
