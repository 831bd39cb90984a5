"""
Health check endpoints for liveness/readiness probes.

Checks:
- PayPal credentials are configured
- Pricing data is loaded
- PayPal token endpoint reachability (readiness only)
"""
from typing import Any, Dict, Optional

import structlog

from checkout_gateway.config import Settings, get_settings
from checkout_gateway.core.exceptions import AuthFailure

logger = structlog.get_logger(__name__)


class HealthCheck:
    """
    Health check service for the gateway's dependencies.

    Provides:
    - Configuration check
    - Pricing data check
    - PayPal authentication check
    - Overall system health status
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

    def check_configuration(self) -> Dict[str, Any]:
        configured = self.settings.has_paypal_credentials
        return {
            "status": "healthy" if configured else "unhealthy",
            "service": "configuration",
            "paypal_environment": self.settings.paypal_environment,
            "message": (
                "PayPal credentials configured"
                if configured
                else "PAYPAL_CLIENT_ID / PAYPAL_CLIENT_SECRET not set"
            ),
        }

    @staticmethod
    def check_pricing(pricing_engine: Any) -> Dict[str, Any]:
        if pricing_engine is None:
            return {"status": "unhealthy", "service": "pricing", "message": "Pricing data not loaded"}
        return {
            "status": "healthy",
            "service": "pricing",
            "base_currency": pricing_engine.currency_table.base_currency.code,
            "currencies": len(pricing_engine.currency_table.codes),
        }

    @staticmethod
    async def check_paypal(gateway: Any) -> Dict[str, Any]:
        """Obtain (or reuse) an access token to prove the credentials work."""
        if gateway is None:
            return {"status": "unhealthy", "service": "paypal", "message": "Gateway not configured"}
        try:
            await gateway.token_manager.get_access_token()
        except AuthFailure as e:
            logger.error("paypal_health_check_failed", error_code=e.error_code)
            return {"status": "unhealthy", "service": "paypal", "message": e.error_code}
        return {"status": "healthy", "service": "paypal", "message": "Token available"}

    async def liveness(self) -> Dict[str, Any]:
        """Liveness probe - process is up."""
        return {"status": "healthy", "message": "Service is alive"}

    async def check_all(self, pricing_engine: Any) -> Dict[str, Any]:
        """Configuration and pricing checks, no network calls."""
        checks = {
            "configuration": self.check_configuration(),
            "pricing": self.check_pricing(pricing_engine),
        }
        healthy = all(c["status"] == "healthy" for c in checks.values())
        return {"status": "healthy" if healthy else "unhealthy", "checks": checks}

    async def readiness(self, pricing_engine: Any, gateway: Any) -> Dict[str, Any]:
        """Readiness probe - also verifies PayPal authentication."""
        result = await self.check_all(pricing_engine)
        result["checks"]["paypal"] = await self.check_paypal(gateway)
        if result["checks"]["paypal"]["status"] != "healthy":
            result["status"] = "unhealthy"
        return result
