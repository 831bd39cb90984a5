"""
OAuth2 client-credentials token management for the PayPal REST API.

Implements:
- A single cached access token with expiry tracking
- A buffer window so tokens are refreshed before they expire mid-flight
- Single-flight refresh: concurrent callers wait for one exchange
- No automatic retries; failures surface as AuthFailure
"""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import httpx
import structlog
from pydantic import BaseModel, ConfigDict

from checkout_gateway.core.exceptions import AuthFailure
from checkout_gateway.monitoring.logging import mask_secret
from checkout_gateway.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)

TOKEN_PATH = "/v1/oauth2/token"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccessToken(BaseModel):
    """Bearer token issued by the provider. Replaced on refresh, never mutated."""

    value: str
    expires_at: datetime

    model_config = ConfigDict(frozen=True)

    def is_fresh(self, now: datetime, buffer: timedelta) -> bool:
        return now < self.expires_at - buffer

    def __repr__(self) -> str:
        return f"AccessToken({mask_secret(self.value, 6)}, expires_at={self.expires_at.isoformat()})"

    __str__ = __repr__


class TokenStore:
    """
    Holder for the one cached access token.

    Reads are lock-free; the lock only serializes refreshes so that callers
    racing on a stale token trigger a single exchange.
    """

    def __init__(self) -> None:
        self._token: Optional[AccessToken] = None
        self.refresh_lock = asyncio.Lock()

    def get(self) -> Optional[AccessToken]:
        return self._token

    def set(self, token: AccessToken) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class TokenManager:
    """
    Obtains and caches PayPal access tokens.

    A cached token is reused while `now < expires_at - buffer`; otherwise a
    client-credentials exchange is performed against the token endpoint.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        client_id: str,
        client_secret: str,
        base_url: str,
        buffer_seconds: int = 300,
        store: Optional[TokenStore] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._http = http_client
        self._client_id = client_id
        self._client_secret = client_secret
        self.token_url = f"{base_url.rstrip('/')}{TOKEN_PATH}"
        self.buffer = timedelta(seconds=buffer_seconds)
        self.store = store or TokenStore()
        self._clock = clock

    def _cached(self) -> Optional[AccessToken]:
        token = self.store.get()
        if token is not None and token.is_fresh(self._clock(), self.buffer):
            return token
        return None

    async def get_access_token(self) -> AccessToken:
        """
        Return a usable access token, exchanging credentials if needed.

        Returns:
            AccessToken: Cached or freshly issued token

        Raises:
            AuthFailure: If the exchange fails for any reason
        """
        token = self._cached()
        if token is not None:
            logger.debug("access_token_cache_hit")
            metrics.record_token_lookup("cache")
            return token

        async with self.store.refresh_lock:
            # Another caller may have refreshed while we waited
            token = self._cached()
            if token is not None:
                metrics.record_token_lookup("cache")
                return token

            try:
                token = await self._exchange()
            except AuthFailure:
                metrics.record_token_lookup("failed")
                raise

            self.store.set(token)
            metrics.record_token_lookup("exchange")
            return token

    def invalidate(self) -> None:
        """Drop the cached token so the next call performs an exchange."""
        self.store.clear()
        logger.info("access_token_invalidated")

    async def _exchange(self) -> AccessToken:
        logger.info(
            "access_token_requested",
            token_url=self.token_url,
            client_id=mask_secret(self._client_id),
        )
        issued_at = self._clock()

        try:
            response = await self._http.post(
                self.token_url,
                auth=httpx.BasicAuth(self._client_id, self._client_secret),
                data={"grant_type": "client_credentials"},
                headers={"Accept": "application/json", "Accept-Language": "en_US"},
            )
        except httpx.HTTPError as e:
            logger.error(
                "access_token_transport_error",
                error_type=type(e).__name__,
                error=str(e),
            )
            raise AuthFailure(
                f"PayPal authentication failed: network error ({type(e).__name__})"
            ) from e

        if not response.is_success:
            body = response.text
            rejected = response.status_code == 401 or "invalid_client" in body
            logger.error(
                "access_token_rejected",
                status_code=response.status_code,
                credentials_rejected=rejected,
                error=body,
            )
            raise AuthFailure(
                f"PayPal authentication failed: {response.status_code} - {body}",
                status_code=response.status_code,
                body=body,
                credentials_rejected=rejected,
            )

        try:
            data = response.json()
            value = data["access_token"]
            expires_in = int(data["expires_in"])
        except (ValueError, KeyError, TypeError) as e:
            logger.error("access_token_malformed_response", status_code=response.status_code)
            raise AuthFailure(
                "PayPal authentication failed: malformed token response",
                status_code=response.status_code,
            ) from e

        token = AccessToken(value=value, expires_at=issued_at + timedelta(seconds=expires_in))
        logger.info("access_token_obtained", expires_at=token.expires_at.isoformat())
        return token
