"""HTTP client utilities for provider APIs and the local proxy"""

import logging
from typing import Any

import httpx

from ..providers.base import RateLimitError, TransportError, UpstreamError

logger = logging.getLogger(__name__)


class HTTPClient:
    """Async JSON-over-HTTP client wrapper.

    Performs single-attempt GET requests and maps failures onto the provider
    error taxonomy: network problems raise TransportError, non-2xx responses
    raise UpstreamError (RateLimitError for 429).
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
        provider: str | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.provider = provider
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Make GET request and return the decoded JSON body"""
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        try:
            response = await self.client.get(path, params=clean_params, headers=headers)
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timed out after {self.timeout}s: {path}", url=path) from e
        except (httpx.RequestError, httpx.InvalidURL) as e:
            # Includes undecodable bodies and invalid URLs
            raise TransportError(f"Request failed: {e}", url=path) from e

        if response.is_error:
            raise self._upstream_error(response)

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                f"Upstream returned a non-JSON body for {path}",
                status_code=502,
                body=response.text,
                provider=self.provider,
            ) from e

    def _upstream_error(self, response: httpx.Response) -> UpstreamError:
        """Build the error for a non-2xx response, keeping the upstream body."""
        try:
            body = response.json()
        except ValueError:
            body = response.text or None

        message = f"Upstream request failed: {response.status_code} {response.reason_phrase}"
        logger.debug(f"{message} ({response.request.url})")

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            return RateLimitError(
                message,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                body=body,
                provider=self.provider,
            )
        return UpstreamError(
            message, status_code=response.status_code, body=body, provider=self.provider
        )

    async def health_check(self, path: str = "/health") -> bool:
        """Check service health"""
        try:
            response = await self.client.get(path, timeout=5)
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    async def aclose(self):
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
