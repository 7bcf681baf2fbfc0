"""HTTP client for the marketplace analytics endpoints."""

import asyncio
import json
import logging
from typing import Any, Optional

import httpx

from src.models.analytics import Bucket, GeoLevel
from src.models.errors import AnalyticsAPIError
from src.modules.analytics.tab_specs import TabSpec

logger = logging.getLogger(__name__)

SCOPE_BASE_PATHS = {
    "admin": "/api/admin/analytics",
    "producer": "/api/producer/analytics",
}


def scope_base_path(scope: str) -> str:
    """Analytics base path for ``admin`` or ``producer`` scope."""
    try:
        return SCOPE_BASE_PATHS[scope]
    except KeyError:
        raise ValueError(f"Unknown analytics scope: {scope!r}") from None


class AnalyticsClient:
    """Client for the analytics API.

    Relative paths are resolved against ``base_url``; a bearer token is sent
    when configured.  Non-2xx responses raise ``AnalyticsAPIError`` carrying
    the response body.

    Usage::

        client = AnalyticsClient("https://shop.example.com", token="...")
        payload = await client.fetch_tab(spec, Bucket.DAY, GeoLevel.REGION,
                                         "2025-01-01", "2025-01-31")
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        scope: str = "admin",
        timeout: float = 30.0,
        max_retries: int = 2,
        retry_backoff: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._base_path = scope_base_path(scope)
        self._timeout = timeout
        self._max_retries = max_retries
        self._retry_backoff = retry_backoff
        self._transport = transport

    @property
    def base_path(self) -> str:
        return self._base_path

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers(),
            timeout=self._timeout,
            transport=self._transport,
        )

    @staticmethod
    def _decode_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except (json.JSONDecodeError, ValueError):
            return response.text

    async def _request_with_retry(
        self,
        client: httpx.AsyncClient,
        path: str,
        params: dict[str, str],
    ) -> Any:
        """GET with exponential backoff retry on timeouts and 429."""
        for attempt in range(self._max_retries + 1):
            try:
                response = await client.get(path, params=params)
            except httpx.TimeoutException:
                if attempt < self._max_retries:
                    wait = self._retry_backoff * (2 ** attempt)
                    logger.warning(
                        "Analytics timeout on %s. Retry %d/%d in %.1fs...",
                        path, attempt + 1, self._max_retries, wait,
                    )
                    await asyncio.sleep(wait)
                    continue
                raise

            if response.status_code == 429 and attempt < self._max_retries:
                wait = self._retry_backoff * (2 ** attempt)
                logger.warning(
                    "Analytics 429 on %s. Retry %d/%d in %.1fs...",
                    path, attempt + 1, self._max_retries, wait,
                )
                await asyncio.sleep(wait)
                continue

            if response.is_success:
                return self._decode_body(response)
            raise AnalyticsAPIError(
                response.status_code, str(response.request.url), self._decode_body(response)
            )
        return {}

    async def get(self, path: str, params: Optional[dict[str, str]] = None) -> Any:
        """GET a path relative to the base URL and return the decoded JSON."""
        async with self._client() as client:
            return await self._request_with_retry(client, path, params or {})

    def tab_path(self, spec: TabSpec) -> str:
        return self._base_path + spec.path

    def tab_params(
        self,
        spec: TabSpec,
        bucket: Bucket,
        level: GeoLevel,
        date_from: str,
        date_to: str,
    ) -> dict[str, str]:
        params = spec.query(bucket, level)
        if date_from:
            params["date_from"] = date_from
        if date_to:
            params["date_to"] = date_to
        return params

    async def fetch_tab(
        self,
        spec: TabSpec,
        bucket: Bucket,
        level: GeoLevel,
        date_from: str,
        date_to: str,
    ) -> dict[str, Any]:
        """Fetch the payload of one report tab.

        Raises:
            AnalyticsAPIError: On a non-2xx response.
            httpx.HTTPError: On transport failures after retries.
        """
        path = self.tab_path(spec)
        params = self.tab_params(spec, bucket, level, date_from, date_to)
        logger.info("Fetching %s %s", spec.key, path)
        data = await self.get(path, params)
        if not isinstance(data, dict):
            logger.warning("Unexpected %s payload type %s", spec.key, type(data).__name__)
            return {"rows": data} if isinstance(data, list) else {}
        return data
