"""Tests for the analytics HTTP client."""

import httpx
import pytest

from src.integrations.analytics_api import AnalyticsClient, scope_base_path
from src.models.analytics import Bucket, GeoLevel
from src.models.errors import AnalyticsAPIError
from src.modules.analytics.tab_specs import get_tab_spec


def _client(handler, **kwargs):
    kwargs.setdefault("retry_backoff", 0)
    return AnalyticsClient(
        "https://shop.example.com/", transport=httpx.MockTransport(handler), **kwargs
    )


class TestScope:

    def test_base_paths(self):
        assert scope_base_path("admin") == "/api/admin/analytics"
        assert scope_base_path("producer") == "/api/producer/analytics"

    def test_unknown_scope(self):
        with pytest.raises(ValueError):
            AnalyticsClient("https://shop.example.com", scope="root")


class TestFetchTab:

    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"rows": [], "summary": {}})

        client = _client(handler, token="tok")
        payload = await client.fetch_tab(
            get_tab_spec("sales"), Bucket.WEEK, GeoLevel.REGION, "2025-01-01", "2025-01-31"
        )
        assert payload == {"rows": [], "summary": {}}
        assert seen["path"] == "/api/admin/analytics/sales/timeseries/"
        assert seen["params"] == {
            "bucket": "week", "date_from": "2025-01-01", "date_to": "2025-01-31",
        }
        assert seen["auth"] == "Bearer tok"

    @pytest.mark.asyncio
    async def test_producer_scope_and_level(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"rows": []})

        client = _client(handler, scope="producer")
        await client.fetch_tab(get_tab_spec("geo"), Bucket.DAY, GeoLevel.CITY, "", "")
        assert seen["path"] == "/api/producer/analytics/geo/deep/"
        assert seen["params"] == {"level": "city"}
        assert seen["auth"] is None

    @pytest.mark.asyncio
    async def test_list_payload_is_wrapped(self):
        client = _client(lambda request: httpx.Response(200, json=[{"id": 1}]))
        payload = await client.fetch_tab(
            get_tab_spec("sales"), Bucket.DAY, GeoLevel.REGION, "2025-01-01", "2025-01-31"
        )
        assert payload == {"rows": [{"id": 1}]}

    @pytest.mark.asyncio
    async def test_error_carries_body(self):
        client = _client(lambda request: httpx.Response(403, json={"detail": "Forbidden"}))
        with pytest.raises(AnalyticsAPIError) as excinfo:
            await client.fetch_tab(
                get_tab_spec("orders"), Bucket.DAY, GeoLevel.REGION, "2025-01-01", "2025-01-31"
            )
        assert excinfo.value.status_code == 403
        assert excinfo.value.body == {"detail": "Forbidden"}
        assert "/api/admin/analytics/orders/deep/" in excinfo.value.url

    @pytest.mark.asyncio
    async def test_text_error_body(self):
        client = _client(lambda request: httpx.Response(502, text="Bad gateway"))
        with pytest.raises(AnalyticsAPIError) as excinfo:
            await client.get("/anything")
        assert excinfo.value.body == "Bad gateway"

    @pytest.mark.asyncio
    async def test_retries_on_429(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(429)
            return httpx.Response(200, json={"ok": True})

        client = _client(handler, max_retries=2)
        assert await client.get("/x") == {"ok": True}
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self):
        client = _client(lambda request: httpx.Response(429, json={}), max_retries=1)
        with pytest.raises(AnalyticsAPIError) as excinfo:
            await client.get("/x")
        assert excinfo.value.status_code == 429
