"""Unit tests for MarketDataClient: httpx POST to the candle provider."""

from __future__ import annotations

import json

import httpx
import pytest

from candle_chart.config import Settings
from candle_chart.errors import (
    NetworkError,
    NotFoundError,
    PipelineTimeoutError,
    RateLimitedError,
    SchemaError,
    ServiceError,
)
from candle_chart.market.provider import MarketDataClient


def _client(settings: Settings, handler) -> MarketDataClient:
    return MarketDataClient(settings, transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# fetch_candles()
# ---------------------------------------------------------------------------


class TestFetchCandles:
    async def test_posts_coin_interval_limit(self, settings: Settings) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"candles": []})

        payload = await _client(settings, handler).fetch_candles("BTC", "4h", 20)

        assert payload == {"candles": []}
        assert len(seen) == 1
        assert str(seen[0].url) == "http://provider.test/api/tgbot/hyperliquid/candles"
        assert seen[0].method == "POST"
        assert json.loads(seen[0].content) == {"coin": "BTC", "interval": "4h", "limit": 20}
        assert "authorization" not in seen[0].headers

    async def test_bearer_header_when_api_key_set(self, settings: Settings) -> None:
        settings.PROVIDER_API_KEY = "secret"
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"candles": []})

        await _client(settings, handler).fetch_candles("BTC", "1h", 20)

        assert seen[0].headers["authorization"] == "Bearer secret"

    async def test_base_url_trailing_slash(self) -> None:
        settings = Settings(PROVIDER_BASE_URL="http://provider.test/")
        client = MarketDataClient(settings)

        assert client.url == "http://provider.test/api/tgbot/hyperliquid/candles"

    @pytest.mark.parametrize(
        "status, error_cls",
        [(404, NotFoundError), (429, RateLimitedError), (500, ServiceError), (503, ServiceError)],
    )
    async def test_status_mapping(self, settings: Settings, status: int, error_cls) -> None:
        client = _client(settings, lambda request: httpx.Response(status, text="boom"))

        with pytest.raises(error_cls) as exc_info:
            await client.fetch_candles("BTC", "1h", 20)

        assert exc_info.value.status_code == status
        assert exc_info.value.symbol == "BTC"

    async def test_timeout_maps_to_timeout_error(self, settings: Settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(PipelineTimeoutError):
            await _client(settings, handler).fetch_candles("BTC", "1h", 20)

    async def test_connect_error_maps_to_network_error(self, settings: Settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(NetworkError):
            await _client(settings, handler).fetch_candles("BTC", "1h", 20)

    async def test_non_json_body_is_schema_error(self, settings: Settings) -> None:
        client = _client(settings, lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(SchemaError):
            await client.fetch_candles("BTC", "1h", 20)

    async def test_non_object_envelope_is_schema_error(self, settings: Settings) -> None:
        client = _client(settings, lambda request: httpx.Response(200, json=[1, 2, 3]))

        with pytest.raises(SchemaError):
            await client.fetch_candles("BTC", "1h", 20)


# ---------------------------------------------------------------------------
# health_check()
# ---------------------------------------------------------------------------


class TestHealthCheck:
    async def test_healthy(self, settings: Settings) -> None:
        client = _client(settings, lambda request: httpx.Response(200, json={"candles": []}))
        assert await client.health_check() is True

    async def test_unhealthy_on_error(self, settings: Settings) -> None:
        client = _client(settings, lambda request: httpx.Response(502))
        assert await client.health_check() is False
