"""Market-data provider HTTP client (httpx)."""

from __future__ import annotations

import json

import httpx
import structlog

from candle_chart.config import Settings
from candle_chart.errors import SchemaError, classify_http_status, wrap_exception

logger = structlog.get_logger()


class MarketDataClient:
    """POSTs {coin, interval, limit} to the provider and returns the decoded envelope."""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.transport = transport
        self.url = f"{settings.PROVIDER_BASE_URL.rstrip('/')}{settings.PROVIDER_CANDLES_PATH}"

    async def fetch_candles(self, symbol: str, interval: str, count: int) -> dict:
        """Raises ChartPipelineError subclasses on transport, status or decoding failures."""
        headers = {"Content-Type": "application/json"}
        if self.settings.PROVIDER_API_KEY:
            headers["Authorization"] = f"Bearer {self.settings.PROVIDER_API_KEY}"

        try:
            async with httpx.AsyncClient(
                transport=self.transport,
                timeout=self.settings.PROVIDER_TIMEOUT_SECONDS,
            ) as http:
                response = await http.post(
                    self.url,
                    headers=headers,
                    json={"coin": symbol, "interval": interval, "limit": count},
                )
        except httpx.HTTPError as e:
            raise wrap_exception(e, symbol=symbol, endpoint=self.url) from e

        if response.status_code >= 400:
            raise classify_http_status(
                response.status_code,
                response.text,
                symbol=symbol,
                endpoint=self.url,
            )

        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SchemaError(
                f"Provider returned a non-JSON body: {response.text[:200]}",
                symbol=symbol,
                endpoint=self.url,
            ) from e

        logger.debug(
            "provider_response",
            symbol=symbol,
            interval=interval,
            requested=count,
            status=response.status_code,
        )
        if not isinstance(payload, dict):
            raise SchemaError(
                f"Provider envelope is not an object: {str(payload)[:200]}",
                symbol=symbol,
                endpoint=self.url,
            )
        return payload

    async def health_check(self) -> bool:
        try:
            await self.fetch_candles("BTC", "1h", 10)
            return True
        except Exception as e:
            logger.warning("provider_health_check_failed", error=str(e))
            return False
