"""Raw provider records -> canonical, time-ascending CandleWindow."""

from __future__ import annotations

import math
import re
import time
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog

from candle_chart.errors import (
    InsufficientDataError,
    InvalidRequestError,
    NoDataError,
    SchemaError,
)
from candle_chart.models.candle import Candle, CandleWindow, is_valid_interval

if TYPE_CHECKING:
    from candle_chart.market.provider import MarketDataClient

logger = structlog.get_logger()

MILLISECOND_THRESHOLD = 10**12

_NON_NUMERIC = re.compile(r"[^\d.\-]")
_NUMERIC_PREFIX = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def parse_numeric(value: Any) -> float:
    """
    Coerce a provider field to float. Anything unparseable becomes 0.

    Strings keep only digits, "." and a leading "-", then the longest
    numeric prefix is read: "$1,234.50" -> 1234.5, "100.5-" -> 100.5,
    "1.2.3" -> 1.2.
    """
    if value is None or value == "" or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return 0.0 if math.isnan(value) or math.isinf(value) else float(value)
    if isinstance(value, str):
        kept = _NON_NUMERIC.sub("", value)
        match = _NUMERIC_PREFIX.match(kept.replace("-", ""))
        if match is None:
            return 0.0
        parsed = float(match.group())
        if kept.startswith("-"):
            parsed = -parsed
        return 0.0 if math.isinf(parsed) else parsed
    return 0.0


def parse_timestamp(value: Any) -> int:
    """Epoch seconds; millisecond values (>= 1e12) are downscaled, garbage -> now."""
    if isinstance(value, bool):
        return int(time.time())
    if isinstance(value, (int, float)):
        if math.isnan(value) or math.isinf(value):
            return int(time.time())
        ts = int(value)
    elif isinstance(value, str):
        try:
            ts = int(float(value.strip()))
        except ValueError:
            return int(time.time())
    else:
        return int(time.time())
    return ts // 1000 if ts >= MILLISECOND_THRESHOLD else ts


def extract_records(payload: dict, symbol: str | None = None) -> list:
    """Pull the candle array out of {candles: [...]} or {data: {candles: [...]}}."""
    container = payload
    if "candles" not in container and isinstance(payload.get("data"), dict):
        container = payload["data"]
    records = container.get("candles")
    if not isinstance(records, list):
        raise SchemaError(
            f"Provider response has no candle array: {str(payload)[:200]}",
            symbol=symbol,
        )
    return records


class CandleNormalizer:
    """Fetches a fixed-size window and coerces it into canonical candles."""

    def __init__(self, client: MarketDataClient, min_candles: int = 2) -> None:
        self.client = client
        self.min_candles = min_candles

    async def fetch(self, symbol: str, interval: str, target_count: int) -> CandleWindow:
        symbol = self.validate_request(symbol, interval, target_count)
        payload = await self.client.fetch_candles(symbol, interval, target_count)
        records = extract_records(payload, symbol=symbol)
        logger.info(
            "candles_received",
            symbol=symbol,
            interval=interval,
            received=len(records),
            requested=target_count,
        )
        return self.normalize(records, symbol, interval, target_count)

    @staticmethod
    def validate_request(symbol: str, interval: str, target_count: int) -> str:
        """Returns the normalized (stripped, upper-case) symbol."""
        normalized = (symbol or "").strip().upper()
        if not normalized:
            raise InvalidRequestError("Symbol must not be empty")
        if not is_valid_interval(interval):
            raise InvalidRequestError(
                f"Unsupported interval: {interval}", symbol=normalized
            )
        if target_count <= 0:
            raise InvalidRequestError(
                f"Target candle count must be positive, got {target_count}",
                symbol=normalized,
            )
        return normalized

    def normalize(
        self,
        records: list,
        symbol: str,
        interval: str,
        target_count: int,
        *,
        generated_at: datetime | None = None,
    ) -> CandleWindow:
        """
        Pure: same records always yield the same candles and statistics.

        The window is stamped with ``generated_at`` when given, otherwise with
        the current time, so two windows compare equal only with a fixed stamp.
        """
        if not records:
            raise NoDataError(f"No candle data available for {symbol} {interval}", symbol=symbol)

        candles = [self._to_candle(record, symbol) for record in records]
        candles.sort(key=lambda c: c.timestamp)

        if len(candles) >= target_count:
            candles = candles[-target_count:]
        else:
            logger.warning(
                "short_candle_window",
                symbol=symbol,
                interval=interval,
                available=len(candles),
                target=target_count,
            )

        if len(candles) < self.min_candles:
            raise InsufficientDataError(
                f"Insufficient candle data for {symbol} {interval}: "
                f"only {len(candles)} candles available (minimum {self.min_candles})",
                symbol=symbol,
            )

        for candle in candles:
            if min(candle.open, candle.high, candle.low, candle.close, candle.volume) < 0:
                raise SchemaError(
                    f"Negative OHLCV value at {candle.timestamp} for {symbol}",
                    symbol=symbol,
                )
            if not candle.is_consistent:
                raise SchemaError(
                    f"Inconsistent OHLC at {candle.timestamp} for {symbol}: "
                    f"o={candle.open} h={candle.high} l={candle.low} c={candle.close}",
                    symbol=symbol,
                )

        if candles[-1].close <= 0:
            raise SchemaError(
                f"Invalid latest price for {symbol}: must be positive", symbol=symbol
            )

        return CandleWindow.from_candles(symbol, interval, candles, generated_at=generated_at)

    @staticmethod
    def _to_candle(record: Any, symbol: str) -> Candle:
        if not isinstance(record, dict):
            raise SchemaError(f"Candle record is not an object: {str(record)[:100]}", symbol=symbol)
        return Candle(
            timestamp=parse_timestamp(record.get("t")),
            open=parse_numeric(record.get("o")),
            high=parse_numeric(record.get("h")),
            low=parse_numeric(record.get("l")),
            close=parse_numeric(record.get("c")),
            volume=parse_numeric(record.get("v")),
        )
