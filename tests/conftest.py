"""Fixtures for candle-chart pipeline tests."""

from __future__ import annotations

import numpy as np
import pytest

from candle_chart.config import Settings
from candle_chart.models.candle import INTERVAL_MINUTES, Candle, CandleWindow

BASE_TS = 1_700_000_000  # epoch seconds

# Smallest valid PNG signature + IHDR start; enough for byte-level assertions
PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR" + b"\x00" * 16


# --- Candle helpers ---


def _make_candle(
    ts: int = BASE_TS,
    open_: float = 100.0,
    high: float = 105.0,
    low: float = 95.0,
    close: float = 102.0,
    volume: float = 1000.0,
) -> Candle:
    return Candle(timestamp=ts, open=open_, high=high, low=low, close=close, volume=volume)


def _make_flat_candle(ts: int = BASE_TS, price: float = 100.0, volume: float = 0.0) -> Candle:
    return _make_candle(ts=ts, open_=price, high=price, low=price, close=price, volume=volume)


def _make_window(
    candles: list[Candle],
    symbol: str = "BTC",
    interval: str = "1h",
) -> CandleWindow:
    return CandleWindow.from_candles(symbol, interval, candles)


def _make_random_window(
    rows: int = 20,
    interval: str = "1h",
    base_price: float = 100.0,
    seed: int = 42,
    symbol: str = "BTC",
) -> CandleWindow:
    np.random.seed(seed)
    step = INTERVAL_MINUTES[interval] * 60
    close = base_price + np.cumsum(np.random.randn(rows) * 0.5)
    open_ = close + np.random.randn(rows) * 0.2
    high = np.maximum(open_, close) + np.abs(np.random.randn(rows) * 0.3)
    low = np.minimum(open_, close) - np.abs(np.random.randn(rows) * 0.3)
    volume = np.abs(np.random.randn(rows) * 1000) + 500
    candles = [
        _make_candle(
            ts=BASE_TS + i * step,
            open_=float(open_[i]),
            high=float(high[i]),
            low=float(low[i]),
            close=float(close[i]),
            volume=float(volume[i]),
        )
        for i in range(rows)
    ]
    return _make_window(candles, symbol=symbol, interval=interval)


def _make_records(
    rows: int = 20,
    interval: str = "1h",
    base_price: float = 100.0,
    millis: bool = True,
) -> list[dict]:
    """Provider-shaped candle records (string prices, ms timestamps by default)."""
    window = _make_random_window(rows, interval=interval, base_price=base_price)
    return [
        {
            "t": c.timestamp * 1000 if millis else c.timestamp,
            "o": str(c.open),
            "h": str(c.high),
            "l": str(c.low),
            "c": str(c.close),
            "v": str(c.volume),
        }
        for c in window.candles
    ]


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# --- Fixtures ---


@pytest.fixture
def settings() -> Settings:
    return Settings(
        PROVIDER_BASE_URL="http://provider.test",
        RENDER_URL="http://render.test/chart",
        PROVIDER_RETRY_MIN_WAIT_SECONDS=0,
        PROVIDER_RETRY_MAX_WAIT_SECONDS=0,
        CACHE_BACKEND="memory",
    )


@pytest.fixture
def sample_window() -> CandleWindow:
    return _make_random_window(20)


@pytest.fixture
def flat_window() -> CandleWindow:
    candles = [_make_flat_candle(ts=BASE_TS + i * 3600) for i in range(20)]
    return _make_window(candles)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
