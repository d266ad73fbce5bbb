"""OHLCV candle and candle window Pydantic models."""

from __future__ import annotations

from datetime import datetime, timezone

import pandas as pd
from pydantic import BaseModel, Field

SUPPORTED_INTERVALS: tuple[str, ...] = ("1m", "5m", "15m", "1h", "4h", "1d")

INTERVAL_MINUTES: dict[str, int] = {
    "1m": 1,
    "5m": 5,
    "15m": 15,
    "1h": 60,
    "4h": 240,
    "1d": 1440,
}


def is_valid_interval(interval: str) -> bool:
    return interval in SUPPORTED_INTERVALS


class Candle(BaseModel):
    timestamp: int  # epoch seconds
    open: float
    high: float
    low: float
    close: float
    volume: float

    model_config = {"frozen": True}

    @property
    def is_flat(self) -> bool:
        return self.open == self.high == self.low == self.close

    @property
    def is_consistent(self) -> bool:
        """low <= min(open, close) and high >= max(open, close)."""
        return self.low <= min(self.open, self.close) and self.high >= max(self.open, self.close)


class CandleWindow(BaseModel):
    symbol: str
    interval: str
    candles: list[Candle]
    latest_price: float = 0.0
    price_change: float = 0.0
    price_change_percent: float = 0.0
    high: float = 0.0
    low: float = 0.0
    total_volume: float = 0.0
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": True}

    @classmethod
    def from_candles(
        cls,
        symbol: str,
        interval: str,
        candles: list[Candle],
        generated_at: datetime | None = None,
    ) -> CandleWindow:
        """Build a window and derive its summary statistics from the candles."""
        if not candles:
            return cls(symbol=symbol, interval=interval, candles=[])

        first, last = candles[0], candles[-1]
        change = last.close - first.close
        change_pct = (change / first.close) * 100 if first.close else 0.0
        kwargs = {}
        if generated_at is not None:
            kwargs["generated_at"] = generated_at
        return cls(
            symbol=symbol,
            interval=interval,
            candles=list(candles),
            latest_price=last.close,
            price_change=change,
            price_change_percent=change_pct,
            high=max(c.high for c in candles),
            low=min(c.low for c in candles),
            total_volume=sum(c.volume for c in candles),
            **kwargs,
        )

    def to_dataframe(self) -> pd.DataFrame:
        """
        Window as a DataFrame:
        columns: ['open', 'high', 'low', 'close', 'volume']
        index: UTC DatetimeIndex
        """
        columns = ["open", "high", "low", "close", "volume"]
        if not self.candles:
            return pd.DataFrame(columns=columns, dtype=float)
        data = [
            {
                "open": c.open,
                "high": c.high,
                "low": c.low,
                "close": c.close,
                "volume": c.volume,
            }
            for c in self.candles
        ]
        index = pd.to_datetime([c.timestamp for c in self.candles], unit="s", utc=True)
        return pd.DataFrame(data, index=index, columns=columns)


class EnhancedWindow(CandleWindow):
    """Window whose flat candles were widened for display only."""

    enhanced_count: int = 0
    enhanced_timestamps: list[int] = []
