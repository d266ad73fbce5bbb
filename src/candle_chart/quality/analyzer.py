"""Data quality scoring for candle windows."""

from __future__ import annotations

import structlog

from candle_chart.models.candle import INTERVAL_MINUTES, CandleWindow
from candle_chart.models.quality import QualityFlag, QualityVerdict

logger = structlog.get_logger()


class DataQualityAnalyzer:
    """
    Scores a window against five independent risk signals:

    | Signal              | Flag when                                        |
    |---------------------|--------------------------------------------------|
    | flatness            | (max-min)/mean of all OHLC < 0.05%               |
    | insufficient_data   | count < 50% of the per-interval expected count   |
    | low_volume          | mean volume < 1                                  |
    | time_span_mismatch  | |span - minutes*count| > 30% of minutes*count    |
    | degeneracy          | > 80% of candles have open=high=low=close        |

    suitable = no flags OR (<= 2 flags AND price range >= 0.01%)
    """

    FLATNESS_THRESHOLD_PCT = 0.05
    SUFFICIENCY_RATIO = 0.5
    MIN_AVG_VOLUME = 1.0
    TIME_SPAN_TOLERANCE = 0.3
    DEGENERACY_RATIO = 0.8
    MIN_RANGE_FOR_TOLERANCE_PCT = 0.01
    MAX_TOLERATED_ISSUES = 2

    EXPECTED_COUNTS: dict[str, int] = {
        "1m": 120,
        "5m": 60,
        "15m": 48,
        "1h": 24,
        "4h": 20,
        "1d": 20,
    }

    def __init__(self, **overrides: float) -> None:
        for name, value in overrides.items():
            if not name.isupper() or not hasattr(self, name):
                raise AttributeError(f"Unknown quality threshold: {name}")
            setattr(self, name, value)

    def analyze(self, window: CandleWindow, interval: str) -> QualityVerdict:
        if not window.candles:
            return QualityVerdict(suitable=False, issues=["No candles in window"])

        df = window.to_dataframe()
        prices = df[["open", "high", "low", "close"]].to_numpy().ravel()
        min_price = float(prices.min())
        max_price = float(prices.max())
        avg_price = float(prices.mean())
        price_range = max_price - min_price
        price_range_pct = (price_range / avg_price) * 100 if avg_price > 0 else 0.0

        avg_volume = float(df["volume"].mean())
        count = len(df)
        time_span = (
            (window.candles[-1].timestamp - window.candles[0].timestamp) / 60 if count > 1 else 0.0
        )
        flat_mask = (
            (df["open"] == df["high"]) & (df["high"] == df["low"]) & (df["low"] == df["close"])
        )
        flat_count = int(flat_mask.sum())

        issues: list[str] = []
        flags: list[QualityFlag] = []

        if price_range_pct < self.FLATNESS_THRESHOLD_PCT:
            flags.append(QualityFlag.FLATNESS)
            issues.append(
                f"Price range too small: {price_range_pct:.4f}% "
                f"(min: {self.FLATNESS_THRESHOLD_PCT}%)"
            )

        expected_count = self.EXPECTED_COUNTS.get(interval, 20)
        if count < expected_count * self.SUFFICIENCY_RATIO:
            flags.append(QualityFlag.INSUFFICIENT_DATA)
            issues.append(f"Insufficient data points: {count} (expected: {expected_count})")

        if avg_volume < self.MIN_AVG_VOLUME:
            flags.append(QualityFlag.LOW_VOLUME)
            issues.append(f"Very low volume: {avg_volume:.2f} (may indicate inactive market)")

        expected_span = self.expected_time_span(interval, count)
        if abs(time_span - expected_span) > expected_span * self.TIME_SPAN_TOLERANCE:
            flags.append(QualityFlag.TIME_SPAN_MISMATCH)
            issues.append(f"Time span mismatch: {time_span:g}min (expected: ~{expected_span}min)")

        if flat_count > count * self.DEGENERACY_RATIO:
            flags.append(QualityFlag.DEGENERACY)
            issues.append(
                f"Too many flat candles: {flat_count}/{count} ({flat_count / count * 100:.1f}%)"
            )

        suitable = not flags or (
            len(flags) <= self.MAX_TOLERATED_ISSUES
            and price_range_pct >= self.MIN_RANGE_FOR_TOLERANCE_PCT
        )

        logger.debug(
            "quality_signals",
            symbol=window.symbol,
            interval=interval,
            flags=[f.value for f in flags],
            flat_candles=flat_count,
        )

        return QualityVerdict(
            suitable=suitable,
            issues=issues,
            flags=flags,
            price_range=price_range,
            price_range_percent=price_range_pct,
            avg_volume=avg_volume,
            data_point_count=count,
            time_span_minutes=time_span,
            expected_time_span_minutes=expected_span,
            flat_candle_count=flat_count,
        )

    @staticmethod
    def expected_time_span(interval: str, candle_count: int) -> int:
        return INTERVAL_MINUTES.get(interval, 60) * candle_count
