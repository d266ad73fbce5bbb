"""Text fallback chart: summary lines plus a unicode sparkline. No I/O."""

from __future__ import annotations

from candle_chart.chart.formatting import format_large_number, format_percentage, format_price
from candle_chart.models.candle import Candle, CandleWindow

SPARK_LEVELS = ("▁", "▂", "▃", "▅", "▇")
SPARK_POINTS = 10
STABLE_LINE = "━" * 10 + " (Price stable)"


def sparkline(candles: list[Candle]) -> str:
    """Map closes onto five bar heights, followed by the min-max range."""
    if not candles:
        return "No data available"

    closes = [c.close for c in candles]
    low, high = min(closes), max(closes)
    if low == high:
        return STABLE_LINE

    height = len(SPARK_LEVELS)
    span = high - low
    bars = "".join(
        SPARK_LEVELS[min(int((close - low) / span * height), height - 1)] for close in closes
    )
    return f"{bars} ({format_price(low)} - {format_price(high)})"


def trend_marker(change_percent: float) -> str:
    if change_percent > 0:
        return "📈"
    if change_percent < 0:
        return "📉"
    return "➖"


class SparklineRenderer:
    def __init__(self, points: int = SPARK_POINTS) -> None:
        self.points = points

    def render(self, window: CandleWindow, is_cached: bool = False) -> str:
        lines = [
            f"📊 {window.symbol}/USDT ({window.interval.upper()}) "
            f"{trend_marker(window.price_change_percent)}",
            "",
            f"Latest Price: {format_price(window.latest_price)}",
            f"Change: {format_percentage(window.price_change_percent)}",
            f"High: {format_price(window.high)}",
            f"Low: {format_price(window.low)}",
            f"Volume: {format_large_number(window.total_volume)}",
            "",
            "Recent Trend:",
            sparkline(window.candles[-self.points :]),
            "",
            f"Candle Count: {len(window.candles)}",
            f"Price Range: {format_price(window.low)} - {format_price(window.high)}",
            f"Updated: {window.generated_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
        ]
        if is_cached:
            lines.append("Cached data")
        return "\n".join(lines)
