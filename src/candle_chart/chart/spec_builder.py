"""Build renderer-agnostic chart specifications from enhanced windows."""

from __future__ import annotations

import structlog

from candle_chart.chart.formatting import format_price
from candle_chart.models.candle import CandleWindow
from candle_chart.models.chart_spec import (
    AxisRange,
    ChartSpecification,
    ColorPolicy,
    Dimensions,
    OHLCPoint,
    SeriesType,
    Theme,
    ThemePalette,
    TimeAxis,
    XYPoint,
)

logger = structlog.get_logger()

MIN_VISUAL_RANGE_RATIO = 0.01  # 1% of mid price
RANGE_PADDING_RATIO = 0.1
VOLUME_HEADROOM_RATIO = 0.1
MAX_TIME_TICKS = 10

TIME_UNITS: dict[str, str] = {
    "1m": "minute",
    "5m": "minute",
    "15m": "minute",
    "1h": "hour",
    "4h": "hour",
    "1d": "day",
}

_INTRADAY_FORMATS = {
    "millisecond": "HH:mm:ss",
    "second": "HH:mm:ss",
    "minute": "HH:mm",
    "hour": "HH:mm",
    "day": "MM-DD",
    "week": "MM-DD",
    "month": "MM-DD",
    "quarter": "MM-DD",
    "year": "MM-DD",
}

DISPLAY_FORMATS: dict[str, dict[str, str]] = {
    "1m": _INTRADAY_FORMATS,
    "5m": _INTRADAY_FORMATS,
    "15m": _INTRADAY_FORMATS,
    "1h": {
        "millisecond": "HH:mm:ss",
        "second": "HH:mm:ss",
        "minute": "HH:00",
        "hour": "HH:00",
        "day": "HH:00",
        "week": "HH:00",
        "month": "HH:00",
        "quarter": "HH:00",
        "year": "HH:00",
    },
    "4h": {
        "millisecond": "HH:mm:ss",
        "second": "HH:mm:ss",
        "minute": "HH:mm",
        "hour": "MM-DD HH:00",
        "day": "MM-DD",
        "week": "MM-DD",
        "month": "MM-DD",
        "quarter": "MM-DD",
        "year": "MM-DD",
    },
    "1d": {
        "millisecond": "HH:mm:ss",
        "second": "HH:mm:ss",
        "minute": "HH:mm",
        "hour": "DD/MM",
        "day": "DD/MM",
        "week": "DD/MM",
        "month": "DD/MM",
        "quarter": "DD/MM",
        "year": "DD/MM",
    },
}

PALETTES: dict[str, ThemePalette] = {
    "dark": ThemePalette(
        background="#0d1421",
        grid="#2a2e39",
        border="#363a45",
        tick="#9ca3af",
        text="#ffffff",
    ),
    "light": ThemePalette(
        background="#ffffff",
        grid="#e2e8f0",
        border="#d1d5db",
        tick="#6b7280",
        text="#0f172a",
    ),
}


def compute_price_axis(values: list[float]) -> AxisRange:
    """
    Y range over all plotted prices.

    A range narrower than 1% of the mid price is widened to exactly that 1%,
    centred on the mid price; otherwise the data range gets 10% padding.
    """
    min_price = min(values)
    max_price = max(values)
    price_range = max_price - min_price
    avg_price = (min_price + max_price) / 2
    min_visual_range = avg_price * MIN_VISUAL_RANGE_RATIO

    if price_range < min_visual_range:
        half = min_visual_range / 2
        return AxisRange(min=avg_price - half, max=avg_price + half)

    padding = price_range * RANGE_PADDING_RATIO
    return AxisRange(min=min_price - padding, max=max_price + padding)


def time_axis_for(interval: str) -> TimeAxis:
    unit = TIME_UNITS.get(interval, "hour")
    formats = DISPLAY_FORMATS.get(interval, _INTRADAY_FORMATS)
    return TimeAxis(
        unit=unit,
        tick_format=formats[unit],
        display_formats=dict(formats),
        max_ticks=MAX_TIME_TICKS,
    )


class ChartSpecBuilder:
    def __init__(self, width: int = 800, height: int = 500) -> None:
        self.dimensions = Dimensions(width=width, height=height)

    def build(
        self,
        window: CandleWindow,
        interval: str,
        theme: Theme = "dark",
        series_type: SeriesType = "candlestick",
    ) -> ChartSpecification:
        """Same inputs always produce an equal specification."""
        if not window.candles:
            raise ValueError(f"Cannot build a chart for an empty window ({window.symbol})")
        if theme not in PALETTES:
            raise ValueError(f"Unknown theme: {theme}")

        if series_type == "candlestick":
            points = [
                OHLCPoint(x=c.timestamp * 1000, o=c.open, h=c.high, l=c.low, c=c.close)
                for c in window.candles
            ]
            y_axis = compute_price_axis(
                [v for c in window.candles for v in (c.open, c.high, c.low, c.close)]
            )
        elif series_type == "line":
            points = [XYPoint(x=c.timestamp * 1000, y=c.close) for c in window.candles]
            y_axis = compute_price_axis([c.close for c in window.candles])
        elif series_type == "bar":
            points = [XYPoint(x=c.timestamp * 1000, y=c.volume) for c in window.candles]
            peak = max(c.volume for c in window.candles)
            y_axis = AxisRange(min=0.0, max=peak * (1 + VOLUME_HEADROOM_RATIO) if peak > 0 else 1.0)
        else:
            raise ValueError(f"Unknown series type: {series_type}")

        logger.debug(
            "chart_spec_built",
            symbol=window.symbol,
            interval=interval,
            series_type=series_type,
            points=len(points),
            y_min=format_price(y_axis.min),
            y_max=format_price(y_axis.max),
        )

        return ChartSpecification(
            series_type=series_type,
            label=f"{window.symbol}/USDT",
            data_points=points,
            y_axis=y_axis,
            x_axis=time_axis_for(interval),
            color_policy=ColorPolicy(),
            dimensions=self.dimensions,
            theme=theme,
            palette=PALETTES[theme],
        )
