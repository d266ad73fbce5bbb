"""Unit tests for ChartSpecBuilder: axes, time scale, palettes."""

from __future__ import annotations

import pytest

from candle_chart.chart.spec_builder import (
    MAX_TIME_TICKS,
    ChartSpecBuilder,
    compute_price_axis,
    time_axis_for,
)
from candle_chart.models.candle import CandleWindow
from candle_chart.models.chart_spec import OHLCPoint, XYPoint
from conftest import BASE_TS, _make_candle, _make_window


@pytest.fixture
def builder() -> ChartSpecBuilder:
    return ChartSpecBuilder()


# --- compute_price_axis() ---


class TestPriceAxis:
    def test_wide_range_gets_ten_percent_padding(self) -> None:
        axis = compute_price_axis([90.0, 100.0, 110.0])

        assert axis.min == pytest.approx(88.0)
        assert axis.max == pytest.approx(112.0)

    def test_single_price_widened_to_one_percent(self) -> None:
        axis = compute_price_axis([100.0, 100.0])

        assert axis.min == pytest.approx(99.5)
        assert axis.max == pytest.approx(100.5)

    def test_narrow_range_centred_on_mid(self) -> None:
        axis = compute_price_axis([50_000.0, 50_010.0])

        assert axis.span == pytest.approx(50_005.0 * 0.01)
        assert (axis.min + axis.max) / 2 == pytest.approx(50_005.0)

    @pytest.mark.parametrize("price", [0.0001234, 1.0, 43_210.0])
    def test_span_never_below_one_percent_of_mid(self, price: float) -> None:
        axis = compute_price_axis([price, price * 1.0001])
        mid = (price + price * 1.0001) / 2

        assert axis.span >= mid * 0.01 * 0.999999


# --- time_axis_for() ---


class TestTimeAxis:
    @pytest.mark.parametrize(
        "interval, unit, tick_format",
        [
            ("1m", "minute", "HH:mm"),
            ("5m", "minute", "HH:mm"),
            ("15m", "minute", "HH:mm"),
            ("1h", "hour", "HH:00"),
            ("4h", "hour", "MM-DD HH:00"),
            ("1d", "day", "DD/MM"),
        ],
    )
    def test_unit_and_format(self, interval: str, unit: str, tick_format: str) -> None:
        axis = time_axis_for(interval)

        assert axis.unit == unit
        assert axis.tick_format == tick_format
        assert axis.display_formats[unit] == tick_format
        assert axis.max_ticks == MAX_TIME_TICKS


# --- build() ---


class TestBuild:
    def test_candlestick_points(self, builder: ChartSpecBuilder, sample_window: CandleWindow) -> None:
        spec = builder.build(sample_window, "1h")

        assert spec.series_type == "candlestick"
        assert spec.label == "BTC/USDT"
        assert len(spec.data_points) == 20
        first = spec.data_points[0]
        assert isinstance(first, OHLCPoint)
        assert first.x == sample_window.candles[0].timestamp * 1000
        assert first.o == sample_window.candles[0].open

    def test_axis_contains_every_price(
        self, builder: ChartSpecBuilder, sample_window: CandleWindow
    ) -> None:
        spec = builder.build(sample_window, "1h")

        assert spec.y_axis.min < sample_window.low
        assert spec.y_axis.max > sample_window.high

    def test_line_series_uses_closes(
        self, builder: ChartSpecBuilder, sample_window: CandleWindow
    ) -> None:
        spec = builder.build(sample_window, "1h", series_type="line")

        assert all(isinstance(p, XYPoint) for p in spec.data_points)
        assert [p.y for p in spec.data_points] == [c.close for c in sample_window.candles]

    def test_bar_series_uses_volume_from_zero(
        self, builder: ChartSpecBuilder, sample_window: CandleWindow
    ) -> None:
        spec = builder.build(sample_window, "1h", series_type="bar")
        peak = max(c.volume for c in sample_window.candles)

        assert [p.y for p in spec.data_points] == [c.volume for c in sample_window.candles]
        assert spec.y_axis.min == 0.0
        assert spec.y_axis.max == pytest.approx(peak * 1.1)

    def test_bar_series_without_volume(self, builder: ChartSpecBuilder) -> None:
        window = _make_window([_make_candle(volume=0), _make_candle(ts=BASE_TS + 3600, volume=0)])
        spec = builder.build(window, "1h", series_type="bar")

        assert spec.y_axis.max == 1.0

    def test_themes(self, builder: ChartSpecBuilder, sample_window: CandleWindow) -> None:
        dark = builder.build(sample_window, "1h")
        light = builder.build(sample_window, "1h", theme="light")

        assert dark.palette.background == "#0d1421"
        assert dark.palette.grid == "#2a2e39"
        assert light.palette.background == "#ffffff"
        assert light.palette.tick == "#6b7280"

    def test_default_colors(self, builder: ChartSpecBuilder, sample_window: CandleWindow) -> None:
        spec = builder.build(sample_window, "1h")

        assert spec.color_policy.up == "#00ff88"
        assert spec.color_policy.down == "#ff3366"
        assert spec.color_policy.unchanged == "#ffffff"

    def test_custom_dimensions(self, sample_window: CandleWindow) -> None:
        spec = ChartSpecBuilder(width=1200, height=600).build(sample_window, "1h")

        assert spec.dimensions.width == 1200
        assert spec.dimensions.height == 600

    def test_same_input_same_spec(
        self, builder: ChartSpecBuilder, sample_window: CandleWindow
    ) -> None:
        assert builder.build(sample_window, "4h") == builder.build(sample_window, "4h")

    def test_empty_window_rejected(self, builder: ChartSpecBuilder) -> None:
        with pytest.raises(ValueError):
            builder.build(CandleWindow(symbol="BTC", interval="1h", candles=[]), "1h")

    def test_unknown_theme_rejected(
        self, builder: ChartSpecBuilder, sample_window: CandleWindow
    ) -> None:
        with pytest.raises(ValueError):
            builder.build(sample_window, "1h", theme="neon")

    def test_unknown_series_rejected(
        self, builder: ChartSpecBuilder, sample_window: CandleWindow
    ) -> None:
        with pytest.raises(ValueError):
            builder.build(sample_window, "1h", series_type="area")
