"""Unit tests for the flat-candle enhancer."""

from __future__ import annotations

import pytest

from candle_chart.chart.enhancer import MICRO_VARIATION_RATIO, CandleEnhancer, enhance_candle
from candle_chart.chart.spec_builder import ChartSpecBuilder
from candle_chart.models.candle import CandleWindow
from conftest import BASE_TS, _make_candle, _make_flat_candle, _make_window


@pytest.fixture
def enhancer() -> CandleEnhancer:
    return CandleEnhancer()


# --- enhance_candle() ---


class TestEnhanceCandle:
    def test_flat_candle_widened(self) -> None:
        out = enhance_candle(_make_flat_candle(price=100.0, volume=3.0))

        assert out.open == pytest.approx(99.97)
        assert out.high == pytest.approx(100.15)
        assert out.low == pytest.approx(99.91)
        assert out.close == pytest.approx(100.015)
        assert out.volume == 3.0
        assert out.timestamp == BASE_TS

    def test_widened_candle_stays_consistent(self) -> None:
        out = enhance_candle(_make_flat_candle(price=0.00042))

        assert out.is_consistent
        assert not out.is_flat
        assert out.high - out.low == pytest.approx(0.00042 * MICRO_VARIATION_RATIO * 1.6)

    def test_non_flat_candle_returned_unchanged(self) -> None:
        candle = _make_candle()
        assert enhance_candle(candle) is candle

    def test_zero_price_flat_candle_untouched(self) -> None:
        candle = _make_flat_candle(price=0.0)
        assert enhance_candle(candle) is candle


# --- CandleEnhancer.enhance() ---


class TestEnhanceWindow:
    def test_all_flat_window(self, enhancer: CandleEnhancer, flat_window: CandleWindow) -> None:
        out = enhancer.enhance(flat_window)

        assert out.enhanced_count == 20
        assert out.enhanced_timestamps == [c.timestamp for c in flat_window.candles]
        assert all(not c.is_flat for c in out.candles)

    def test_only_flat_candles_touched(self, enhancer: CandleEnhancer) -> None:
        normal = _make_candle(ts=BASE_TS + 3600)
        window = _make_window([_make_flat_candle(ts=BASE_TS), normal])
        out = enhancer.enhance(window)

        assert out.enhanced_count == 1
        assert out.enhanced_timestamps == [BASE_TS]
        assert out.candles[1] == normal

    def test_statistics_kept_from_source(
        self, enhancer: CandleEnhancer, flat_window: CandleWindow
    ) -> None:
        out = enhancer.enhance(flat_window)

        assert out.latest_price == flat_window.latest_price == 100.0
        assert out.high == flat_window.high
        assert out.low == flat_window.low
        assert out.price_change_percent == 0.0
        assert out.generated_at == flat_window.generated_at

    def test_source_window_not_mutated(
        self, enhancer: CandleEnhancer, flat_window: CandleWindow
    ) -> None:
        enhancer.enhance(flat_window)

        assert all(c.is_flat for c in flat_window.candles)

    def test_idempotent(self, enhancer: CandleEnhancer, flat_window: CandleWindow) -> None:
        once = enhancer.enhance(flat_window)
        twice = enhancer.enhance(once)

        assert twice.candles == once.candles
        assert twice.enhanced_count == 0

    def test_no_flat_candles(self, enhancer: CandleEnhancer, sample_window: CandleWindow) -> None:
        out = enhancer.enhance(sample_window)

        assert out.enhanced_count == 0
        assert out.candles == sample_window.candles

    def test_enhanced_flat_window_has_visible_axis(
        self, enhancer: CandleEnhancer, flat_window: CandleWindow
    ) -> None:
        spec = ChartSpecBuilder().build(enhancer.enhance(flat_window), "1h")

        assert spec.y_axis.span > 0
        assert spec.y_axis.min < 99.91
        assert spec.y_axis.max > 100.15
