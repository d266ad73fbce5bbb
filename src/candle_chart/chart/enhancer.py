"""Widen flat (open=high=low=close) candles so they render as visible bodies."""

from __future__ import annotations

import structlog

from candle_chart.models.candle import Candle, CandleWindow, EnhancedWindow

logger = structlog.get_logger()

MICRO_VARIATION_RATIO = 0.0015  # 0.15% of close


def enhance_candle(candle: Candle) -> Candle:
    """Returns the same object when the candle is not flat or has no positive close."""
    if not candle.is_flat or candle.close <= 0:
        return candle
    base = candle.close
    micro = base * MICRO_VARIATION_RATIO
    return Candle(
        timestamp=candle.timestamp,
        open=base - micro * 0.2,
        high=base + micro,
        low=base - micro * 0.6,
        close=base + micro * 0.1,
        volume=candle.volume,
    )


class CandleEnhancer:
    """Display-only transform. Never feed its output into price or PNL maths."""

    def enhance(self, window: CandleWindow) -> EnhancedWindow:
        candles: list[Candle] = []
        enhanced_ts: list[int] = []
        for candle in window.candles:
            out = enhance_candle(candle)
            if out is not candle:
                enhanced_ts.append(candle.timestamp)
            candles.append(out)

        if enhanced_ts:
            logger.info(
                "flat_candles_enhanced",
                symbol=window.symbol,
                interval=window.interval,
                enhanced=len(enhanced_ts),
                total=len(candles),
                rate=f"{len(enhanced_ts) / len(candles) * 100:.1f}%",
            )

        # summary statistics stay those of the source window
        return EnhancedWindow(
            symbol=window.symbol,
            interval=window.interval,
            candles=candles,
            latest_price=window.latest_price,
            price_change=window.price_change,
            price_change_percent=window.price_change_percent,
            high=window.high,
            low=window.low,
            total_volume=window.total_volume,
            generated_at=window.generated_at,
            enhanced_count=len(enhanced_ts),
            enhanced_timestamps=enhanced_ts,
        )
