"""Chart pipeline: fetch -> analyze -> enhance -> build -> render, with caches and fallback."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from candle_chart.cache.layer import (
    IMAGE_KEY_PREFIX,
    WINDOW_KEY_PREFIX,
    CacheLayer,
    decode_image,
    decode_window,
    encode_image,
    encode_window,
    image_key,
    window_key,
)
from candle_chart.cache.store import CacheStore, MemoryCacheStore, RedisCacheStore
from candle_chart.chart.enhancer import CandleEnhancer
from candle_chart.chart.spec_builder import ChartSpecBuilder
from candle_chart.config import Settings
from candle_chart.errors import (
    ChartPipelineError,
    NetworkError,
    PipelineTimeoutError,
    RateLimitedError,
    ServiceError,
    error_from_detail,
    wrap_exception,
)
from candle_chart.market.normalizer import CandleNormalizer
from candle_chart.market.provider import MarketDataClient
from candle_chart.models.artifact import (
    CachedArtifact,
    ChartArtifact,
    ChartImage,
    ChartOutcome,
    Failed,
    FallbackRendered,
    Rendered,
)
from candle_chart.models.candle import SUPPORTED_INTERVALS, CandleWindow, EnhancedWindow
from candle_chart.models.quality import QualityVerdict
from candle_chart.quality.analyzer import DataQualityAnalyzer
from candle_chart.render.quickchart import QuickChartClient
from candle_chart.render.sparkline import SparklineRenderer

logger = structlog.get_logger()

TRANSIENT_PROVIDER_ERRORS = (NetworkError, PipelineTimeoutError, RateLimitedError, ServiceError)

HEALTH_PROBE_KEY = "chart_health_probe"


class _RenderStageFailure(Exception):
    """Raised out of the image compute when build/render fails after enhancement."""

    def __init__(
        self,
        error: ChartPipelineError,
        window: EnhancedWindow,
        verdict: QualityVerdict,
    ) -> None:
        super().__init__(error.message)
        self.error = error
        self.window = window
        self.verdict = verdict


class ChartPipeline:
    def __init__(
        self,
        settings: Settings,
        normalizer: CandleNormalizer,
        renderer: QuickChartClient,
        cache: CacheLayer,
        analyzer: DataQualityAnalyzer | None = None,
        enhancer: CandleEnhancer | None = None,
        builder: ChartSpecBuilder | None = None,
        fallback: SparklineRenderer | None = None,
    ) -> None:
        self.settings = settings
        self.normalizer = normalizer
        self.renderer = renderer
        self.cache = cache
        self.analyzer = analyzer or DataQualityAnalyzer()
        self.enhancer = enhancer or CandleEnhancer()
        self.builder = builder or ChartSpecBuilder(
            width=settings.CHART_WIDTH, height=settings.CHART_HEIGHT
        )
        self.fallback = fallback or SparklineRenderer()

    # --- Windows ---

    async def get_window(self, symbol: str, interval: str) -> CachedArtifact[CandleWindow]:
        """Cached raw window for (symbol, interval, TARGET_CANDLES)."""
        count = self.settings.TARGET_CANDLES
        symbol = self.normalizer.validate_request(symbol, interval, count)
        return await self.cache.get_or_compute(
            window_key(symbol, interval, count),
            self.settings.WINDOW_CACHE_TTL_SECONDS,
            lambda: self._fetch_window(symbol, interval, count),
            encode_window,
            decode_window,
        )

    async def _fetch_window(self, symbol: str, interval: str, count: int) -> CandleWindow:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.PROVIDER_MAX_ATTEMPTS),
            wait=wait_exponential(
                multiplier=1,
                min=self.settings.PROVIDER_RETRY_MIN_WAIT_SECONDS,
                max=self.settings.PROVIDER_RETRY_MAX_WAIT_SECONDS,
            ),
            retry=retry_if_exception_type(TRANSIENT_PROVIDER_ERRORS),
            before_sleep=self._log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self.normalizer.fetch(symbol, interval, count)
        raise AssertionError("unreachable")

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "provider_fetch_retry",
            attempt=retry_state.attempt_number,
            error=str(exc),
            code=getattr(exc, "code", None),
        )

    # --- Charts ---

    async def render_chart(self, symbol: str, interval: str = "1h") -> ChartOutcome:
        """Never raises for pipeline failures; see Rendered / FallbackRendered / Failed."""
        raw_symbol = symbol
        try:
            symbol = self.normalizer.validate_request(
                symbol, interval, self.settings.TARGET_CANDLES
            )
        except ChartPipelineError as e:
            return Failed(symbol=(raw_symbol or "").upper(), interval=interval, error=e.to_detail())

        try:
            return await asyncio.wait_for(
                self._render_chart(symbol, interval),
                timeout=self.settings.REQUEST_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            error = PipelineTimeoutError(
                f"Chart request timed out after {self.settings.REQUEST_TIMEOUT_SECONDS}s",
                symbol=symbol,
            )
            logger.error("chart_request_timeout", symbol=symbol, interval=interval)
            return Failed(symbol=symbol, interval=interval, error=error.to_detail())

    async def _render_chart(self, symbol: str, interval: str) -> ChartOutcome:
        verdicts: list[QualityVerdict] = []

        async def compute_image() -> ChartImage:
            window = (await self.get_window(symbol, interval)).value
            verdict = self.analyzer.analyze(window, interval)
            verdicts.append(verdict)
            self._log_verdict(symbol, interval, verdict)

            enhanced = self.enhancer.enhance(window)
            try:
                spec = self.builder.build(enhanced, interval, theme=self.settings.CHART_THEME)
                image_bytes = await self.renderer.render(spec)
            except (ChartPipelineError, ValueError) as e:
                raise _RenderStageFailure(
                    wrap_exception(e, symbol=symbol), enhanced, verdict
                ) from e
            return ChartImage(
                image_bytes=image_bytes,
                width=spec.dimensions.width,
                height=spec.dimensions.height,
                candle_count=len(enhanced.candles),
            )

        try:
            artifact = await self.cache.get_or_compute(
                image_key(symbol, interval),
                self.settings.IMAGE_CACHE_TTL_SECONDS,
                compute_image,
                encode_image,
                decode_image,
            )
        except _RenderStageFailure as failure:
            return self._fallback(symbol, interval, failure)
        except ChartPipelineError as e:
            logger.error(
                "chart_pipeline_failed",
                symbol=symbol,
                interval=interval,
                code=e.code.value,
                error=e.message,
                retryable=e.retryable,
            )
            return Failed(symbol=symbol, interval=interval, error=e.to_detail())
        except Exception as e:
            logger.exception("chart_pipeline_unexpected_error", symbol=symbol, interval=interval)
            error = wrap_exception(e, symbol=symbol)
            return Failed(symbol=symbol, interval=interval, error=error.to_detail())

        logger.info(
            "chart_rendered",
            symbol=symbol,
            interval=interval,
            cached=artifact.is_cache_hit,
            image_size=len(artifact.value.image_bytes),
            candles=artifact.value.candle_count,
        )
        return Rendered(
            symbol=symbol,
            interval=interval,
            image=artifact.value,
            is_cached=artifact.is_cache_hit,
            verdict=verdicts[0] if verdicts else None,
        )

    def _fallback(self, symbol: str, interval: str, failure: _RenderStageFailure) -> ChartOutcome:
        logger.warning(
            "chart_render_fallback",
            symbol=symbol,
            interval=interval,
            code=failure.error.code.value,
            error=failure.error.message,
        )
        try:
            text = self.fallback.render(failure.window)
        except Exception as e:
            logger.exception("fallback_render_failed", symbol=symbol, interval=interval)
            error = wrap_exception(e, symbol=symbol)
            return Failed(symbol=symbol, interval=interval, error=error.to_detail())
        return FallbackRendered(
            symbol=symbol,
            interval=interval,
            text=text,
            render_error=failure.error.to_detail(),
            verdict=failure.verdict,
        )

    @staticmethod
    def _log_verdict(symbol: str, interval: str, verdict: QualityVerdict) -> None:
        logger.info(
            "data_quality_analyzed",
            symbol=symbol,
            interval=interval,
            suitable=verdict.suitable,
            price_range_percent=f"{verdict.price_range_percent:.4f}%",
            data_points=verdict.data_point_count,
            time_span=f"{verdict.time_span_minutes:g}min",
            issues=verdict.issues,
        )
        if not verdict.suitable:
            logger.warning(
                "data_quality_issues",
                symbol=symbol,
                interval=interval,
                issues=verdict.issues,
            )

    async def get_chart_artifact(self, symbol: str, interval: str = "1h") -> ChartArtifact:
        """Upstream contract. Raises ChartPipelineError when no chart could be produced."""
        outcome = await self.render_chart(symbol, interval)
        if isinstance(outcome, Failed):
            raise error_from_detail(outcome.error)
        if isinstance(outcome, FallbackRendered):
            return ChartArtifact(
                symbol=outcome.symbol,
                interval=outcome.interval,
                fallback_text=outcome.text,
                generated_at=outcome.generated_at,
                verdict=outcome.verdict,
            )
        return ChartArtifact(
            symbol=outcome.symbol,
            interval=outcome.interval,
            image_bytes=outcome.image.image_bytes,
            is_cached=outcome.is_cached,
            generated_at=outcome.image.generated_at,
            verdict=outcome.verdict,
        )

    # --- Cache busting ---

    async def invalidate(self, symbol: str, interval: str | None = None) -> bool:
        """Drop cached windows and images for a symbol (optionally one interval)."""
        symbol = symbol.strip().upper()
        if interval:
            patterns = [f"{WINDOW_KEY_PREFIX}{symbol}_{interval}_*", image_key(symbol, interval)]
        else:
            patterns = [f"{WINDOW_KEY_PREFIX}{symbol}_*", f"{IMAGE_KEY_PREFIX}{symbol}_*"]

        ok = True
        for pattern in patterns:
            deleted, matched = await self.cache.invalidate(pattern)
            ok = ok and matched >= 0 and deleted == matched
        return ok

    # --- Ops ---

    async def health_check(self) -> dict[str, bool]:
        provider_ok, renderer_ok = await asyncio.gather(
            self.normalizer.client.health_check(),
            self.renderer.health_check(),
        )
        return {
            "provider": provider_ok,
            "renderer": renderer_ok,
            "cache": await self._cache_health(),
        }

    async def _cache_health(self) -> bool:
        try:
            await self.cache.store.set(HEALTH_PROBE_KEY, b"ok", 10)
            return await self.cache.store.get(HEALTH_PROBE_KEY) == b"ok"
        except Exception as e:
            logger.warning("cache_health_check_failed", error=str(e))
            return False

    def stats(self) -> dict:
        return {
            "name": "ChartPipeline",
            "provider_url": self.normalizer.client.url,
            "renderer_url": self.renderer.url,
            "cache_store": type(self.cache.store).__name__,
            "window_cache_ttl": self.settings.WINDOW_CACHE_TTL_SECONDS,
            "image_cache_ttl": self.settings.IMAGE_CACHE_TTL_SECONDS,
            "target_candles": self.settings.TARGET_CANDLES,
            "supported_intervals": list(SUPPORTED_INTERVALS),
            "generated_at": datetime.now(timezone.utc).isoformat(),
        }

    async def aclose(self) -> None:
        disconnect = getattr(self.cache.store, "disconnect", None)
        if disconnect is not None:
            await disconnect()
        logger.info("chart_pipeline_closed")


async def create_pipeline(
    settings: Settings | None = None,
    store: CacheStore | None = None,
) -> ChartPipeline:
    """Wire clients and cache. Redis is optional: connection failure falls back to memory."""
    settings = settings or Settings()

    if store is None:
        if settings.CACHE_BACKEND == "redis":
            redis_store = RedisCacheStore(settings.REDIS_URL)
            try:
                await redis_store.connect()
                store = redis_store
            except Exception as e:
                logger.warning("redis_unavailable_using_memory_cache", error=str(e))
                store = MemoryCacheStore()
        else:
            store = MemoryCacheStore()

    client = MarketDataClient(settings)
    return ChartPipeline(
        settings=settings,
        normalizer=CandleNormalizer(client, min_candles=settings.MIN_WINDOW_CANDLES),
        renderer=QuickChartClient(settings),
        cache=CacheLayer(store),
    )
