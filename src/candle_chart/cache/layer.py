"""get-or-compute over a CacheStore, with in-flight collapsing and fail-open store errors."""

from __future__ import annotations

import asyncio
import base64
import json
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import TypeVar

import structlog

from candle_chart.cache.store import CacheStore
from candle_chart.models.artifact import CachedArtifact, ChartImage
from candle_chart.models.candle import CandleWindow

logger = structlog.get_logger()

T = TypeVar("T")

WINDOW_KEY_PREFIX = "chart_candles_"
IMAGE_KEY_PREFIX = "chart_image_"


def window_key(symbol: str, interval: str, count: int) -> str:
    return f"{WINDOW_KEY_PREFIX}{symbol}_{interval}_{count}"


def image_key(symbol: str, interval: str) -> str:
    return f"{IMAGE_KEY_PREFIX}{symbol}_{interval}"


# --- Codecs (value <-> str stored inside the JSON envelope) ---


def encode_window(window: CandleWindow) -> str:
    return window.model_dump_json()


def decode_window(raw: str) -> CandleWindow:
    return CandleWindow.model_validate_json(raw)


def encode_image(image: ChartImage) -> str:
    payload = image.model_dump(mode="json", exclude={"image_bytes"})
    payload["image_bytes"] = base64.b64encode(image.image_bytes).decode("ascii")
    return json.dumps(payload)


def decode_image(raw: str) -> ChartImage:
    payload = json.loads(raw)
    payload["image_bytes"] = base64.b64decode(payload["image_bytes"])
    return ChartImage.model_validate(payload)


class CacheLayer:
    def __init__(self, store: CacheStore) -> None:
        self.store = store
        self._inflight: dict[str, asyncio.Future] = {}

    async def get_or_compute(
        self,
        key: str,
        ttl: int,
        compute_fn: Callable[[], Awaitable[T]],
        encode: Callable[[T], str],
        decode: Callable[[str], T],
    ) -> CachedArtifact[T]:
        cached = await self._read(key, decode)
        if cached is not None:
            return cached

        inflight = self._inflight.get(key)
        if inflight is not None:
            try:
                return await asyncio.shield(inflight)
            except asyncio.CancelledError:
                if not inflight.cancelled():
                    raise
                logger.debug("cache_inflight_leader_cancelled", key=key)

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            value = await compute_fn()
            artifact = CachedArtifact(
                value=value,
                cached_at=datetime.now(timezone.utc),
                ttl=ttl,
                is_cache_hit=False,
            )
            await self._write(key, artifact, encode)
            future.set_result(artifact)
            return artifact
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            future.exception()  # mark retrieved when no follower is waiting
            raise
        finally:
            if self._inflight.get(key) is future:
                del self._inflight[key]

    async def invalidate(self, pattern: str) -> tuple[int, int]:
        """Delete every key matching `pattern`. Returns (deleted, matched)."""
        try:
            keys = await self.store.keys(pattern)
        except Exception as e:
            logger.warning("cache_keys_failed", pattern=pattern, error=str(e))
            return 0, -1

        deleted = 0
        for key in keys:
            try:
                if await self.store.delete(key):
                    deleted += 1
            except Exception as e:
                logger.warning("cache_delete_failed", key=key, error=str(e))
        logger.info("cache_invalidated", pattern=pattern, deleted=deleted, matched=len(keys))
        return deleted, len(keys)

    async def _read(self, key: str, decode: Callable[[str], T]) -> CachedArtifact[T] | None:
        try:
            raw = await self.store.get(key)
        except Exception as e:
            logger.warning("cache_get_failed", key=key, error=str(e))
            return None
        if raw is None:
            logger.debug("cache_miss", key=key)
            return None
        try:
            envelope = json.loads(raw)
            artifact = CachedArtifact(
                value=decode(envelope["value"]),
                cached_at=envelope["cached_at"],
                ttl=envelope["ttl"],
                is_cache_hit=True,
            )
        except Exception as e:
            logger.warning("cache_entry_corrupt", key=key, error=str(e))
            return None
        logger.debug("cache_hit", key=key)
        return artifact

    async def _write(self, key: str, artifact: CachedArtifact[T], encode: Callable[[T], str]) -> None:
        envelope = {
            "value": encode(artifact.value),
            "cached_at": artifact.cached_at.isoformat(),
            "ttl": artifact.ttl,
        }
        try:
            await self.store.set(key, json.dumps(envelope).encode("utf-8"), artifact.ttl)
            logger.debug("cache_set", key=key, ttl=artifact.ttl)
        except Exception as e:
            logger.warning("cache_set_failed", key=key, error=str(e))
