"""Cached artifacts, chart images and pipeline outcomes."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Generic, Literal, TypeVar, Union

from pydantic import BaseModel, Field

from candle_chart.errors import DetailedError
from candle_chart.models.quality import QualityVerdict

T = TypeVar("T")


class CachedArtifact(BaseModel, Generic[T]):
    value: T
    cached_at: datetime
    ttl: int
    is_cache_hit: bool = False


class ChartImage(BaseModel):
    image_bytes: bytes
    content_type: str = "image/png"
    width: int
    height: int
    candle_count: int = 0
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Rendered(BaseModel):
    """Image produced by the rendering service (possibly from cache)."""

    kind: Literal["rendered"] = "rendered"
    symbol: str
    interval: str
    image: ChartImage
    is_cached: bool = False
    verdict: QualityVerdict | None = None


class FallbackRendered(BaseModel):
    """Rendering failed; a text sparkline was produced instead."""

    kind: Literal["fallback"] = "fallback"
    symbol: str
    interval: str
    text: str
    render_error: DetailedError
    verdict: QualityVerdict | None = None
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Failed(BaseModel):
    kind: Literal["failed"] = "failed"
    symbol: str
    interval: str
    error: DetailedError


ChartOutcome = Annotated[Union[Rendered, FallbackRendered, Failed], Field(discriminator="kind")]


class ChartArtifact(BaseModel):
    """What the upstream handler receives for a chart request."""

    symbol: str
    interval: str
    image_bytes: bytes | None = None
    fallback_text: str | None = None
    is_cached: bool = False
    generated_at: datetime
    verdict: QualityVerdict | None = None

    @property
    def is_fallback(self) -> bool:
        return self.image_bytes is None
