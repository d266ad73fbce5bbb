"""Data quality verdict model."""

from enum import Enum

from pydantic import BaseModel


class QualityFlag(str, Enum):
    FLATNESS = "flatness"
    INSUFFICIENT_DATA = "insufficient_data"
    LOW_VOLUME = "low_volume"
    TIME_SPAN_MISMATCH = "time_span_mismatch"
    DEGENERACY = "degeneracy"


class QualityVerdict(BaseModel):
    suitable: bool
    issues: list[str] = []
    flags: list[QualityFlag] = []
    price_range: float = 0.0
    price_range_percent: float = 0.0
    avg_volume: float = 0.0
    data_point_count: int = 0
    time_span_minutes: float = 0.0
    expected_time_span_minutes: float = 0.0
    flat_candle_count: int = 0

    def has(self, flag: QualityFlag) -> bool:
        return flag in self.flags
