from .registry import MeterRegistry
from .replay import (
    ReplayResult,
    TelemetrySample,
    feed_samples,
    replay_trip,
    samples_from_speeds,
)
from .taximeter import MeterMode, MeterReading, ModeChange, TaxiMeter, tick_meter

__all__ = [
    "MeterMode",
    "MeterReading",
    "MeterRegistry",
    "ModeChange",
    "ReplayResult",
    "TaxiMeter",
    "TelemetrySample",
    "feed_samples",
    "replay_trip",
    "samples_from_speeds",
    "tick_meter",
]
