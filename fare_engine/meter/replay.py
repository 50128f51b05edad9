"""Replay recorded telemetry through a meter on a SimPy clock.

A fare must be reproducible from the recorded samples alone. The replay acts
as the meter's tick source: each sample is delivered at its recorded offset
from the trip start on a simulated clock, so a one-hour trace runs instantly
and always yields the same fare.
"""

from collections.abc import Generator, Iterable
from datetime import datetime, timedelta

import simpy
from pydantic import BaseModel, ConfigDict, Field

from fare_engine.core.exceptions import InvalidInputError
from fare_engine.fare import FareBreakdown, FareCalculator
from fare_engine.meter.taximeter import MeterReading, ModeChange, TaxiMeter


class TelemetrySample(BaseModel):
    """One recorded speed reading.

    Speed is not validated here: malformed GPS samples are part of real traces
    and the meter drops them itself.
    """

    model_config = ConfigDict(frozen=True)

    at: datetime
    speed_kmh: float


class ReplayResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    reading: MeterReading
    fare: FareBreakdown
    mode_changes: list[ModeChange] = Field(default_factory=list)


def samples_from_speeds(
    speeds: Iterable[float],
    start: datetime,
    interval_seconds: float = 1.0,
) -> list[TelemetrySample]:
    """Build evenly spaced samples, the first one interval after start."""
    return [
        TelemetrySample(at=start + timedelta(seconds=interval_seconds * (i + 1)), speed_kmh=speed)
        for i, speed in enumerate(speeds)
    ]


def feed_samples(
    env: simpy.Environment,
    meter: TaxiMeter,
    trip_start_time: datetime,
    samples: list[TelemetrySample],
) -> Generator[simpy.Event, None, None]:
    """SimPy process delivering samples to the meter in recorded order.

    Samples recorded out of order are delivered immediately and rejected by
    the meter as late ticks.
    """
    for sample in samples:
        delay = (sample.at - trip_start_time).total_seconds() - env.now
        if delay > 0:
            yield env.timeout(delay)
        meter.tick(sample.at, sample.speed_kmh)


def replay_trip(
    samples: Iterable[TelemetrySample],
    trip_start_time: datetime,
    is_airport: bool = False,
    trip_id: str | None = None,
    calculator: FareCalculator | None = None,
) -> ReplayResult:
    """Run a recorded trip through a fresh meter and return the final fare."""
    samples = list(samples)
    start_aware = trip_start_time.tzinfo is not None
    if any((s.at.tzinfo is not None) != start_aware for s in samples):
        raise InvalidInputError(
            "Sample timestamps must all be naive or all be timezone-aware like the start time",
            details={"trip_id": trip_id},
        )

    mode_changes: list[ModeChange] = []
    meter = TaxiMeter(
        trip_id=trip_id,
        is_airport=is_airport,
        calculator=calculator,
        on_mode_change=mode_changes.append,
    )
    meter.start(trip_start_time)

    env = simpy.Environment()
    env.process(feed_samples(env, meter, trip_start_time, samples))
    env.run()

    fare = meter.stop()
    return ReplayResult(reading=meter.reading, fare=fare, mode_changes=mode_changes)
