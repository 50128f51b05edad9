"""Taxi meter state machine.

The meter bills by distance while the vehicle moves at or above the waiting
threshold and by elapsed time below it. Mode is decided by the instantaneous
speed reported with each telemetry tick, never by the driver.
"""

import logging
import math
import threading
from collections.abc import Callable
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict

from fare_engine.core.exceptions import InvalidInputError, MeterStateError
from fare_engine.fare import FareBreakdown, FareCalculator
from fare_engine.rates import (
    MAX_DISTANCE_KM,
    MAX_PLAUSIBLE_SPEED_KMH,
    MAX_WAITING_MINUTES,
    WAITING_SPEED_THRESHOLD_KMH,
    Timestamp,
    to_local_datetime,
)

logger = logging.getLogger(__name__)


class MeterMode(str, Enum):
    """Meter billing modes."""

    STOPPED = "stopped"
    DISTANCE = "distance"
    WAITING = "waiting"


VALID_TRANSITIONS: dict[MeterMode, set[MeterMode]] = {
    MeterMode.STOPPED: {MeterMode.DISTANCE},
    MeterMode.DISTANCE: {MeterMode.WAITING, MeterMode.STOPPED},
    MeterMode.WAITING: {MeterMode.DISTANCE, MeterMode.STOPPED},
}


class ModeChange(BaseModel):
    """Emitted when a tick switches the billing mode."""

    model_config = ConfigDict(frozen=True)

    trip_id: str | None
    previous: MeterMode
    current: MeterMode
    at: datetime


class MeterReading(BaseModel):
    """Point-in-time snapshot of a meter."""

    model_config = ConfigDict(frozen=True)

    trip_id: str | None
    mode: MeterMode
    is_paused: bool
    distance_km: float
    waiting_minutes: float
    is_airport: bool
    trip_start_time: datetime | None
    is_night_rate: bool | None
    last_tick_at: datetime | None
    ticks_accepted: int
    ticks_rejected: int


def _is_finite_number(value: object) -> bool:
    return (
        isinstance(value, int | float)
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


class TaxiMeter:
    """Live meter for a single trip.

    Thread-safe: ticks and commands are serialized on a per-meter lock, so a
    pause or stop can never interleave with a half-applied tick. Meters share
    no state with each other.
    """

    def __init__(
        self,
        trip_id: str | None = None,
        is_airport: bool = False,
        calculator: FareCalculator | None = None,
        on_mode_change: Callable[[ModeChange], None] | None = None,
        waiting_speed_threshold_kmh: float = WAITING_SPEED_THRESHOLD_KMH,
        max_speed_kmh: float = MAX_PLAUSIBLE_SPEED_KMH,
    ) -> None:
        self.trip_id = trip_id
        self.calculator = calculator or FareCalculator()
        self.on_mode_change = on_mode_change
        self.waiting_speed_threshold_kmh = waiting_speed_threshold_kmh
        self.max_speed_kmh = max_speed_kmh

        self._lock = threading.Lock()
        self._mode = MeterMode.STOPPED
        self._paused = False
        self._is_airport = is_airport
        self._distance_km = 0.0
        self._waiting_minutes = 0.0
        self._trip_start_time: datetime | None = None
        self._is_night_rate: bool | None = None
        self._last_tick_at: datetime | None = None
        self._ticks_accepted = 0
        self._ticks_rejected = 0
        self._final_fare: FareBreakdown | None = None

    @property
    def mode(self) -> MeterMode:
        return self._mode

    @property
    def is_running(self) -> bool:
        return self._mode != MeterMode.STOPPED

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def reading(self) -> MeterReading:
        with self._lock:
            return self._snapshot()

    def start(self, at: Timestamp | None = None) -> MeterReading:
        """Drop the flag: begin a trip in distance mode with zeroed accumulators.

        The schedule resolved from ``at`` is used for the whole trip.
        """
        with self._lock:
            if self._mode != MeterMode.STOPPED:
                raise MeterStateError(
                    "Meter is already running", details={"trip_id": self.trip_id}
                )
            start_time = self._normalize(at if at is not None else self._now(aware=True))
            self._distance_km = 0.0
            self._waiting_minutes = 0.0
            self._ticks_accepted = 0
            self._ticks_rejected = 0
            self._final_fare = None
            self._paused = False
            self._trip_start_time = start_time
            self._last_tick_at = start_time
            self._is_night_rate = self.calculator.resolver.resolve(start_time).is_night
            self._transition_to(MeterMode.DISTANCE)
            logger.info(
                "Meter started (%s rate)",
                "night" if self._is_night_rate else "day",
                extra={"trip_id": self.trip_id},
            )
            return self._snapshot()

    def tick(
        self,
        at: Timestamp,
        speed_kmh: float,
        interval_seconds: float | None = None,
    ) -> bool:
        """Apply one telemetry sample. Returns True if it was accumulated.

        ``interval_seconds`` defaults to the time elapsed since the previous
        tick. Malformed samples (negative, non-finite or implausibly high speed,
        bad interval) and late or duplicate timestamps are dropped without
        touching the accumulators or the clock. Valid ticks received while
        paused only advance the clock.
        """
        change: ModeChange | None = None
        with self._lock:
            if self._mode == MeterMode.STOPPED:
                return self._reject("meter stopped", at)
            try:
                tick_at = self._normalize(at)
            except InvalidInputError:
                return self._reject("unparseable timestamp", at)
            last = self._last_tick_at
            if last is not None and (tick_at.tzinfo is None) != (last.tzinfo is None):
                return self._reject("timestamp awareness mismatch", at)
            if last is not None and tick_at <= last:
                return self._reject("late or duplicate tick", at)

            if not _is_finite_number(speed_kmh) or not 0 <= speed_kmh <= self.max_speed_kmh:
                return self._reject(f"invalid speed {speed_kmh!r}", at)
            if interval_seconds is None:
                interval = (tick_at - last).total_seconds() if last is not None else 0.0
            else:
                interval = interval_seconds
            if not _is_finite_number(interval) or interval <= 0:
                return self._reject(f"invalid interval {interval!r}", at)

            if self._paused:
                self._last_tick_at = tick_at
                return False

            if speed_kmh < self.waiting_speed_threshold_kmh:
                new_mode = MeterMode.WAITING
                waiting = self._waiting_minutes + interval / 60.0
                if waiting > MAX_WAITING_MINUTES:
                    return self._reject(f"waiting time over limit {waiting!r}", at)
                self._waiting_minutes = waiting
            else:
                new_mode = MeterMode.DISTANCE
                distance = self._distance_km + speed_kmh * interval / 3600.0
                if distance > MAX_DISTANCE_KM:
                    return self._reject(f"distance over limit {distance!r}", at)
                self._distance_km = distance

            self._last_tick_at = tick_at
            self._ticks_accepted += 1

            if new_mode != self._mode:
                change = ModeChange(
                    trip_id=self.trip_id, previous=self._mode, current=new_mode, at=tick_at
                )
                self._transition_to(new_mode)
                logger.debug(
                    "Meter mode %s -> %s",
                    change.previous.value,
                    change.current.value,
                    extra={"trip_id": self.trip_id},
                )

        if change is not None and self.on_mode_change is not None:
            self.on_mode_change(change)
        return True

    def pause(self) -> None:
        with self._lock:
            if self._mode == MeterMode.STOPPED:
                raise MeterStateError("Meter is not running", details={"trip_id": self.trip_id})
            if self._paused:
                raise MeterStateError("Meter already paused", details={"trip_id": self.trip_id})
            self._paused = True
            logger.info("Meter paused", extra={"trip_id": self.trip_id})

    def resume(self) -> None:
        with self._lock:
            if self._mode == MeterMode.STOPPED or not self._paused:
                raise MeterStateError("Meter is not paused", details={"trip_id": self.trip_id})
            self._paused = False
            logger.info("Meter resumed", extra={"trip_id": self.trip_id})

    def stop(self) -> FareBreakdown:
        """End the trip, freeze the accumulators and return the final fare."""
        with self._lock:
            if self._mode == MeterMode.STOPPED:
                raise MeterStateError("Meter is not running", details={"trip_id": self.trip_id})
            final_fare = self._compute_fare()
            self._transition_to(MeterMode.STOPPED)
            self._paused = False
            self._final_fare = final_fare
            logger.info(
                "Meter stopped: %.3f km, %.2f min waiting, total %s",
                self._distance_km,
                self._waiting_minutes,
                self._final_fare.total,
                extra={"trip_id": self.trip_id},
            )
            return self._final_fare

    def reset(self) -> None:
        """Clear a stopped meter so it can be reused for another trip."""
        with self._lock:
            if self._mode != MeterMode.STOPPED:
                raise MeterStateError(
                    "Meter must be stopped before reset", details={"trip_id": self.trip_id}
                )
            self._distance_km = 0.0
            self._waiting_minutes = 0.0
            self._trip_start_time = None
            self._is_night_rate = None
            self._last_tick_at = None
            self._ticks_accepted = 0
            self._ticks_rejected = 0
            self._final_fare = None

    def set_airport(self, is_airport: bool) -> None:
        with self._lock:
            if self._mode == MeterMode.STOPPED and self._final_fare is not None:
                raise MeterStateError("Trip already ended", details={"trip_id": self.trip_id})
            self._is_airport = is_airport

    def now(self) -> datetime:
        """Current time in the same naive or aware form as the running trip."""
        with self._lock:
            start = self._trip_start_time
        return self._now(aware=start is None or start.tzinfo is not None)

    def current_fare(self) -> FareBreakdown:
        """Fare for the distance and waiting time accumulated so far."""
        with self._lock:
            if self._final_fare is not None:
                return self._final_fare
            if self._trip_start_time is None:
                raise MeterStateError(
                    "Meter has not been started", details={"trip_id": self.trip_id}
                )
            return self._compute_fare()

    def _compute_fare(self) -> FareBreakdown:
        assert self._trip_start_time is not None
        return self.calculator.calculate(
            distance_km=self._distance_km,
            waiting_minutes=self._waiting_minutes,
            is_airport=self._is_airport,
            trip_start_time=self._trip_start_time,
        )

    def _transition_to(self, new_mode: MeterMode) -> None:
        if new_mode not in VALID_TRANSITIONS[self._mode]:
            raise MeterStateError(
                f"Invalid transition from {self._mode.value} to {new_mode.value}",
                details={"trip_id": self.trip_id},
            )
        self._mode = new_mode

    def _now(self, aware: bool) -> datetime:
        now = datetime.now(self.calculator.resolver.tz)
        return now if aware else now.replace(tzinfo=None)

    def _normalize(self, at: Timestamp) -> datetime:
        return to_local_datetime(at, self.calculator.resolver.tz)

    def _reject(self, reason: str, at: object) -> bool:
        self._ticks_rejected += 1
        logger.debug("Tick rejected (%s) at %r", reason, at, extra={"trip_id": self.trip_id})
        return False

    def _snapshot(self) -> MeterReading:
        return MeterReading(
            trip_id=self.trip_id,
            mode=self._mode,
            is_paused=self._paused,
            distance_km=self._distance_km,
            waiting_minutes=self._waiting_minutes,
            is_airport=self._is_airport,
            trip_start_time=self._trip_start_time,
            is_night_rate=self._is_night_rate,
            last_tick_at=self._last_tick_at,
            ticks_accepted=self._ticks_accepted,
            ticks_rejected=self._ticks_rejected,
        )


def tick_meter(
    meter: TaxiMeter,
    at: Timestamp,
    speed_kmh: float,
    interval_seconds: float | None = None,
) -> MeterReading:
    """Feed one sample to a meter and return its updated reading."""
    meter.tick(at, speed_kmh, interval_seconds)
    return meter.reading
