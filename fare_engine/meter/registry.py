import threading
from collections.abc import Callable

from fare_engine.core.exceptions import MeterStateError, NotFoundError
from fare_engine.fare import FareCalculator
from fare_engine.meter.taximeter import ModeChange, TaxiMeter
from fare_engine.rates import MAX_PLAUSIBLE_SPEED_KMH, Timestamp


class MeterRegistry:
    """Caller-owned index of the meters of trips in progress.

    Thread-safe: the lock guards the index and meter creation. Each meter
    serializes its own ticks and commands, so different trips never contend
    with each other.
    """

    def __init__(
        self,
        calculator: FareCalculator | None = None,
        on_mode_change: Callable[[ModeChange], None] | None = None,
        max_speed_kmh: float = MAX_PLAUSIBLE_SPEED_KMH,
    ) -> None:
        self._lock = threading.Lock()
        self._meters: dict[str, TaxiMeter] = {}
        self.calculator = calculator or FareCalculator()
        self.on_mode_change = on_mode_change
        self.max_speed_kmh = max_speed_kmh

    def start_trip(
        self,
        trip_id: str,
        is_airport: bool = False,
        at: Timestamp | None = None,
    ) -> TaxiMeter:
        """Create and start a meter for a new trip.

        The meter is only registered once it has started, so a rejected start
        time leaves no trace.
        """
        with self._lock:
            existing = self._meters.get(trip_id)
            if existing is not None and existing.is_running:
                raise MeterStateError(
                    f"Trip {trip_id} already has a running meter", details={"trip_id": trip_id}
                )
            meter = TaxiMeter(
                trip_id=trip_id,
                is_airport=is_airport,
                calculator=self.calculator,
                on_mode_change=self.on_mode_change,
                max_speed_kmh=self.max_speed_kmh,
            )
            meter.start(at)
            self._meters[trip_id] = meter
        return meter

    def get(self, trip_id: str) -> TaxiMeter:
        with self._lock:
            meter = self._meters.get(trip_id)
        if meter is None:
            raise NotFoundError(f"No meter for trip {trip_id}", details={"trip_id": trip_id})
        return meter

    def remove(self, trip_id: str) -> TaxiMeter:
        with self._lock:
            meter = self._meters.pop(trip_id, None)
        if meter is None:
            raise NotFoundError(f"No meter for trip {trip_id}", details={"trip_id": trip_id})
        return meter

    def trip_ids(self) -> list[str]:
        with self._lock:
            return list(self._meters)

    def active_count(self) -> int:
        with self._lock:
            return sum(1 for meter in self._meters.values() if meter.is_running)

    def __len__(self) -> int:
        with self._lock:
            return len(self._meters)

    def clear(self) -> None:
        with self._lock:
            self._meters.clear()
