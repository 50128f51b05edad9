import math
import random
import threading
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from fare_engine.core.exceptions import InvalidInputError, MeterStateError
from fare_engine.fare import FareCalculator
from fare_engine.meter import MeterMode, ModeChange, TaxiMeter, tick_meter
from fare_engine.rates import MAX_PLAUSIBLE_SPEED_KMH


def seconds_after(start: datetime, seconds: float) -> datetime:
    return start + timedelta(seconds=seconds)


@pytest.mark.unit
class TestMeterLifecycle:
    def test_new_meter_is_stopped(self, meter):
        assert meter.mode == MeterMode.STOPPED
        assert meter.is_running is False
        assert meter.reading.trip_start_time is None

    def test_start_enters_distance_mode(self, meter, day_start):
        reading = meter.start(day_start)

        assert reading.mode == MeterMode.DISTANCE
        assert reading.distance_km == 0.0
        assert reading.waiting_minutes == 0.0
        assert reading.trip_start_time == day_start
        assert reading.last_tick_at == day_start
        assert reading.is_night_rate is False

    def test_start_twice_raises(self, meter, day_start):
        meter.start(day_start)

        with pytest.raises(MeterStateError):
            meter.start(day_start)

    def test_start_defaults_to_now(self, meter):
        reading = meter.start()

        assert reading.trip_start_time is not None
        assert reading.trip_start_time.tzinfo is not None

    def test_stop_returns_final_fare(self, meter, day_start):
        meter.start(day_start)
        meter.tick(seconds_after(day_start, 1000), 36.0)
        meter.tick(seconds_after(day_start, 1120), 0.0)

        fare = meter.stop()

        assert meter.mode == MeterMode.STOPPED
        assert fare.distance_fare == Decimal("19.00")
        assert fare.waiting_fare == Decimal("1.40")
        assert fare.total == Decimal("28.38")
        assert meter.current_fare() == fare

    def test_stop_when_stopped_raises(self, meter):
        with pytest.raises(MeterStateError):
            meter.stop()

    def test_ticks_after_stop_rejected(self, meter, day_start):
        meter.start(day_start)
        meter.stop()

        assert meter.tick(seconds_after(day_start, 10), 50.0) is False
        assert meter.reading.distance_km == 0.0
        assert meter.reading.ticks_rejected == 1

    def test_reset_while_running_raises(self, meter, day_start):
        meter.start(day_start)

        with pytest.raises(MeterStateError):
            meter.reset()

    def test_reset_clears_stopped_meter(self, meter, day_start):
        meter.start(day_start)
        meter.tick(seconds_after(day_start, 60), 60.0)
        meter.stop()

        meter.reset()

        reading = meter.reading
        assert reading.distance_km == 0.0
        assert reading.trip_start_time is None
        assert reading.is_night_rate is None
        with pytest.raises(MeterStateError):
            meter.current_fare()

    def test_restart_after_stop_starts_fresh(self, meter, day_start, night_start):
        meter.start(day_start)
        meter.tick(seconds_after(day_start, 60), 60.0)
        meter.stop()

        reading = meter.start(night_start)

        assert reading.distance_km == 0.0
        assert reading.is_night_rate is True
        assert meter.current_fare().fare_subtotal == Decimal("7.80")

    def test_current_fare_before_start_raises(self, meter):
        with pytest.raises(MeterStateError):
            meter.current_fare()

    def test_current_fare_while_running(self, meter, day_start):
        meter.start(day_start)
        meter.tick(seconds_after(day_start, 600), 60.0)

        fare = meter.current_fare()

        assert fare.distance_fare == Decimal("19.00")
        assert meter.is_running is True


@pytest.mark.unit
class TestMeterTicks:
    def test_fast_tick_accumulates_distance(self, meter, day_start):
        meter.start(day_start)

        assert meter.tick(seconds_after(day_start, 1), 36.0) is True

        reading = meter.reading
        assert reading.distance_km == pytest.approx(0.01)
        assert reading.waiting_minutes == 0.0
        assert reading.mode == MeterMode.DISTANCE

    def test_slow_tick_accumulates_waiting(self, meter, day_start):
        meter.start(day_start)

        meter.tick(seconds_after(day_start, 30), 5.0)

        reading = meter.reading
        assert reading.waiting_minutes == pytest.approx(0.5)
        assert reading.distance_km == 0.0
        assert reading.mode == MeterMode.WAITING

    def test_threshold_speed_bills_distance(self, meter, day_start):
        meter.start(day_start)

        meter.tick(seconds_after(day_start, 180), 20.0)

        assert meter.mode == MeterMode.DISTANCE
        assert meter.reading.distance_km == pytest.approx(1.0)

    def test_explicit_interval_overrides_elapsed(self, meter, day_start):
        meter.start(day_start)

        meter.tick(seconds_after(day_start, 1), 36.0, interval_seconds=1000)

        assert meter.reading.distance_km == pytest.approx(10.0)

    def test_zero_speed_is_waiting(self, meter, day_start):
        meter.start(day_start)

        meter.tick(seconds_after(day_start, 60), 0.0)

        assert meter.reading.waiting_minutes == pytest.approx(1.0)

    @pytest.mark.parametrize("speed", [-1.0, float("nan"), float("inf"), "fast", None, True])
    def test_invalid_speed_rejected(self, meter, day_start, speed):
        meter.start(day_start)

        assert meter.tick(seconds_after(day_start, 1), speed) is False

        reading = meter.reading
        assert reading.distance_km == 0.0
        assert reading.waiting_minutes == 0.0
        assert reading.ticks_rejected == 1
        assert reading.last_tick_at == day_start

    @pytest.mark.parametrize("interval", [0, -5.0, float("nan")])
    def test_invalid_interval_rejected(self, meter, day_start, interval):
        meter.start(day_start)

        assert meter.tick(seconds_after(day_start, 1), 50.0, interval_seconds=interval) is False
        assert meter.reading.distance_km == 0.0

    def test_late_tick_rejected(self, meter, day_start):
        meter.start(day_start)
        meter.tick(seconds_after(day_start, 10), 36.0)

        assert meter.tick(seconds_after(day_start, 5), 36.0) is False
        assert meter.reading.distance_km == pytest.approx(0.1)

    def test_duplicate_tick_rejected(self, meter, day_start):
        meter.start(day_start)
        at = seconds_after(day_start, 10)
        meter.tick(at, 36.0)

        assert meter.tick(at, 36.0) is False
        assert meter.reading.ticks_accepted == 1
        assert meter.reading.ticks_rejected == 1

    def test_tick_at_start_time_rejected(self, meter, day_start):
        meter.start(day_start)

        assert meter.tick(day_start, 36.0) is False

    def test_unparseable_timestamp_rejected(self, meter, day_start):
        meter.start(day_start)

        assert meter.tick("soon", 36.0) is False
        assert meter.reading.ticks_rejected == 1

    def test_awareness_mismatch_rejected(self, meter):
        meter.start(datetime(2026, 3, 10, 18, 0, tzinfo=UTC))

        assert meter.tick(datetime(2026, 3, 10, 14, 1), 36.0) is False

    def test_aware_ticks_accepted(self, meter):
        start = datetime(2026, 3, 10, 18, 0, tzinfo=UTC)
        meter.start(start)

        assert meter.tick(start + timedelta(seconds=60), 60.0) is True
        assert meter.reading.distance_km == pytest.approx(1.0)

    def test_epoch_ticks_accepted(self, meter):
        start = datetime(2026, 3, 10, 18, 0, tzinfo=UTC)
        meter.start(start.timestamp())

        assert meter.tick(start.timestamp() + 60, 60.0) is True
        assert meter.reading.distance_km == pytest.approx(1.0)

    def test_tick_meter_returns_reading(self, meter, day_start):
        meter.start(day_start)

        reading = tick_meter(meter, seconds_after(day_start, 60), 60.0)

        assert reading.distance_km == pytest.approx(1.0)
        assert reading.ticks_accepted == 1

    def test_accumulators_never_decrease(self, meter, day_start):
        rng = random.Random(42)
        meter.start(day_start)
        offset = 0.0
        previous = meter.reading

        for _ in range(500):
            offset += rng.uniform(-2.0, 5.0)
            speed = rng.choice([rng.uniform(0, 120), -3.0, float("nan"), 0.0, 19.99])
            meter.tick(seconds_after(day_start, offset), speed)
            current = meter.reading

            assert current.distance_km >= previous.distance_km
            assert current.waiting_minutes >= previous.waiting_minutes
            grew = (
                current.distance_km > previous.distance_km,
                current.waiting_minutes > previous.waiting_minutes,
            )
            assert grew != (True, True)
            previous = current

        assert not math.isnan(previous.distance_km)


@pytest.mark.unit
class TestModeChanges:
    def test_mode_change_callback(self, fare_calculator, day_start):
        changes: list[ModeChange] = []
        meter = TaxiMeter("trip-cb", calculator=fare_calculator, on_mode_change=changes.append)
        meter.start(day_start)

        meter.tick(seconds_after(day_start, 1), 50.0)
        meter.tick(seconds_after(day_start, 2), 5.0)
        meter.tick(seconds_after(day_start, 3), 3.0)
        meter.tick(seconds_after(day_start, 4), 40.0)

        assert [(c.previous, c.current) for c in changes] == [
            (MeterMode.DISTANCE, MeterMode.WAITING),
            (MeterMode.WAITING, MeterMode.DISTANCE),
        ]
        assert changes[0].trip_id == "trip-cb"
        assert changes[0].at == seconds_after(day_start, 2)

    def test_callback_may_read_meter(self, fare_calculator, day_start):
        seen = []
        meter = TaxiMeter(calculator=fare_calculator)
        meter.on_mode_change = lambda change: seen.append(meter.reading.mode)
        meter.start(day_start)

        meter.tick(seconds_after(day_start, 1), 5.0)

        assert seen == [MeterMode.WAITING]


@pytest.mark.unit
class TestPauseResume:
    def test_paused_ticks_not_billed(self, meter, day_start):
        meter.start(day_start)
        meter.tick(seconds_after(day_start, 1), 36.0)
        meter.pause()

        assert meter.tick(seconds_after(day_start, 2), 36.0) is False
        assert meter.reading.distance_km == pytest.approx(0.01)
        assert meter.reading.last_tick_at == seconds_after(day_start, 2)

        meter.resume()
        assert meter.tick(seconds_after(day_start, 3), 36.0) is True
        assert meter.reading.distance_km == pytest.approx(0.02)

    def test_pause_twice_raises(self, meter, day_start):
        meter.start(day_start)
        meter.pause()

        with pytest.raises(MeterStateError):
            meter.pause()

    def test_pause_stopped_meter_raises(self, meter):
        with pytest.raises(MeterStateError):
            meter.pause()

    def test_resume_without_pause_raises(self, meter, day_start):
        meter.start(day_start)

        with pytest.raises(MeterStateError):
            meter.resume()

    def test_stop_while_paused(self, meter, day_start):
        meter.start(day_start)
        meter.pause()

        fare = meter.stop()

        assert meter.is_paused is False
        assert fare.fare_subtotal == Decimal("7.00")


@pytest.mark.unit
class TestRatePinning:
    def test_schedule_pinned_at_start(self, meter):
        start = datetime(2026, 3, 10, 22, 59, 0)
        meter.start(start)

        for second in range(60, 1861, 60):
            meter.tick(seconds_after(start, second), 40.0)
        fare = meter.stop()

        assert fare.is_night_rate is False
        assert fare.base_fare == Decimal("3.50")

    def test_night_start_stays_night_after_five(self, meter):
        start = datetime(2026, 3, 11, 4, 50, 0)
        meter.start(start)
        meter.tick(seconds_after(start, 1200), 45.0)

        assert meter.stop().is_night_rate is True


@pytest.mark.unit
class TestAirportFlag:
    def test_set_airport_while_running(self, meter, day_start):
        meter.start(day_start)

        meter.set_airport(True)

        assert meter.current_fare().airport_surcharge == Decimal("17.50")

    def test_airport_flag_before_start(self, fare_calculator, day_start):
        meter = TaxiMeter(is_airport=True, calculator=fare_calculator)
        meter.start(day_start)

        assert meter.reading.is_airport is True

    def test_set_airport_after_stop_raises(self, meter, day_start):
        meter.start(day_start)
        meter.stop()

        with pytest.raises(MeterStateError):
            meter.set_airport(True)


@pytest.mark.unit
class TestMeterConcurrency:
    def test_independent_meters_in_parallel(self, fare_calculator, day_start):
        meters = [TaxiMeter(f"trip-{i}", calculator=fare_calculator) for i in range(4)]
        for meter in meters:
            meter.start(day_start)

        def drive(meter: TaxiMeter) -> None:
            for second in range(1, 1001):
                meter.tick(seconds_after(day_start, second), 36.0)

        threads = [threading.Thread(target=drive, args=(m,)) for m in meters]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        fares = [meter.stop() for meter in meters]
        assert all(fare == fares[0] for fare in fares)
        assert all(meter.reading.ticks_accepted == 1000 for meter in meters)

    def test_shared_meter_counts_every_tick(self, meter, day_start):
        meter.start(day_start)

        def drive(offset: int) -> None:
            for i in range(250):
                meter.tick(seconds_after(day_start, 1 + offset + i * 4), 36.0)

        threads = [threading.Thread(target=drive, args=(k,)) for k in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        reading = meter.reading
        assert reading.ticks_accepted + reading.ticks_rejected == 1000
        assert reading.ticks_accepted >= 1


class _FailingCalculator(FareCalculator):
    def calculate(self, distance_km, waiting_minutes, is_airport, trip_start_time):
        raise InvalidInputError("cannot price trip")


@pytest.mark.unit
class TestMeterLimits:
    def test_max_plausible_speed_accepted(self, meter, day_start):
        meter.start(day_start)

        assert meter.tick(seconds_after(day_start, 36), MAX_PLAUSIBLE_SPEED_KMH) is True
        assert meter.reading.distance_km == pytest.approx(2.5)

    @pytest.mark.parametrize("speed", [MAX_PLAUSIBLE_SPEED_KMH + 0.01, 1e30])
    def test_implausible_speed_rejected(self, meter, day_start, speed):
        meter.start(day_start)
        meter.tick(seconds_after(day_start, 1), 40.0)

        assert meter.tick(seconds_after(day_start, 2), speed) is False

        reading = meter.reading
        assert reading.ticks_rejected == 1
        assert reading.last_tick_at == seconds_after(day_start, 1)
        fare = meter.stop()
        assert fare.total == Decimal("8.95")

    def test_custom_speed_ceiling(self, fare_calculator, day_start):
        meter = TaxiMeter(calculator=fare_calculator, max_speed_kmh=120.0)
        meter.start(day_start)

        assert meter.tick(seconds_after(day_start, 1), 130.0) is False

    def test_distance_over_trip_limit_rejected(self, meter, day_start):
        meter.start(day_start)

        assert meter.tick(seconds_after(day_start, 1), 100.0, interval_seconds=1e9) is False
        assert meter.reading.distance_km == 0.0
        assert meter.current_fare().fare_subtotal == Decimal("7.00")

    def test_waiting_over_trip_limit_rejected(self, meter, day_start):
        meter.start(day_start)

        assert meter.tick(seconds_after(day_start, 1), 0.0, interval_seconds=1e9) is False
        assert meter.reading.waiting_minutes == 0.0

    def test_failed_stop_keeps_meter_running(self, day_start):
        meter = TaxiMeter(calculator=_FailingCalculator())
        meter.start(day_start)

        with pytest.raises(InvalidInputError):
            meter.stop()

        assert meter.is_running is True
        assert meter.mode == MeterMode.DISTANCE
        assert meter.tick(seconds_after(day_start, 1), 40.0) is True


@pytest.mark.unit
class TestPausedRejections:
    @pytest.mark.parametrize("speed", [-5.0, float("nan")])
    def test_invalid_speed_while_paused_rejected(self, meter, day_start, speed):
        meter.start(day_start)
        meter.pause()

        assert meter.tick(seconds_after(day_start, 5), speed) is False

        reading = meter.reading
        assert reading.ticks_rejected == 1
        assert reading.last_tick_at == day_start

    def test_valid_tick_while_paused_not_counted_as_rejected(self, meter, day_start):
        meter.start(day_start)
        meter.pause()

        meter.tick(seconds_after(day_start, 5), 30.0)

        assert meter.reading.ticks_rejected == 0
        assert meter.reading.ticks_accepted == 0


@pytest.mark.unit
class TestMeterClock:
    def test_now_is_naive_for_naive_trip(self, meter, day_start):
        meter.start(day_start)

        assert meter.now().tzinfo is None
        assert meter.tick(meter.now(), 30.0, interval_seconds=1) is True

    def test_now_is_aware_for_aware_trip(self, meter):
        meter.start(datetime(2026, 3, 10, 18, 0, tzinfo=UTC))

        assert meter.now().tzinfo is not None

    def test_now_before_start_is_aware(self, meter):
        assert meter.now().tzinfo is not None
