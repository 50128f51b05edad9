from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fare_engine.core.exceptions import InvalidInputError
from fare_engine.money import QUEBEC_TAXES, ZERO, TaxConstants, apply_taxes, round_money, to_decimal
from fare_engine.rates import (
    AIRPORT_SURCHARGE,
    MAX_DISTANCE_KM,
    MAX_WAITING_MINUTES,
    REGULATORY_FEE,
    RateScheduleResolver,
    Timestamp,
)

# Share of an estimated trip duration spent below the waiting threshold
# (traffic lights, congestion).
ESTIMATED_WAITING_SHARE = Decimal("0.1")


class TripMetrics(BaseModel):
    """Accumulated trip measurements fed to the fare calculation."""

    model_config = ConfigDict(frozen=True)

    distance_km: float = Field(ge=0, le=MAX_DISTANCE_KM, allow_inf_nan=False)
    waiting_minutes: float = Field(ge=0, le=MAX_WAITING_MINUTES, allow_inf_nan=False)
    is_airport: bool = False


class FareBreakdown(BaseModel):
    """Itemized, tax-inclusive taxi fare as printed on the receipt."""

    model_config = ConfigDict(frozen=True)

    base_fare: Decimal = Field(ge=0)
    distance_fare: Decimal = Field(ge=0)
    waiting_fare: Decimal = Field(ge=0)
    airport_surcharge: Decimal = Field(ge=0)
    fare_subtotal: Decimal = Field(ge=0)
    regulatory_fee: Decimal = Field(ge=0)
    subtotal: Decimal = Field(ge=0)
    gst: Decimal = Field(ge=0)
    qst: Decimal = Field(ge=0)
    total_taxes: Decimal = Field(ge=0)
    total: Decimal = Field(ge=0)
    is_night_rate: bool


class FareCalculator:
    """Calculates regulated taxi fares from accumulated trip metrics."""

    def __init__(
        self,
        resolver: RateScheduleResolver | None = None,
        taxes: TaxConstants = QUEBEC_TAXES,
    ) -> None:
        self.resolver = resolver or RateScheduleResolver()
        self.taxes = taxes

    def calculate(
        self,
        distance_km: float,
        waiting_minutes: float,
        is_airport: bool,
        trip_start_time: Timestamp,
    ) -> FareBreakdown:
        """
        Calculate the fare for a trip.

        The schedule is chosen from trip_start_time, never from the time the
        fare is computed, so a trip that starts on the day rate stays on it.
        The minimum fare floors the sum of fare components; the regulatory fee
        and the taxes are added after the floor, and the fee is not taxed.
        """
        try:
            metrics = TripMetrics(
                distance_km=distance_km,
                waiting_minutes=waiting_minutes,
                is_airport=is_airport,
            )
        except ValidationError as e:
            raise InvalidInputError.from_validation_error("trip metrics", e) from e

        resolved = self.resolver.resolve(trip_start_time)
        schedule = resolved.schedule

        base_fare = round_money(schedule.base_fare)
        distance_fare = round_money(to_decimal(metrics.distance_km) * schedule.per_km)
        waiting_fare = round_money(to_decimal(metrics.waiting_minutes) * schedule.per_minute_waiting)
        airport_surcharge = AIRPORT_SURCHARGE if metrics.is_airport else ZERO

        fare_subtotal = max(
            base_fare + distance_fare + waiting_fare + airport_surcharge,
            round_money(schedule.minimum_fare),
        )
        regulatory_fee = round_money(REGULATORY_FEE)

        taxes = apply_taxes(fare_subtotal, self.taxes)
        subtotal = fare_subtotal + regulatory_fee

        return FareBreakdown(
            base_fare=base_fare,
            distance_fare=distance_fare,
            waiting_fare=waiting_fare,
            airport_surcharge=airport_surcharge,
            fare_subtotal=fare_subtotal,
            regulatory_fee=regulatory_fee,
            subtotal=subtotal,
            gst=taxes.gst,
            qst=taxes.qst,
            total_taxes=taxes.total_taxes,
            total=subtotal + taxes.total_taxes,
            is_night_rate=resolved.is_night,
        )

    def estimate(
        self,
        distance_km: float,
        estimated_minutes: float,
        trip_start_time: Timestamp,
    ) -> FareBreakdown:
        """Quote a fare before the trip, assuming 10% of the ride is spent waiting."""
        if (
            isinstance(estimated_minutes, bool)
            or not isinstance(estimated_minutes, int | float)
            or not estimated_minutes >= 0
        ):
            raise InvalidInputError(
                "Estimated minutes must be a non-negative number",
                details={"estimated_minutes": estimated_minutes},
            )
        waiting_minutes = float(to_decimal(estimated_minutes) * ESTIMATED_WAITING_SHARE)
        return self.calculate(distance_km, waiting_minutes, False, trip_start_time)


def calculate_fare(
    distance_km: float,
    waiting_minutes: float,
    is_airport: bool,
    trip_start_time: Timestamp,
) -> FareBreakdown:
    return FareCalculator().calculate(distance_km, waiting_minutes, is_airport, trip_start_time)


def estimate_fare(
    distance_km: float,
    estimated_minutes: float,
    trip_start_time: Timestamp | None = None,
) -> FareBreakdown:
    """Estimate a fare; trip_start_time defaults to now."""
    if trip_start_time is None:
        trip_start_time = datetime.now().astimezone()
    return FareCalculator().estimate(distance_km, estimated_minutes, trip_start_time)
