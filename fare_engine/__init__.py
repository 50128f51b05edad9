"""Quebec regulated taxi fares, taxi meter and courier pricing."""

from fare_engine.core.exceptions import InvalidInputError, MeterStateError, PricingError
from fare_engine.courier import (
    CourierPriceBreakdown,
    CourierPricingCalculator,
    CourierPricingInput,
    calculate_courier_price,
)
from fare_engine.fare import FareBreakdown, FareCalculator, calculate_fare, estimate_fare
from fare_engine.formatting import Locale, format_currency, format_distance, format_duration
from fare_engine.meter import MeterMode, MeterRegistry, TaxiMeter, tick_meter
from fare_engine.rates import RateSchedule, RateScheduleResolver, resolve_rate_schedule

__all__ = [
    "CourierPriceBreakdown",
    "CourierPricingCalculator",
    "CourierPricingInput",
    "FareBreakdown",
    "FareCalculator",
    "InvalidInputError",
    "Locale",
    "MeterMode",
    "MeterRegistry",
    "MeterStateError",
    "PricingError",
    "RateSchedule",
    "RateScheduleResolver",
    "TaxiMeter",
    "calculate_courier_price",
    "calculate_fare",
    "estimate_fare",
    "format_currency",
    "format_distance",
    "format_duration",
    "resolve_rate_schedule",
    "tick_meter",
]
