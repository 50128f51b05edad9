from datetime import datetime

from pydantic import BaseModel, Field

from fare_engine.courier import CourierPricingInput
from fare_engine.formatting import Locale
from fare_engine.rates import RateSchedule


class ScheduleResponse(BaseModel):
    schedule: RateSchedule
    is_night: bool


class FareQuoteRequest(BaseModel):
    distance_km: float
    waiting_minutes: float
    is_airport: bool = False
    trip_start_time: datetime


class FareEstimateRequest(BaseModel):
    distance_km: float
    estimated_minutes: float
    trip_start_time: datetime | None = None


class CourierQuoteRequest(CourierPricingInput):
    locale: Locale | None = None


class DeliveryQuoteRequest(BaseModel):
    distance_km: float
    order_value: float = Field(ge=0)
