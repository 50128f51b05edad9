from datetime import datetime

from pydantic import BaseModel, Field

from fare_engine.fare import FareBreakdown
from fare_engine.meter import MeterReading


class StartMeterRequest(BaseModel):
    trip_id: str = Field(min_length=1, max_length=128)
    is_airport: bool = False
    at: datetime | None = None


class TickRequest(BaseModel):
    at: datetime | None = None
    speed_kmh: float
    interval_seconds: float | None = None


class AirportRequest(BaseModel):
    is_airport: bool


class MeterResponse(BaseModel):
    reading: MeterReading
    fare: FareBreakdown


class TickResponse(BaseModel):
    accepted: bool
    reading: MeterReading
