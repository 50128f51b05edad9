"""Regulated taxi rate schedules (Tarif A day, Tarif B night).

Rates are set by the Commission des transports du Quebec. The schedule for a
trip is chosen from the local hour at which the trip started.
"""

from datetime import datetime, tzinfo
from decimal import Decimal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field

from fare_engine.core.exceptions import ConfigurationError, InvalidInputError

DEFAULT_TIMEZONE = "America/Toronto"


class RateSchedule(BaseModel):
    """One regulated rate table."""

    model_config = ConfigDict(frozen=True)

    name: str
    base_fare: Decimal = Field(ge=0)
    per_km: Decimal = Field(ge=0)
    per_minute_waiting: Decimal = Field(ge=0)
    minimum_fare: Decimal = Field(ge=0)


DAY_SCHEDULE = RateSchedule(
    name="day",
    base_fare=Decimal("3.50"),
    per_km=Decimal("1.90"),
    per_minute_waiting=Decimal("0.70"),
    minimum_fare=Decimal("7.00"),
)

NIGHT_SCHEDULE = RateSchedule(
    name="night",
    base_fare=Decimal("3.90"),
    per_km=Decimal("2.10"),
    per_minute_waiting=Decimal("0.75"),
    minimum_fare=Decimal("7.80"),
)

# Schedule-independent constants
AIRPORT_SURCHARGE = Decimal("17.50")
REGULATORY_FEE = Decimal("0.90")  # untaxed, shown separately on the receipt
WAITING_SPEED_THRESHOLD_KMH = 20.0
DAY_START_HOUR = 5
NIGHT_START_HOUR = 23

# Input bounds; amounts stay well inside the default decimal context precision
MAX_DISTANCE_KM = 10_000.0
MAX_WAITING_MINUTES = 7 * 24 * 60.0
MAX_PLAUSIBLE_SPEED_KMH = 250.0

Timestamp = datetime | str | int | float


class ResolvedSchedule(BaseModel):
    model_config = ConfigDict(frozen=True)

    schedule: RateSchedule
    is_night: bool


def to_local_datetime(timestamp: Timestamp, tz: tzinfo) -> datetime:
    """Normalize a datetime, ISO-8601 string or epoch seconds to local time.

    Naive datetimes are taken as already being local wall-clock time.
    """
    if isinstance(timestamp, bool):
        raise InvalidInputError("Timestamp must not be a boolean")
    if isinstance(timestamp, int | float):
        try:
            return datetime.fromtimestamp(timestamp, tz=tz)
        except (OverflowError, OSError, ValueError) as e:
            raise InvalidInputError(f"Invalid epoch timestamp: {timestamp!r}") from e
    if isinstance(timestamp, str):
        try:
            timestamp = datetime.fromisoformat(timestamp)
        except ValueError as e:
            raise InvalidInputError(f"Invalid ISO-8601 timestamp: {timestamp!r}") from e
    if not isinstance(timestamp, datetime):
        raise InvalidInputError(f"Unsupported timestamp type: {type(timestamp).__name__}")
    if timestamp.tzinfo is None:
        return timestamp
    return timestamp.astimezone(tz)


def load_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationError(f"Unknown time zone: {name!r}") from e


def is_night_hour(hour: int) -> bool:
    return hour >= NIGHT_START_HOUR or hour < DAY_START_HOUR


class RateScheduleResolver:
    """Maps a timestamp to the day or night schedule."""

    def __init__(
        self,
        timezone: str | tzinfo = DEFAULT_TIMEZONE,
        day: RateSchedule = DAY_SCHEDULE,
        night: RateSchedule = NIGHT_SCHEDULE,
    ) -> None:
        self.tz = load_timezone(timezone) if isinstance(timezone, str) else timezone
        self.day = day
        self.night = night

    def resolve(self, timestamp: Timestamp) -> ResolvedSchedule:
        local = to_local_datetime(timestamp, self.tz)
        if is_night_hour(local.hour):
            return ResolvedSchedule(schedule=self.night, is_night=True)
        return ResolvedSchedule(schedule=self.day, is_night=False)


def resolve_rate_schedule(
    timestamp: Timestamp, timezone: str | tzinfo = DEFAULT_TIMEZONE
) -> ResolvedSchedule:
    return RateScheduleResolver(timezone).resolve(timestamp)


def is_night_rate(timestamp: Timestamp, timezone: str | tzinfo = DEFAULT_TIMEZONE) -> bool:
    return resolve_rate_schedule(timestamp, timezone).is_night
