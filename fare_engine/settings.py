from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fare_engine.core.exceptions import ConfigurationError
from fare_engine.formatting import Locale
from fare_engine.rates import DEFAULT_TIMEZONE, MAX_PLAUSIBLE_SPEED_KMH, load_timezone


class EngineSettings(BaseSettings):
    timezone: str = Field(
        default=DEFAULT_TIMEZONE,
        description="IANA zone whose wall clock decides day/night rates and time-of-day bands",
    )
    max_speed_kmh: float = Field(
        default=MAX_PLAUSIBLE_SPEED_KMH,
        gt=0,
        description="Meter ticks reporting a higher speed are dropped as GPS glitches",
    )
    default_locale: Locale = Locale.FR_CA
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["text", "json"] = "text"
    environment: str = "development"

    model_config = SettingsConfigDict(env_prefix="FARE_")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            load_timezone(v)
        except ConfigurationError as e:
            raise ValueError(e.message) from e
        return v


class APISettings(BaseSettings):
    key: str = ""
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)

    model_config = SettingsConfigDict(env_prefix="API_")


class Settings(BaseSettings):
    engine: EngineSettings = Field(default_factory=EngineSettings)
    api: APISettings = Field(default_factory=APISettings)

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        case_sensitive=False,
    )


def get_settings() -> Settings:
    """Load and validate settings from environment variables."""
    return Settings()
