from datetime import datetime

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from fare_engine.api.app import create_app
from fare_engine.courier import CourierPricingCalculator
from fare_engine.fare import FareCalculator
from fare_engine.meter import TaxiMeter
from fare_engine.rates import RateScheduleResolver
from fare_engine.settings import APISettings, EngineSettings, Settings

TEST_API_KEY = "test-api-key"


@pytest.fixture
def resolver() -> RateScheduleResolver:
    return RateScheduleResolver("America/Toronto")


@pytest.fixture
def fare_calculator(resolver) -> FareCalculator:
    return FareCalculator(resolver)


@pytest.fixture
def courier_calculator() -> CourierPricingCalculator:
    return CourierPricingCalculator()


@pytest.fixture
def day_start() -> datetime:
    """Local wall-clock time well inside the day schedule."""
    return datetime(2026, 3, 10, 14, 0, 0)


@pytest.fixture
def night_start() -> datetime:
    """Local wall-clock time inside the night schedule."""
    return datetime(2026, 3, 10, 23, 30, 0)


@pytest.fixture
def meter(fare_calculator) -> TaxiMeter:
    return TaxiMeter(trip_id="trip-001", calculator=fare_calculator)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        engine=EngineSettings(timezone="America/Toronto", default_locale="en-CA"),
        api=APISettings(key=TEST_API_KEY),
    )


@pytest.fixture
def test_app(test_settings) -> FastAPI:
    return create_app(test_settings)


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"X-API-Key": TEST_API_KEY}


@pytest.fixture
def test_client(test_app):
    with TestClient(test_app) as client:
        yield client
