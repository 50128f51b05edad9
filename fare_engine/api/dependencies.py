"""FastAPI dependency injection providers."""

from typing import Annotated

from fastapi import Depends, Request

from fare_engine.courier import CourierPricingCalculator
from fare_engine.fare import FareCalculator
from fare_engine.meter import MeterRegistry
from fare_engine.settings import Settings


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_fare_calculator(request: Request) -> FareCalculator:
    return request.app.state.fare_calculator


def get_courier_calculator(request: Request) -> CourierPricingCalculator:
    return request.app.state.courier_calculator


def get_meter_registry(request: Request) -> MeterRegistry:
    """The registry is owned by the app instance, never by the engine."""
    return request.app.state.meter_registry


SettingsDep = Annotated[Settings, Depends(get_settings)]
FareCalculatorDep = Annotated[FareCalculator, Depends(get_fare_calculator)]
CourierCalculatorDep = Annotated[CourierPricingCalculator, Depends(get_courier_calculator)]
MeterRegistryDep = Annotated[MeterRegistry, Depends(get_meter_registry)]
