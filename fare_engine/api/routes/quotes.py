from datetime import datetime

from fastapi import APIRouter, Depends, Query

from fare_engine.api.auth import verify_api_key
from fare_engine.api.dependencies import CourierCalculatorDep, FareCalculatorDep, SettingsDep
from fare_engine.api.models.quotes import (
    CourierQuoteRequest,
    DeliveryQuoteRequest,
    FareEstimateRequest,
    FareQuoteRequest,
    ScheduleResponse,
)
from fare_engine.courier import CourierPricingInput, CourierQuote, generate_price_quote
from fare_engine.delivery import DeliveryFeeBreakdown, calculate_delivery_fee
from fare_engine.fare import FareBreakdown

router = APIRouter(dependencies=[Depends(verify_api_key)])


@router.get("/rates/schedule", response_model=ScheduleResponse)
def get_schedule(
    calculator: FareCalculatorDep,
    at: datetime | None = Query(default=None),
) -> ScheduleResponse:
    """Schedule in force at ``at`` (defaults to now)."""
    resolved = calculator.resolver.resolve(at or datetime.now().astimezone())
    return ScheduleResponse(schedule=resolved.schedule, is_night=resolved.is_night)


@router.post("/fares/quote", response_model=FareBreakdown)
def quote_fare(body: FareQuoteRequest, calculator: FareCalculatorDep) -> FareBreakdown:
    return calculator.calculate(
        distance_km=body.distance_km,
        waiting_minutes=body.waiting_minutes,
        is_airport=body.is_airport,
        trip_start_time=body.trip_start_time,
    )


@router.post("/fares/estimate", response_model=FareBreakdown)
def estimate_fare(body: FareEstimateRequest, calculator: FareCalculatorDep) -> FareBreakdown:
    return calculator.estimate(
        distance_km=body.distance_km,
        estimated_minutes=body.estimated_minutes,
        trip_start_time=body.trip_start_time or datetime.now().astimezone(),
    )


@router.post("/courier/quote", response_model=CourierQuote)
def quote_courier(
    body: CourierQuoteRequest,
    calculator: CourierCalculatorDep,
    settings: SettingsDep,
) -> CourierQuote:
    pricing = CourierPricingInput(**body.model_dump(exclude={"locale"}))
    locale = body.locale or settings.engine.default_locale
    return generate_price_quote(pricing, locale, calculator)


@router.post("/delivery/quote", response_model=DeliveryFeeBreakdown)
def quote_delivery(body: DeliveryQuoteRequest) -> DeliveryFeeBreakdown:
    return calculate_delivery_fee(body.distance_km, body.order_value)
