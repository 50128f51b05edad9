"""FastAPI application factory for the fare engine."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from fare_engine.api.models.health import HealthResponse
from fare_engine.api.routes import meters, quotes
from fare_engine.core.exceptions import (
    InvalidInputError,
    MeterStateError,
    NotFoundError,
    PricingError,
)
from fare_engine.courier import CourierPricingCalculator
from fare_engine.fare import FareCalculator
from fare_engine.meter import MeterRegistry
from fare_engine.rates import RateScheduleResolver
from fare_engine.settings import Settings, get_settings

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[PricingError], int] = {
    InvalidInputError: 422,
    NotFoundError: 404,
    MeterStateError: 409,
}


async def pricing_error_handler(request: Request, exc: PricingError) -> JSONResponse:
    status_code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        400,
    )
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


def create_app(
    settings: Settings | None = None,
    meter_registry: MeterRegistry | None = None,
) -> FastAPI:
    """Create FastAPI application with injected dependencies.

    Args:
        settings: Loaded settings; read from the environment when omitted
        meter_registry: Registry of live meters; a fresh one when omitted
    """
    settings = settings or get_settings()
    fare_calculator = FareCalculator(RateScheduleResolver(settings.engine.timezone))

    app = FastAPI(
        title="Quebec Fare Engine",
        description="Regulated taxi fares, live taxi meters and courier pricing",
        version="0.1.0",
    )

    app.state.settings = settings
    app.state.fare_calculator = fare_calculator
    app.state.courier_calculator = CourierPricingCalculator()
    app.state.meter_registry = meter_registry or MeterRegistry(
        calculator=fare_calculator,
        max_speed_kmh=settings.engine.max_speed_kmh,
    )

    app.add_exception_handler(PricingError, pricing_error_handler)  # type: ignore[arg-type]

    app.include_router(quotes.router)
    app.include_router(meters.router)

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        registry: MeterRegistry = app.state.meter_registry
        return HealthResponse(
            status="ok",
            timezone=settings.engine.timezone,
            active_meters=registry.active_count(),
        )

    return app
