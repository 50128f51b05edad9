from fastapi import APIRouter, Depends

from fare_engine.api.auth import verify_api_key
from fare_engine.api.dependencies import MeterRegistryDep
from fare_engine.api.models.meters import (
    AirportRequest,
    MeterResponse,
    StartMeterRequest,
    TickRequest,
    TickResponse,
)
from fare_engine.engine_logging import log_trip_context
from fare_engine.fare import FareBreakdown
from fare_engine.meter import MeterReading

router = APIRouter(prefix="/meters", dependencies=[Depends(verify_api_key)])


@router.post("", response_model=MeterResponse, status_code=201)
def start_meter(body: StartMeterRequest, registry: MeterRegistryDep) -> MeterResponse:
    """Drop the flag for a new trip."""
    with log_trip_context(body.trip_id):
        meter = registry.start_trip(body.trip_id, is_airport=body.is_airport, at=body.at)
        return MeterResponse(reading=meter.reading, fare=meter.current_fare())


@router.get("/{trip_id}", response_model=MeterResponse)
def get_meter(trip_id: str, registry: MeterRegistryDep) -> MeterResponse:
    meter = registry.get(trip_id)
    return MeterResponse(reading=meter.reading, fare=meter.current_fare())


@router.post("/{trip_id}/ticks", response_model=TickResponse)
def post_tick(trip_id: str, body: TickRequest, registry: MeterRegistryDep) -> TickResponse:
    """Feed one speed sample. Malformed or late samples are reported, not failed."""
    meter = registry.get(trip_id)
    with log_trip_context(trip_id):
        accepted = meter.tick(
            body.at or meter.now(),
            body.speed_kmh,
            body.interval_seconds,
        )
    return TickResponse(accepted=accepted, reading=meter.reading)


@router.post("/{trip_id}/pause", response_model=MeterReading)
def pause_meter(trip_id: str, registry: MeterRegistryDep) -> MeterReading:
    meter = registry.get(trip_id)
    with log_trip_context(trip_id):
        meter.pause()
    return meter.reading


@router.post("/{trip_id}/resume", response_model=MeterReading)
def resume_meter(trip_id: str, registry: MeterRegistryDep) -> MeterReading:
    meter = registry.get(trip_id)
    with log_trip_context(trip_id):
        meter.resume()
    return meter.reading


@router.put("/{trip_id}/airport", response_model=MeterReading)
def set_airport(trip_id: str, body: AirportRequest, registry: MeterRegistryDep) -> MeterReading:
    meter = registry.get(trip_id)
    meter.set_airport(body.is_airport)
    return meter.reading


@router.post("/{trip_id}/stop", response_model=FareBreakdown)
def stop_meter(trip_id: str, registry: MeterRegistryDep) -> FareBreakdown:
    """End the trip and return the final fare."""
    meter = registry.get(trip_id)
    with log_trip_context(trip_id):
        return meter.stop()


@router.post("/{trip_id}/reset", response_model=MeterReading)
def reset_meter(trip_id: str, registry: MeterRegistryDep) -> MeterReading:
    meter = registry.get(trip_id)
    meter.reset()
    return meter.reading


@router.delete("/{trip_id}", status_code=204)
def delete_meter(trip_id: str, registry: MeterRegistryDep) -> None:
    registry.remove(trip_id)
