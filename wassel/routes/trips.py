# wassel/routes/trips.py
"""
Trip API Routes
Offline trip sync ingestion plus single-trip read/update.
"""

from typing import Any

from fastapi import APIRouter, Depends

from wassel.auth.verify import auth_dependency
from wassel.models.api.trip_request import OkResponse, SyncAck, TripSyncRequest, TripUpdateRequest
from wassel.services.container import ServiceContainer, get_services

router = APIRouter(prefix="/api/trips", tags=["trips"])


@router.post("/sync", response_model=SyncAck)
async def sync_offline_trip(
    body: TripSyncRequest,
    claims: dict = Depends(auth_dependency),
    services: ServiceContainer = Depends(get_services),
):
    """Accept one offline-created trip; replays of the same id merge."""
    trip_id = await services.trips.ingest_offline_trip(body, caller_id=claims.get("sub"))
    return SyncAck(id=trip_id)


@router.post("/update", response_model=OkResponse)
async def update_trip(
    body: TripUpdateRequest,
    claims: dict = Depends(auth_dependency),
    services: ServiceContainer = Depends(get_services),
):
    await services.trips.update_trip(body.trip_id, body.updates)
    return OkResponse()


@router.get("/{trip_id}")
async def get_trip(trip_id: str, services: ServiceContainer = Depends(get_services)) -> dict[str, Any] | None:
    """Trip row, or null when no trip has this id."""
    return await services.trips.get_trip(trip_id)
