# models/api/trip_request.py
"""
Trip and sync API request models.

The sync endpoints accept exactly the wire shapes the client's offline
records serialize to, so those models are shared rather than redeclared.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from wassel.models.domain.offline_domain import PendingMessageWire, PendingTripWire

TripSyncRequest = PendingTripWire
MessageSyncRequest = PendingMessageWire


class TripUpdateRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    trip_id: str = Field(..., min_length=1)
    updates: dict[str, Any] = Field(..., min_length=1)


class SyncAck(BaseModel):
    ok: bool = True
    id: str


class OkResponse(BaseModel):
    ok: bool = True
