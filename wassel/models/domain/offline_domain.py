# models/domain/offline_domain.py
"""
Offline record domain models.

Records created on the client while it cannot reach the backend. They live in
the local store until the sync coordinator confirms the backend accepted them.
"""

import uuid
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

TripKind = Literal["booking", "history"]


def _new_record_id() -> str:
    return str(uuid.uuid4())


class NewPendingTrip(BaseModel):
    """Trip record as handed to the local store (no timestamp / synced yet)."""

    id: str = Field(default_factory=_new_record_id, min_length=1)
    user_id: str = Field(..., min_length=1)
    kind: TripKind
    payload: dict[str, Any] = Field(default_factory=dict)


class PendingTrip(NewPendingTrip):
    """Trip record as persisted in the local store."""

    timestamp: int  # epoch milliseconds
    synced: bool = False
    sync_attempts: int = 0

    def to_wire(self) -> dict[str, Any]:
        """Shape POSTed to /api/trips/sync."""
        return PendingTripWire.model_validate(self.model_dump()).model_dump(by_alias=True)


class NewPendingMessage(BaseModel):
    """Chat message as handed to the local store."""

    id: str = Field(default_factory=_new_record_id, min_length=1)
    conversation_id: str = Field(..., min_length=1)
    sender_id: str = Field(..., min_length=1)
    content: str


class PendingMessage(NewPendingMessage):
    """Chat message as persisted in the local store."""

    timestamp: int
    synced: bool = False
    sync_attempts: int = 0

    def to_wire(self) -> dict[str, Any]:
        """Shape POSTed to /api/messages/sync."""
        return PendingMessageWire.model_validate(self.model_dump()).model_dump(by_alias=True)


# =================================================================
# WIRE SHAPES (camelCase, shared with the sync endpoints)
# =================================================================


class PendingTripWire(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    kind: TripKind = Field(..., alias="type")
    payload: dict[str, Any] = Field(default_factory=dict, alias="data")
    timestamp: int = Field(..., ge=0)


class PendingMessageWire(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., min_length=1)
    conversation_id: str = Field(..., min_length=1)
    sender_id: str = Field(..., min_length=1)
    content: str
    timestamp: int = Field(..., ge=0)


class SyncReport(BaseModel):
    """Outcome of one drain of a record type."""

    record_type: Literal["trips", "messages"]
    attempted: int = 0
    synced: int = 0
    failed: int = 0
    stalled: int = 0
    failed_ids: list[str] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.failed == 0 and self.stalled == 0
