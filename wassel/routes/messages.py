# wassel/routes/messages.py
from fastapi import APIRouter, Depends

from wassel.auth.verify import auth_dependency
from wassel.models.api.trip_request import MessageSyncRequest, SyncAck
from wassel.services.container import ServiceContainer, get_services

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.post("/sync", response_model=SyncAck)
async def sync_offline_message(
    body: MessageSyncRequest,
    claims: dict = Depends(auth_dependency),
    services: ServiceContainer = Depends(get_services),
):
    """Accept one chat message written while offline."""
    message_id = await services.messages.ingest_offline_message(body)
    return SyncAck(id=message_id)
