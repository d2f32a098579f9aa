# wassel/services/message_service.py
from wassel.infrastructure.observability.logging import get_logger
from wassel.models.domain.offline_domain import PendingMessageWire
from wassel.services.supabase_rest import SupabaseRestClient
from wassel.services.trip_service import ms_to_iso

logger = get_logger(__name__)

MESSAGES_TABLE = "messages"


class MessageService:
    def __init__(self, supabase: SupabaseRestClient):
        self.supabase = supabase

    async def ingest_offline_message(self, message: PendingMessageWire) -> str:
        row = {
            "id": message.id,
            "conversation_id": message.conversation_id,
            "sender_id": message.sender_id,
            "content": message.content,
            "created_at": ms_to_iso(message.timestamp),
        }
        await self.supabase.upsert(MESSAGES_TABLE, row, error_message="Failed to sync message")
        logger.info("Offline message synced", message_id=message.id, conversation_id=message.conversation_id)
        return message.id
