# wassel/services/push_token_service.py
from datetime import UTC, datetime

from wassel.infrastructure.observability.logging import get_logger
from wassel.services.supabase_rest import SupabaseRestClient

logger = get_logger(__name__)

PUSH_TOKENS_TABLE = "push_tokens"


class PushTokenService:
    """Device push tokens, stored with the service role key."""

    def __init__(self, supabase: SupabaseRestClient):
        self.supabase = supabase

    async def register(self, token: str, user_id: str | None = None) -> None:
        row = {"token": token, "user_id": user_id, "created_at": datetime.now(UTC).isoformat()}
        await self.supabase.insert(PUSH_TOKENS_TABLE, row, error_message="Failed to store token")
        logger.info("Push token registered", user_id=user_id)

    async def unregister(self, token: str) -> None:
        await self.supabase.delete(PUSH_TOKENS_TABLE, "token", token, error_message="Failed to delete token")
        logger.info("Push token unregistered")
