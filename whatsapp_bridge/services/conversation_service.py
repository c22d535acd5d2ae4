import asyncio
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, List
from whatsapp_bridge.database.message_store import MessageStore
from whatsapp_bridge.database.supabase_client import get_supabase_client
from whatsapp_bridge.models.message import ConversationSummary


class ConversationService:
    """Read-side queries over stored messages for the dashboard."""

    def __init__(self, store: MessageStore):
        self.store = store

    async def list_conversations(self, limit: int = 20, offset: int = 0) -> List[Dict[str, Any]]:
        """Conversation summaries, most recently active first."""
        return await asyncio.to_thread(self.store.list_conversations, limit, offset)

    async def get_history(self, phone_number: str, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        """
        Messages exchanged with one number, newest first, plus the contact
        details taken from the newest message.
        """
        messages = await asyncio.to_thread(self.store.get_messages, phone_number, limit, offset)
        contact = None
        if messages:
            contact = {
                "phone_number": messages[0].get("phone_number"),
                "name": messages[0].get("name")
            }
        return {"messages": messages, "contact": contact}

    async def search(self, query: str, limit: int = 20) -> List[Dict[str, Any]]:
        """Search messages and collapse matches to one entry per number."""
        rows = await asyncio.to_thread(self.store.search_messages, query, limit)

        conversations: Dict[str, ConversationSummary] = {}
        for row in rows:
            phone_number = row.get("phone_number")
            if phone_number in conversations:
                continue
            conversations[phone_number] = ConversationSummary(
                phone_number=phone_number,
                name=row.get("name"),
                last_message=row.get("message_content"),
                last_message_time=row.get("timestamp"),
            )
        return [c.model_dump(mode="json") for c in conversations.values()]

    async def get_stats(self) -> Dict[str, int]:
        today = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        return {
            "totalConversations": await asyncio.to_thread(self.store.count_conversations),
            "totalMessages": await asyncio.to_thread(self.store.count_messages),
            "todayMessages": await asyncio.to_thread(self.store.count_messages, today)
        }

    async def mark_read(self, phone_number: str) -> int:
        """Mark a conversation's unread incoming messages as read."""
        return await asyncio.to_thread(self.store.mark_conversation_read, phone_number)


@lru_cache()
def get_conversation_service() -> ConversationService:
    """Get the shared conversation service instance (cached)."""
    return ConversationService(MessageStore(get_supabase_client()))
