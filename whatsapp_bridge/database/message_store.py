from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from supabase import Client
from whatsapp_bridge.models.message import MessageCreate, MessageDirection, MessageStatus

MESSAGES_TABLE = "whatsapp_messages"
CHAT_SUMMARIES_VIEW = "chat_summaries"

# Characters with meaning inside a PostgREST `or=(...)` filter
_OR_FILTER_RESERVED = str.maketrans({",": " ", "(": " ", ")": " ", "*": " ", "%": " "})


class MessageStore:
    """
    Access to the `whatsapp_messages` table and the `chat_summaries` view.

    Every method is a single query: one insert, one conditional update or
    one read. Nothing here spans multiple rows transactionally.
    """

    def __init__(self, client: Client):
        self.client = client

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def insert_message(self, message: MessageCreate) -> Dict[str, Any]:
        """Insert one message and return the stored row."""
        result = self.client.table(MESSAGES_TABLE).insert(message.to_record()).execute()
        return result.data[0] if result.data else {}

    def update_outgoing_status(self,
                               whatsapp_message_id: str,
                               status: MessageStatus,
                               previous_statuses: Iterable[MessageStatus]) -> List[Dict[str, Any]]:
        """
        Set the status of an outgoing message only if it is currently in
        one of `previous_statuses`.

        Returns the updated rows; empty when the id is unknown or the
        current status is not an allowed predecessor.
        """
        allowed = [s.value for s in previous_statuses]
        if not allowed:
            return []

        result = (self.client.table(MESSAGES_TABLE)
                  .update({"status": status.value})
                  .eq("whatsapp_message_id", whatsapp_message_id)
                  .eq("direction", MessageDirection.OUTGOING.value)
                  .in_("status", allowed)
                  .execute())
        return result.data or []

    def mark_conversation_read(self, phone_number: str) -> int:
        """Mark unread incoming messages of a conversation as read."""
        result = (self.client.table(MESSAGES_TABLE)
                  .update({"status": MessageStatus.READ.value})
                  .eq("phone_number", phone_number)
                  .eq("direction", MessageDirection.INCOMING.value)
                  .in_("status", [MessageStatus.RECEIVED.value, MessageStatus.DELIVERED.value])
                  .execute())
        return len(result.data or [])

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def list_conversations(self, limit: int, offset: int) -> List[Dict[str, Any]]:
        result = (self.client.table(CHAT_SUMMARIES_VIEW)
                  .select("*")
                  .order("last_message_time", desc=True)
                  .range(offset, offset + limit - 1)
                  .execute())
        return result.data or []

    def get_messages(self, phone_number: str, limit: int, offset: int) -> List[Dict[str, Any]]:
        result = (self.client.table(MESSAGES_TABLE)
                  .select("*")
                  .eq("phone_number", phone_number)
                  .order("timestamp", desc=True)
                  .range(offset, offset + limit - 1)
                  .execute())
        return result.data or []

    def search_messages(self, query: str, limit: int) -> List[Dict[str, Any]]:
        """Case-insensitive match on phone number, contact name or content."""
        term = query.translate(_OR_FILTER_RESERVED).strip()
        if not term:
            return []

        pattern = f"%{term}%"
        result = (self.client.table(MESSAGES_TABLE)
                  .select("phone_number, name, message_content, timestamp")
                  .or_(f"phone_number.ilike.{pattern},name.ilike.{pattern},message_content.ilike.{pattern}")
                  .order("timestamp", desc=True)
                  .limit(limit)
                  .execute())
        return result.data or []

    def count_conversations(self) -> int:
        result = (self.client.table(CHAT_SUMMARIES_VIEW)
                  .select("phone_number", count="exact")
                  .limit(1)
                  .execute())
        return result.count or 0

    def count_messages(self, since: Optional[datetime] = None) -> int:
        query = self.client.table(MESSAGES_TABLE).select("id", count="exact")
        if since is not None:
            query = query.gte("timestamp", since.isoformat())
        result = query.limit(1).execute()
        return result.count or 0
