import asyncio
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Optional
from whatsapp_bridge.config import get_settings
from whatsapp_bridge.database.message_store import MessageStore
from whatsapp_bridge.database.supabase_client import get_supabase_client
from whatsapp_bridge.models.message import MessageCreate, MessageDirection, MessageStatus
from whatsapp_bridge.services.message_normalizer import (
    IMAGE_PLACEHOLDER,
    VOICE_PLACEHOLDER,
    normalize_incoming_message,
)
from whatsapp_bridge.services.whatsapp_client import WhatsAppClient
from whatsapp_bridge.utils.logger import get_logger

logger = get_logger(__name__)

WHATSAPP_BUSINESS_ACCOUNT = "whatsapp_business_account"

# Statuses an outgoing message may be in for a callback to move it forward.
# Anything else (replays, out-of-order callbacks) leaves the row untouched.
STATUS_PREDECESSORS = {
    MessageStatus.DELIVERED: (MessageStatus.SENT,),
    MessageStatus.READ: (MessageStatus.SENT, MessageStatus.DELIVERED),
    MessageStatus.FAILED: (MessageStatus.SENT,),
}


@dataclass
class WebhookResult:
    """What happened to the elements of one webhook delivery."""
    ignored: bool = False
    messages_saved: int = 0
    messages_failed: int = 0
    statuses_applied: int = 0
    statuses_skipped: int = 0
    statuses_failed: int = 0


def first_change_value(payload: Dict[str, Any]) -> Dict[str, Any]:
    """`entry[0].changes[0].value` of a webhook envelope, or {}."""
    entries = payload.get("entry") or []
    if not entries or not isinstance(entries[0], dict):
        return {}
    changes = entries[0].get("changes") or []
    if not changes or not isinstance(changes[0], dict):
        return {}
    value = changes[0].get("value")
    return value if isinstance(value, dict) else {}


def provider_message_id(response: Dict[str, Any]) -> Optional[str]:
    """The `wamid` assigned by WhatsApp in a send response."""
    messages = response.get("messages") or []
    if messages and isinstance(messages[0], dict):
        return messages[0].get("id")
    return None


class WhatsAppService:
    """
    Messaging integration layer between the dashboard and WhatsApp.

    Built once per process with its collaborators injected; holds no
    per-request state, so one instance is shared by all request handlers.
    """

    def __init__(self, client: WhatsAppClient, store: MessageStore):
        self.client = client
        self.store = store

    # ==================================================================
    # Outbound
    # ==================================================================
    async def send_text_message(self, phone_number: str, message: str) -> Dict[str, Any]:
        """Send a text message and record it as outgoing."""
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": phone_number,
            "type": "text",
            "text": {
                "preview_url": False,
                "body": message
            }
        }
        record = MessageCreate(
            phone_number=phone_number,
            message_type="text",
            message_content=message,
            direction=MessageDirection.OUTGOING,
            status=MessageStatus.SENT,
        )
        return await self._dispatch(payload, record)

    async def send_image_message(self,
                                 phone_number: str,
                                 image_url: str,
                                 caption: Optional[str] = "",
                                 media_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Send an image by URL, or by a previously uploaded media ID when
        `media_id` is given.
        """
        image: Dict[str, Any] = {"id": media_id} if media_id else {"link": image_url}
        if caption:
            image["caption"] = caption

        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": phone_number,
            "type": "image",
            "image": image
        }
        record = MessageCreate(
            phone_number=phone_number,
            message_type="image",
            message_content=caption or IMAGE_PLACEHOLDER,
            media_id=media_id,
            media_url=image_url,
            direction=MessageDirection.OUTGOING,
            status=MessageStatus.SENT,
        )
        return await self._dispatch(payload, record)

    async def send_voice_message(self,
                                 phone_number: str,
                                 audio_url: str,
                                 media_id: Optional[str] = None) -> Dict[str, Any]:
        """Send an audio clip by URL (or uploaded media ID)."""
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": phone_number,
            "type": "audio",
            "audio": {"id": media_id} if media_id else {"link": audio_url}
        }
        record = MessageCreate(
            phone_number=phone_number,
            message_type="voice",
            message_content=VOICE_PLACEHOLDER,
            media_id=media_id,
            media_url=audio_url,
            direction=MessageDirection.OUTGOING,
            status=MessageStatus.SENT,
        )
        return await self._dispatch(payload, record)

    async def upload_media(self, file_path: str, mime_type: Optional[str] = None) -> str:
        """Upload a local file to WhatsApp and return the media ID."""
        return await asyncio.to_thread(self.client.upload_media, file_path, mime_type)

    async def _dispatch(self, payload: Dict[str, Any], record: MessageCreate) -> Dict[str, Any]:
        # Client and store calls block and must stay off the event loop.
        # A failed API call raises before anything is stored.
        response = await asyncio.to_thread(self.client.send_message, payload)

        record.whatsapp_message_id = provider_message_id(response)
        try:
            await asyncio.to_thread(self.store.insert_message, record)
        except Exception:
            logger.error(f"Message {record.whatsapp_message_id} sent to {record.phone_number} "
                         f"but could not be saved")
            raise

        logger.info(f"Sent {record.message_type} message to {record.phone_number} "
                    f"({record.whatsapp_message_id})")
        return response

    # ==================================================================
    # Inbound
    # ==================================================================
    async def process_webhook(self, payload: Dict[str, Any]) -> WebhookResult:
        """
        Process one webhook delivery.

        Messages are stored and statuses reconciled in array order. Each
        element is independent: a failure is logged and counted, and the
        next element is still processed.
        """
        result = WebhookResult()

        if payload.get("object") != WHATSAPP_BUSINESS_ACCOUNT:
            logger.info(f"Ignoring webhook for object {payload.get('object')!r}")
            result.ignored = True
            return result

        value = first_change_value(payload)
        contacts: List[Dict[str, Any]] = value.get("contacts") or []

        for message in value.get("messages") or []:
            try:
                await self.process_incoming_message(message, contacts)
                result.messages_saved += 1
            except Exception:
                logger.exception("Error processing incoming message")
                result.messages_failed += 1

        for status_data in value.get("statuses") or []:
            try:
                if await self.update_message_status(status_data):
                    result.statuses_applied += 1
                else:
                    result.statuses_skipped += 1
            except Exception:
                logger.exception("Error updating message status")
                result.statuses_failed += 1

        return result

    async def process_incoming_message(self,
                                       message: Dict[str, Any],
                                       contacts: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        """Normalize an inbound message and store it."""
        record = normalize_incoming_message(message, contacts)
        saved = await asyncio.to_thread(self.store.insert_message, record)
        logger.info(f"Received {record.message_type} message from {record.phone_number}")
        return saved

    async def update_message_status(self, status_data: Dict[str, Any]) -> bool:
        """
        Apply a delivery status callback to the outgoing message it refers to.

        Returns True if a row changed. Unknown message ids, unknown status
        values and callbacks that would move a status backwards are no-ops.
        """
        message_id = status_data.get("id")
        try:
            new_status = MessageStatus(status_data.get("status"))
        except ValueError:
            logger.warning(f"Unsupported status {status_data.get('status')!r} for {message_id}")
            return False

        if not message_id or new_status not in STATUS_PREDECESSORS:
            return False

        if new_status == MessageStatus.FAILED and status_data.get("errors"):
            logger.warning(f"Message {message_id} failed: {status_data['errors']}")

        updated = await asyncio.to_thread(self.store.update_outgoing_status, message_id, new_status,
                                          STATUS_PREDECESSORS[new_status])
        if updated:
            logger.info(f"Message status updated: {message_id} -> {new_status.value}")
        return bool(updated)


@lru_cache()
def get_whatsapp_service() -> WhatsAppService:
    """Get the shared service instance (cached)."""
    settings = get_settings()
    return WhatsAppService(
        client=WhatsAppClient.from_settings(settings),
        store=MessageStore(get_supabase_client()),
    )
