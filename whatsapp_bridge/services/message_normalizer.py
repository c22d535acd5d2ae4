from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from whatsapp_bridge.models.message import MessageCreate, MessageDirection, MessageStatus

IMAGE_PLACEHOLDER = "Image message"
VOICE_PLACEHOLDER = "Voice message"
DOCUMENT_PLACEHOLDER = "Document"


class InvalidMessageError(ValueError):
    """Raised when an inbound message lacks the fields needed to store it."""


def extract_content(message: Dict[str, Any]) -> tuple:
    """
    Map a provider message to (content, media_id) by message type.

    Content is never None: media without caption or filename gets a
    placeholder, and unknown kinds become "<kind> message".
    """
    msg_type = message.get("type")

    if msg_type == "text":
        return (message.get("text") or {}).get("body") or "", None

    if msg_type == "image":
        image = message.get("image") or {}
        return image.get("caption") or IMAGE_PLACEHOLDER, image.get("id")

    if msg_type == "audio":
        audio = message.get("audio") or {}
        return VOICE_PLACEHOLDER, audio.get("id")

    if msg_type == "document":
        document = message.get("document") or {}
        return document.get("filename") or DOCUMENT_PLACEHOLDER, document.get("id")

    return f"{msg_type} message", None


def extract_contact_name(contacts: Optional[List[Dict[str, Any]]],
                         wa_id: Optional[str] = None) -> Optional[str]:
    """Profile name of the sender from the envelope's `contacts` array."""
    if not contacts:
        return None

    contact = next((c for c in contacts if wa_id and c.get("wa_id") == wa_id), contacts[0])
    return (contact.get("profile") or {}).get("name")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """WhatsApp timestamps are unix seconds sent as strings."""
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def normalize_incoming_message(message: Dict[str, Any],
                               contacts: Optional[List[Dict[str, Any]]] = None) -> MessageCreate:
    """
    Convert one webhook message object into an incoming message record.

    Args:
        message: Element of `value.messages`
        contacts: The envelope's `value.contacts`, if any

    Returns:
        MessageCreate with direction 'incoming' and status 'received'

    Raises:
        InvalidMessageError: If the sender number is missing
    """
    phone_number = message.get("from")
    if not phone_number:
        raise InvalidMessageError("Inbound message has no sender number")

    msg_type = message.get("type") or "unknown"
    content, media_id = extract_content({**message, "type": msg_type})

    return MessageCreate(
        phone_number=str(phone_number),
        name=extract_contact_name(contacts, str(phone_number)),
        message_type=msg_type,
        message_content=content,
        media_id=media_id,
        whatsapp_message_id=message.get("id"),
        direction=MessageDirection.INCOMING,
        status=MessageStatus.RECEIVED,
        timestamp=parse_timestamp(message.get("timestamp")) or datetime.now(timezone.utc),
    )
