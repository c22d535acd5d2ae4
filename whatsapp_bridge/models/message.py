from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class MessageDirection(str, Enum):
    """Which side of the conversation produced a message."""
    INCOMING = "incoming"
    OUTGOING = "outgoing"


class MessageStatus(str, Enum):
    """Delivery status of a message."""
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    RECEIVED = "received"
    FAILED = "failed"


class MessageBase(BaseModel):
    """Base message model with common fields."""
    phone_number: str = Field(..., description="Counterpart phone number (conversation key)")
    name: Optional[str] = Field(None, description="Contact display name from the WhatsApp profile")
    message_type: str = Field(..., description="Message type: 'text', 'image', 'audio', 'document', 'voice'")
    message_content: str = Field(..., description="Text message content, caption or placeholder")
    media_id: Optional[str] = Field(None, description="WhatsApp media ID for media messages")
    media_url: Optional[str] = Field(None, description="External URL for media messages")
    whatsapp_message_id: Optional[str] = Field(None, description="Provider-assigned message ID (wamid)")


class MessageCreate(MessageBase):
    """Model for creating a new message."""
    direction: MessageDirection
    status: MessageStatus
    timestamp: Optional[datetime] = None

    def to_record(self) -> dict:
        """Serialize for insertion into the messages table."""
        record = self.model_dump(mode="json")
        if record.get("timestamp") is None:
            record.pop("timestamp", None)
        return record


class ConversationSummary(BaseModel):
    """Read-side summary of a conversation, maintained by the database view."""
    phone_number: str
    name: Optional[str] = None
    last_message: Optional[str] = None
    last_message_time: Optional[datetime] = None
