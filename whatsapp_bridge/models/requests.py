from pydantic import BaseModel, Field, field_validator
from typing import Optional
from whatsapp_bridge.utils.validators import normalize_phone_number, validate_http_url


class SendMessageBase(BaseModel):
    """Common fields for outbound send requests."""
    phone_number: str = Field(..., alias="phoneNumber", description="Recipient mobile number")

    @field_validator("phone_number")
    @classmethod
    def validate_phone_number(cls, value: str) -> str:
        return normalize_phone_number(value)

    class Config:
        populate_by_name = True


class SendTextRequest(SendMessageBase):
    """Body of POST /send/text."""
    message: str = Field(..., min_length=1, description="Message body")

    @field_validator("message")
    @classmethod
    def validate_message(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message cannot be empty")
        return value


class SendImageRequest(SendMessageBase):
    """Body of POST /send/image."""
    image_url: str = Field(..., alias="imageUrl", description="Publicly reachable image URL")
    caption: Optional[str] = Field(None, description="Optional image caption")

    @field_validator("image_url")
    @classmethod
    def validate_image_url(cls, value: str) -> str:
        return validate_http_url(value)


class SendVoiceRequest(SendMessageBase):
    """Body of POST /send/voice."""
    audio_url: str = Field(..., alias="audioUrl", description="Publicly reachable audio URL")

    @field_validator("audio_url")
    @classmethod
    def validate_audio_url(cls, value: str) -> str:
        return validate_http_url(value)
