import os
import time
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from pathlib import Path
from typing import Optional
from uuid import uuid4
from whatsapp_bridge.config import Settings, get_settings
from whatsapp_bridge.services.whatsapp_client import WhatsAppAPIError
from whatsapp_bridge.services.whatsapp_service import WhatsAppService, get_whatsapp_service
from whatsapp_bridge.utils.exceptions import MessageSendException, ValidationException
from whatsapp_bridge.utils.logger import get_logger, log_to_database
from whatsapp_bridge.utils.responses import success_response
from whatsapp_bridge.utils.validators import normalize_phone_number

logger = get_logger(__name__)

router = APIRouter(prefix="/media", tags=["media"])

ALLOWED_MIME_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "audio/mpeg",
    "audio/mp3",
    "audio/wav",
    "audio/ogg",
    "audio/m4a",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

MESSAGE_TYPES = ("image", "voice", "document")
# MIME family a file must belong to for each sendable message type
SENDABLE_TYPES = {"image": "image/", "voice": "audio/"}
UPLOADS_ROUTE = "/uploads"
CHUNK_SIZE = 1024 * 1024


def public_file_url(request: Request, settings: Settings, file_name: str) -> str:
    """URL under which WhatsApp can fetch a saved upload."""
    base_url = settings.public_base_url or str(request.base_url)
    return f"{base_url.rstrip('/')}{UPLOADS_ROUTE}/{file_name}"


async def save_upload(file: UploadFile, upload_path: str, max_size: int) -> Path:
    """
    Stream an uploaded file to disk under a unique name.

    Raises:
        ValidationException: If the file exceeds `max_size` bytes
    """
    directory = Path(upload_path)
    directory.mkdir(parents=True, exist_ok=True)

    extension = Path(file.filename or "").suffix.lower()
    target = directory / f"file-{int(time.time() * 1000)}-{uuid4().hex[:9]}{extension}"

    size = 0
    with open(target, "wb") as out:
        while True:
            chunk = await file.read(CHUNK_SIZE)
            if not chunk:
                break
            size += len(chunk)
            if size > max_size:
                out.close()
                target.unlink(missing_ok=True)
                raise ValidationException("File too large", details={"max_file_size": max_size})
            out.write(chunk)

    return target


@router.post("/upload")
async def upload_media(
    request: Request,
    file: UploadFile = File(...),
    phone_number: str = Form(..., alias="phoneNumber"),
    message_type: str = Form(..., alias="messageType"),
    caption: Optional[str] = Form(None),
    use_media_id: bool = Form(False, alias="useMediaId"),
    settings: Settings = Depends(get_settings),
    service: WhatsAppService = Depends(get_whatsapp_service)
):
    """
    Save an uploaded file and send it to a WhatsApp number.

    The file is sent by its public URL, or uploaded to WhatsApp first and
    sent by media ID when `useMediaId` is set.
    """
    try:
        phone_number = normalize_phone_number(phone_number)
    except ValueError:
        raise ValidationException("Invalid phone number")

    if message_type not in MESSAGE_TYPES:
        raise ValidationException("Invalid message type", details={"allowed": list(MESSAGE_TYPES)})
    if message_type not in SENDABLE_TYPES:
        raise ValidationException("Unsupported message type")
    if file.content_type not in ALLOWED_MIME_TYPES:
        raise ValidationException("Invalid file type. Only images, audio, and documents are allowed.")
    if not file.content_type.startswith(SENDABLE_TYPES[message_type]):
        raise ValidationException(f"File type {file.content_type} cannot be sent as {message_type}")

    saved = await save_upload(file, settings.upload_path, settings.max_file_size)
    file_url = public_file_url(request, settings, saved.name)
    media_id = None

    try:
        if use_media_id:
            media_id = await service.upload_media(str(saved), file.content_type)

        if message_type == "image":
            result = await service.send_image_message(phone_number, file_url, caption, media_id=media_id)
        else:
            result = await service.send_voice_message(phone_number, file_url, media_id=media_id)
    except Exception as e:
        # The file is only kept if the message went out
        if os.path.exists(saved):
            os.remove(saved)
        details = e.details if isinstance(e, WhatsAppAPIError) and e.details else str(e)
        await log_to_database("media", "error", f"Error uploading media: {str(e)}")
        raise MessageSendException("Failed to upload media", details=details)

    logger.info(f"Sent uploaded {message_type} {saved.name} to {phone_number}")
    return success_response(f"{message_type} sent successfully", {
        "fileName": saved.name,
        "fileUrl": file_url,
        "mediaId": media_id,
        "whatsappResponse": result
    })
