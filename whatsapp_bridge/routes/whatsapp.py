import hmac
import json
from dataclasses import asdict
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from typing import Optional
from whatsapp_bridge.config import Settings, get_settings
from whatsapp_bridge.models.requests import SendImageRequest, SendTextRequest, SendVoiceRequest
from whatsapp_bridge.services.whatsapp_client import WhatsAppAPIError
from whatsapp_bridge.services.whatsapp_service import WhatsAppService, get_whatsapp_service
from whatsapp_bridge.utils.exceptions import (
    MessageSendException,
    SignatureVerificationException,
    ValidationException,
    VerifyTokenException,
)
from whatsapp_bridge.utils.logger import get_logger, log_to_database
from whatsapp_bridge.utils.responses import error_response, success_response
from whatsapp_bridge.utils.security import is_request_authentic

logger = get_logger(__name__)

router = APIRouter(prefix="/whatsapp", tags=["whatsapp"])


# ======================================================================
# Webhook Verification (GET)
# ======================================================================
@router.get("/webhook")
async def verify_webhook(request: Request, settings: Settings = Depends(get_settings)):
    """Answer Meta's subscription handshake."""
    params = request.query_params
    mode = params.get("hub.mode")
    token = params.get("hub.verify_token")
    challenge = params.get("hub.challenge")

    if not mode or not token:
        raise ValidationException("Missing hub.mode or hub.verify_token")

    expected = settings.whatsapp_verify_token
    if mode == "subscribe" and expected and hmac.compare_digest(token.encode(), expected.encode()):
        logger.info("Webhook verified successfully")
        return PlainTextResponse(content=challenge or "", status_code=200)

    logger.warning("Webhook verification failed")
    raise VerifyTokenException()


# ======================================================================
# Webhook Delivery (POST)
# ======================================================================
@router.post("/webhook")
async def receive_webhook(
    request: Request,
    x_hub_signature_256: Optional[str] = Header(None, alias="X-Hub-Signature-256"),
    settings: Settings = Depends(get_settings),
    service: WhatsAppService = Depends(get_whatsapp_service)
):
    """
    Receive messages and status updates from WhatsApp.

    Once the signature checks out the delivery is acknowledged with 200
    even if storing some of its elements failed: any other status makes
    Meta redeliver the whole event.
    """
    body = await request.body()

    if not is_request_authentic(body, x_hub_signature_256, settings.webhook_secret,
                                settings.whatsapp_require_signature):
        logger.warning("Invalid webhook signature")
        raise SignatureVerificationException()

    try:
        payload = json.loads(body)
    except ValueError:
        raise ValidationException("Malformed webhook payload")

    if not isinstance(payload, dict):
        logger.warning("Ignoring webhook with non-object payload")
        return PlainTextResponse(content="EVENT_RECEIVED", status_code=200)

    try:
        result = await service.process_webhook(payload)
    except Exception as e:
        logger.exception("Error processing webhook")
        await log_to_database("webhook", "error", f"Error processing webhook: {str(e)}")
        return JSONResponse(status_code=500, content=error_response("Internal server error"))

    if result.messages_failed or result.statuses_failed:
        await log_to_database("webhook", "warning",
                              "Webhook processed with element failures",
                              details=asdict(result))

    return PlainTextResponse(content="EVENT_RECEIVED", status_code=200)


# ======================================================================
# Outbound Messages
# ======================================================================
async def _send_failed(error: str, exc: Exception) -> MessageSendException:
    details = exc.details if isinstance(exc, WhatsAppAPIError) and exc.details else str(exc)
    await log_to_database("whatsapp", "error", f"{error}: {str(exc)}")
    return MessageSendException(error, details=details)


@router.post("/send/text")
async def send_text(body: SendTextRequest,
                    service: WhatsAppService = Depends(get_whatsapp_service)):
    """Send a text message."""
    try:
        result = await service.send_text_message(body.phone_number, body.message)
    except Exception as e:
        raise await _send_failed("Failed to send message", e)

    return success_response("Message sent successfully", result)


@router.post("/send/image")
async def send_image(body: SendImageRequest,
                     service: WhatsAppService = Depends(get_whatsapp_service)):
    """Send an image by URL."""
    try:
        result = await service.send_image_message(body.phone_number, body.image_url, body.caption)
    except Exception as e:
        raise await _send_failed("Failed to send image", e)

    return success_response("Image sent successfully", result)


@router.post("/send/voice")
async def send_voice(body: SendVoiceRequest,
                     service: WhatsAppService = Depends(get_whatsapp_service)):
    """Send a voice message by URL."""
    try:
        result = await service.send_voice_message(body.phone_number, body.audio_url)
    except Exception as e:
        raise await _send_failed("Failed to send voice message", e)

    return success_response("Voice message sent successfully", result)


@router.get("/status")
async def webhook_status(request: Request, settings: Settings = Depends(get_settings)):
    """Report webhook configuration without exposing secrets."""
    return {
        "status": "active",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "webhook_url": str(request.url_for("receive_webhook")),
        "verify_token": "configured" if settings.whatsapp_verify_token else "not configured",
        "signature_secret": "configured" if settings.webhook_secret else "not configured"
    }
