from fastapi import APIRouter, Depends, Query
from whatsapp_bridge.services.conversation_service import ConversationService, get_conversation_service
from whatsapp_bridge.utils.exceptions import DatabaseException, ValidationException
from whatsapp_bridge.utils.logger import log_to_database
from whatsapp_bridge.utils.responses import pagination_info
from whatsapp_bridge.utils.validators import normalize_phone_number

router = APIRouter(prefix="/chat", tags=["chat"])


def _phone_number_param(phone_number: str) -> str:
    try:
        return normalize_phone_number(phone_number)
    except ValueError:
        raise ValidationException("Invalid phone number")


@router.get("/conversations")
async def get_conversations(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: ConversationService = Depends(get_conversation_service)
):
    """List conversation summaries, most recent first."""
    try:
        conversations = await service.list_conversations(limit, offset)
    except Exception as e:
        await log_to_database("api", "error", f"Error fetching conversations: {str(e)}")
        raise DatabaseException("Failed to fetch conversations")

    return {
        "success": True,
        "data": conversations,
        "pagination": pagination_info(limit, offset, conversations)
    }


@router.get("/history/{phone_number}")
async def get_chat_history(
    phone_number: str,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: ConversationService = Depends(get_conversation_service)
):
    """Get the message history with one phone number."""
    phone_number = _phone_number_param(phone_number)
    try:
        history = await service.get_history(phone_number, limit, offset)
    except Exception as e:
        await log_to_database("api", "error", f"Error fetching chat history: {str(e)}")
        raise DatabaseException("Failed to fetch chat history")

    return {
        "success": True,
        "data": {
            "messages": history["messages"],
            "contact": history["contact"],
            "pagination": pagination_info(limit, offset, history["messages"])
        }
    }


@router.get("/search")
async def search_conversations(
    q: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=100),
    service: ConversationService = Depends(get_conversation_service)
):
    """Search by phone number, contact name or message text."""
    if not q.strip():
        raise ValidationException("Search query is required")

    try:
        conversations = await service.search(q, limit)
    except Exception as e:
        await log_to_database("api", "error", f"Error searching messages: {str(e)}")
        raise DatabaseException("Failed to search messages")

    return {"success": True, "data": conversations, "query": q}


@router.get("/stats")
async def get_stats(service: ConversationService = Depends(get_conversation_service)):
    """Conversation and message counts."""
    try:
        stats = await service.get_stats()
    except Exception as e:
        await log_to_database("api", "error", f"Error fetching stats: {str(e)}")
        raise DatabaseException("Failed to fetch conversation stats")

    return {"success": True, "data": stats}


@router.put("/read/{phone_number}")
async def mark_as_read(phone_number: str,
                       service: ConversationService = Depends(get_conversation_service)):
    """Mark a conversation's incoming messages as read."""
    phone_number = _phone_number_param(phone_number)
    try:
        updated = await service.mark_read(phone_number)
    except Exception as e:
        await log_to_database("api", "error", f"Error marking messages as read: {str(e)}")
        raise DatabaseException("Failed to mark messages as read")

    return {"success": True, "message": "Messages marked as read", "data": {"updated": updated}}
