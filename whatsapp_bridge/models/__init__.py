from .message import ConversationSummary, MessageBase, MessageCreate, MessageDirection, MessageStatus
from .requests import SendImageRequest, SendTextRequest, SendVoiceRequest

__all__ = [
    "ConversationSummary", "MessageBase", "MessageCreate",
    "MessageDirection", "MessageStatus",
    "SendTextRequest", "SendImageRequest", "SendVoiceRequest",
]
