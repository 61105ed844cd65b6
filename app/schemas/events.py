# app/schemas/events.py
"""
Real-time event payloads exchanged over the chat WebSocket.
"""
from typing import Literal, Optional
from datetime import datetime, timezone
from pydantic import Field
import enum

from app.models.enums import MessageType
from app.schemas.base import CamelModel
from app.schemas.messages import MessageResponse


class EventType(str, enum.Enum):
    NEW_MESSAGE = "new_message"
    MESSAGE_RECEIVED = "message_received"
    PING = "ping"
    PONG = "pong"
    ERROR = "error"


def _now():
    return datetime.now(timezone.utc)


# Client -> server

class NewMessageEvent(CamelModel):
    """
    Inbound chat message. The sender is never read from the payload;
    it is bound to the connection at authentication time.
    """
    type: Literal["new_message"] = EventType.NEW_MESSAGE.value
    conversation_id: str = Field(..., min_length=1)
    content: Optional[str] = None
    media_url: Optional[str] = None
    message_type: MessageType = MessageType.TEXT

    @property
    def has_body(self) -> bool:
        return bool((self.content and self.content.strip()) or self.media_url)


# Server -> client

class MessageReceivedEvent(CamelModel):
    type: Literal["message_received"] = EventType.MESSAGE_RECEIVED.value
    conversation_id: str
    message: MessageResponse


class ErrorEvent(CamelModel):
    type: Literal["error"] = EventType.ERROR.value
    error: str
    conversation_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=_now)


class PongEvent(CamelModel):
    type: Literal["pong"] = EventType.PONG.value
    timestamp: datetime = Field(default_factory=_now)
