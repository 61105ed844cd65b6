# app/schemas/messages.py
from typing import Optional
from datetime import datetime

from app.models.enums import MessageType
from app.schemas.base import CamelModel
from app.schemas.users import SenderSummary

class MessageResponse(CamelModel):
    """A persisted message together with its sender summary."""
    id: int
    conversation_id: str
    content: Optional[str] = None
    media_url: Optional[str] = None
    message_type: MessageType
    created_at: datetime
    sender: SenderSummary

