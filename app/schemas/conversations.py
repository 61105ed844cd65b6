from typing import List, Optional
from pydantic import Field, field_validator
from datetime import datetime

from app.schemas.base import CamelModel


class ConversationCreate(CamelModel):
    participants: List[str] = Field(..., min_length=1)
    is_group: bool = False
    group_name: Optional[str] = Field(None, max_length=100)

    @field_validator("participants")
    @classmethod
    def strip_blank_ids(cls, value: List[str]) -> List[str]:
        ids = [p.strip() for p in value if p and p.strip()]
        if not ids:
            raise ValueError("participants must contain at least one user id")
        return ids


class ConversationResponse(CamelModel):
    id: str
    participants: List[str]
    is_group: bool
    group_name: Optional[str] = None
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_conversation(cls, conversation) -> "ConversationResponse":
        return cls(
            id=conversation.id,
            participants=conversation.participant_ids,
            is_group=conversation.is_group,
            group_name=conversation.group_name,
            last_message=conversation.last_message,
            last_message_at=conversation.last_message_at,
            created_at=conversation.created_at,
        )
