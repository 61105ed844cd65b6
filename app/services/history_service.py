# app/services/history_service.py
from sqlalchemy.orm import Session
from typing import List

from app.schemas.conversations import ConversationResponse
from app.schemas.messages import MessageResponse
from app.services.conversation_service import ConversationService
from app.services.message_service import MessageService


class HistoryService:
    """
    Read model for clients loading their inbox or reconnecting.

    Holds no state of its own; everything is read from the conversation
    and message services.
    """

    def __init__(self, db: Session):
        self.db = db
        self.conversation_service = ConversationService(db)
        self.message_service = MessageService(db)

    def list_conversations(self, user_id: str) -> List[ConversationResponse]:
        """Conversations of a user, most recently active first."""
        conversations = self.conversation_service.list_conversations_for_user(user_id)
        return [ConversationResponse.from_conversation(c) for c in conversations]

    def get_message_history(
        self,
        conversation_id: str,
        offset: int = 0,
        limit: int = 50
    ) -> List[MessageResponse]:
        """A newest-first page of messages, each with its sender summary."""
        messages = self.message_service.list_messages(conversation_id, offset=offset, limit=limit)
        return [MessageResponse.model_validate(m) for m in messages]
