# app/services/message_service.py
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import func
from typing import List, Optional

from app.models.conversation import Conversation
from app.models.enums import MessageType
from app.models.message import Message


class MessageService:
    """Service for handling message operations."""

    def __init__(self, db: Session):
        self.db = db

    def create_message(
        self,
        conversation_id: str,
        sender_id: str,
        content: Optional[str],
        message_type: MessageType = MessageType.TEXT,
        media_url: Optional[str] = None
    ) -> Optional[Message]:
        """
        Create a new message in a conversation.

        Args:
            conversation_id: ID of the conversation.
            sender_id: ID of the authenticated user sending the message.
            content: The message text; may be None for pure-media messages.
            message_type: Kind of message (text, image, video or voice).
            media_url: Optional reference to uploaded media.

        Returns:
            The created Message with its server-assigned id and timestamp,
            or None if the conversation doesn't exist.

        Raises:
            SQLAlchemyError: if the insert fails; the session is rolled back.
        """
        conversation_exists = self.db.query(Conversation.id).filter(
            Conversation.id == conversation_id
        ).first()

        if not conversation_exists:
            return None

        message = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            media_url=media_url,
            message_type=message_type
        )
        try:
            self.db.add(message)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(message)
        return message

    def get_message(self, message_id: int) -> Optional[Message]:
        """Retrieve a message by its ID, with its sender loaded."""
        return self.db.query(Message).options(
            joinedload(Message.sender)
        ).filter(Message.id == message_id).first()

    def list_messages(
        self,
        conversation_id: str,
        offset: int = 0,
        limit: int = 50
    ) -> List[Message]:
        """
        Get a page of a conversation's messages, newest first.

        Messages created at the same instant are ordered by insertion.
        An offset past the end yields an empty list.
        """
        if offset < 0 or limit < 0:
            raise ValueError("offset and limit must be non-negative")
        if limit == 0:
            return []

        return self.db.query(Message).options(
            joinedload(Message.sender)
        ).filter(
            Message.conversation_id == conversation_id
        ).order_by(
            Message.created_at.desc(),
            Message.id.desc()
        ).offset(offset).limit(limit).all()

    def count_messages(self, conversation_id: str) -> int:
        """Return the number of messages in a conversation."""
        return self.db.query(func.count(Message.id)).filter(
            Message.conversation_id == conversation_id
        ).scalar() or 0
