# app/services/conversation_service.py
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import SQLAlchemyError
from typing import List, Optional
from datetime import datetime

from app.models.conversation import Conversation, ConversationParticipant


class ConversationService:
    """Service for handling conversation operations"""

    def __init__(self, db: Session):
        self.db = db

    def create_conversation(
        self,
        participant_ids: List[str],
        is_group: bool = False,
        group_name: Optional[str] = None
    ) -> Conversation:
        """
        Create a new conversation between the given users.

        Duplicate IDs are collapsed (first occurrence wins the position).
        An existing 1:1 conversation between the same users is not reused:
        every call creates a new conversation.

        Raises:
            ValueError: if fewer than two distinct participants are given,
                or a direct conversation does not have exactly two.
        """
        unique_ids = list(dict.fromkeys(participant_ids))

        if len(unique_ids) < 2:
            raise ValueError("A conversation needs at least two participants")
        if not is_group and len(unique_ids) != 2:
            raise ValueError("A direct conversation must have exactly two participants")

        conversation = Conversation(
            is_group=is_group,
            group_name=group_name if is_group else None
        )
        conversation.participants = [
            ConversationParticipant(user_id=user_id, position=position)
            for position, user_id in enumerate(unique_ids)
        ]

        try:
            self.db.add(conversation)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(conversation)
        return conversation

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        """Get a conversation by ID"""
        return self.db.query(Conversation).options(
            selectinload(Conversation.participants)
        ).filter(Conversation.id == conversation_id).first()

    def get_participant_ids(self, conversation_id: str) -> Optional[List[str]]:
        """
        Get the user IDs taking part in a conversation.

        Returns None when the conversation does not exist, so callers can tell
        an unknown conversation apart from an empty one.
        """
        conversation = self.get_conversation(conversation_id)
        if not conversation:
            return None
        return conversation.participant_ids

    def is_participant(self, conversation_id: str, user_id: str) -> bool:
        """Check if a user takes part in a conversation"""
        return self.db.query(ConversationParticipant).filter(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == user_id
        ).first() is not None

    def update_conversation_summary(
        self,
        conversation_id: str,
        content: Optional[str],
        timestamp: datetime
    ) -> bool:
        """
        Overwrite the denormalized last-message fields of a conversation.

        Returns False if the conversation does not exist.
        """
        try:
            updated = self.db.query(Conversation).filter(
                Conversation.id == conversation_id
            ).update(
                {
                    Conversation.last_message: content,
                    Conversation.last_message_at: timestamp
                },
                synchronize_session=False
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        return updated > 0

    def list_conversations_for_user(self, user_id: str) -> List[Conversation]:
        """
        Get all conversations a user takes part in, most recently active first.
        Conversations without any message sort last, newest created first.
        """
        return self.db.query(Conversation).join(
            ConversationParticipant,
            Conversation.id == ConversationParticipant.conversation_id
        ).filter(
            ConversationParticipant.user_id == user_id
        ).options(
            selectinload(Conversation.participants)
        ).order_by(
            Conversation.last_message_at.desc().nulls_last(),
            Conversation.created_at.desc()
        ).all()
