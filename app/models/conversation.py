# app/models/conversation.py
from sqlalchemy import Boolean, Column, DateTime, Integer, String, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.mixins import TimestampMixin, generate_uuid

class Conversation(Base, TimestampMixin):
    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=generate_uuid, index=True)
    is_group = Column(Boolean, default=False, nullable=False)
    group_name = Column(String(100), nullable=True)

    # Denormalized summary of the latest message, written by the message router
    last_message = Column(Text, nullable=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True, index=True)

    messages = relationship("Message", back_populates="conversation", cascade="all, delete-orphan")
    participants = relationship(
        "ConversationParticipant",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="ConversationParticipant.position"
    )

    @property
    def participant_ids(self):
        return [p.user_id for p in self.participants]

    def __repr__(self):
        return f"<Conversation {self.id} - {self.group_name or 'direct'}>"

class ConversationParticipant(Base, TimestampMixin):
    __tablename__ = "conversation_participants"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    conversation_id = Column(String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="uq_conversation_participant"),
    )

    conversation = relationship("Conversation", back_populates="participants")
    user = relationship("User", back_populates="conversation_participations")

    def __repr__(self):
        return f"<ConversationParticipant {self.user_id} - Conversation: {self.conversation_id}>"
