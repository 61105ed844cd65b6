# app/models/message.py
from sqlalchemy import Column, DateTime, Integer, String, Text, ForeignKey, Index, Enum as SAEnum
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.enums import MessageType
from app.models.mixins import utcnow

class Message(Base):
    """Chat message. Rows are immutable once written."""
    __tablename__ = "messages"

    # Integer key doubles as the insertion-order tiebreak for equal timestamps
    id = Column(Integer, primary_key=True, autoincrement=True)
    content = Column(Text, nullable=True)
    media_url = Column(Text, nullable=True)
    message_type = Column(
        SAEnum(MessageType, values_callable=lambda e: [m.value for m in e]),
        default=MessageType.TEXT,
        nullable=False
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    conversation_id = Column(String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    conversation = relationship("Conversation", back_populates="messages")
    sender = relationship("User", back_populates="messages")

    __table_args__ = (
        Index('ix_messages_conversation_created', "conversation_id", "created_at"),
    )

    def __repr__(self):
        return f"<Message {self.id} in Conversation {self.conversation_id}>"
