# app/models/user.py
from sqlalchemy import Column, String, Text, Enum as SAEnum
from sqlalchemy.orm import relationship

from app.database import Base
from app.models.enums import ApplicationStatus, UserRole
from app.models.mixins import TimestampMixin, generate_uuid


class User(Base, TimestampMixin):
    """
    Model representing a member of the school community.
    Accounts are created at registration and must be approved by an admin
    before they can chat.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    full_name = Column(String(100), nullable=False)
    avatar = Column(Text, nullable=True)

    application_status = Column(
        SAEnum(ApplicationStatus, values_callable=lambda e: [m.value for m in e]),
        default=ApplicationStatus.PENDING,
        nullable=False
    )
    role = Column(
        SAEnum(UserRole, values_callable=lambda e: [m.value for m in e]),
        default=UserRole.USER,
        nullable=False
    )

    # Relationships
    conversation_participations = relationship(
        "ConversationParticipant",
        back_populates="user",
        cascade="all, delete-orphan"
    )
    messages = relationship("Message", back_populates="sender")

    @property
    def is_approved(self) -> bool:
        return self.application_status == ApplicationStatus.APPROVED

    @property
    def display_name(self):
        return self.full_name or self.username

    def __repr__(self):
        return f"<User {self.id} - {self.username}>"
