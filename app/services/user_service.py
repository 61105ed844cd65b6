# app/services/user_service.py
from sqlalchemy.orm import Session
from typing import Optional, List

from app.models.enums import ApplicationStatus, UserRole
from app.models.user import User


class UserService:
    """Service for handling user lookups"""

    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: str) -> Optional[User]:
        """Get a user by ID"""
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_username(self, username: str) -> Optional[User]:
        """Get a user by username"""
        return self.db.query(User).filter(User.username == username).first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        """Get a user by email"""
        return self.db.query(User).filter(User.email == email).first()

    def get_users(self, user_ids: List[str]) -> List[User]:
        """Get every user whose ID is in the given list"""
        if not user_ids:
            return []
        return self.db.query(User).filter(User.id.in_(user_ids)).all()

    def create_user(
        self,
        username: str,
        email: str,
        full_name: str,
        avatar: Optional[str] = None,
        application_status: ApplicationStatus = ApplicationStatus.PENDING,
        role: UserRole = UserRole.USER
    ) -> User:
        """
        Create a user record. Credentials live with the auth service;
        new accounts stay pending until an admin approves them.
        """
        user = User(
            username=username,
            email=email,
            full_name=full_name,
            avatar=avatar,
            application_status=application_status,
            role=role
        )

        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)

        return user
