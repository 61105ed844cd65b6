# app/services/auth_service.py
from typing import Dict, Any
from sqlalchemy.orm import Session
from fastapi import HTTPException, status
import jwt
import logging

from app.models.user import User
from app.config import get_settings
from app.services.user_service import UserService

logger = logging.getLogger(__name__)


class AuthService:
    """Resolves bearer tokens to approved users.

    Tokens are issued elsewhere; this service only verifies them against the
    shared secret and checks the account's approval state.
    """

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()
        self.user_service = UserService(db)

    def verify_token(self, token: str) -> Dict[str, Any]:
        """
        Verify a JWT and return its payload.

        The user ID is read from the standard ``sub`` claim, falling back to
        ``userId`` for tokens minted by the legacy web server.
        """
        try:
            payload = jwt.decode(
                token,
                self.settings.JWT_SECRET,
                algorithms=[self.settings.JWT_ALGORITHM]
            )
        except jwt.PyJWTError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token"
            )

        if not self.get_subject(payload):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token"
            )

        return payload

    @staticmethod
    def get_subject(payload: Dict[str, Any]):
        return payload.get("sub") or payload.get("userId")

    def authenticate(self, token: str) -> User:
        """
        Resolve a token to an approved user.

        Raises:
            HTTPException: 401 for bad tokens or unknown users,
                403 for users who are not approved.
        """
        payload = self.verify_token(token)
        user = self.user_service.get_user(self.get_subject(payload))

        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token"
            )

        if not user.is_approved:
            logger.info(f"Rejected user {user.id} with status {user.application_status.value}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="User not approved"
            )

        return user
