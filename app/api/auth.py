# app/api/auth.py
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.database import get_db
from app.services.auth_service import AuthService
from app.models.user import User

# Setup security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Dependency to get the current approved user from a JWT bearer token.
    Raises 401 for invalid tokens and 403 for users awaiting approval.
    """
    auth_service = AuthService(db)
    return auth_service.authenticate(credentials.credentials)
