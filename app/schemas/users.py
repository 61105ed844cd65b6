from typing import Optional

from app.schemas.base import CamelModel


class SenderSummary(CamelModel):
    """Minimal identity shown next to a message."""
    id: str
    username: str
    full_name: str
    avatar: Optional[str] = None
