"""
Schema definitions for the application.
This module exports all schemas for easy importing throughout the app.
"""

# Import from base
from app.schemas.base import CamelModel

# Import from users
from app.schemas.users import SenderSummary

# Import from conversations
from app.schemas.conversations import ConversationCreate, ConversationResponse

# Import from messages
from app.schemas.messages import MessageResponse

# Import from events
from app.schemas.events import (
    EventType, NewMessageEvent, MessageReceivedEvent, ErrorEvent, PongEvent
)
