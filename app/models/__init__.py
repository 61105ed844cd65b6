"""
ORM models. Importing this package registers every table on Base.metadata.
"""

from app.models.user import User
from app.models.conversation import Conversation, ConversationParticipant
from app.models.message import Message
