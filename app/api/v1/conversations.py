from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import List

from app.config import get_settings
from app.schemas import ConversationCreate, ConversationResponse, MessageResponse
from app.api.auth import get_current_user
from app.api.dependencies import get_service, get_conversation_access
from app.services.conversation_service import ConversationService
from app.services.history_service import HistoryService
from app.services.user_service import UserService
from app.models.user import User
from app.models.conversation import Conversation

router = APIRouter()
settings = get_settings()


@router.get("/", response_model=List[ConversationResponse])
async def list_conversations(
    current_user: User = Depends(get_current_user),
    history_service: HistoryService = Depends(get_service(HistoryService)),
):
    """
    Get all conversations where the current user is participating,
    most recently active first.
    """
    return history_service.list_conversations(current_user.id)


@router.post("/", response_model=ConversationResponse, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    conversation_data: ConversationCreate,
    current_user: User = Depends(get_current_user),
    conversation_service: ConversationService = Depends(get_service(ConversationService)),
    user_service: UserService = Depends(get_service(UserService)),
):
    """
    Start a new chat. The current user is always included as a participant.

    A new conversation is created on every call, even if a direct chat
    between the same users already exists.
    """
    participant_ids = list(conversation_data.participants)
    if current_user.id not in participant_ids:
        participant_ids.append(current_user.id)

    found = {user.id for user in user_service.get_users(participant_ids)}
    missing = [user_id for user_id in participant_ids if user_id not in found]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Users not found: {', '.join(missing)}",
        )

    try:
        conversation = conversation_service.create_conversation(
            participant_ids,
            is_group=conversation_data.is_group,
            group_name=conversation_data.group_name,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    return ConversationResponse.from_conversation(conversation)


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation: Conversation = Depends(get_conversation_access)
):
    """
    Get details of a specific conversation.
    """
    return ConversationResponse.from_conversation(conversation)


@router.get("/{conversation_id}/messages", response_model=List[MessageResponse])
async def list_conversation_messages(
    offset: int = Query(0, ge=0),
    limit: int = Query(settings.MESSAGE_PAGE_SIZE, ge=1, le=settings.MESSAGE_PAGE_SIZE_MAX),
    conversation: Conversation = Depends(get_conversation_access),
    history_service: HistoryService = Depends(get_service(HistoryService)),
):
    """
    Get a page of messages from a conversation, newest first.

    An offset beyond the last message returns an empty list.
    """
    return history_service.get_message_history(
        conversation_id=conversation.id,
        offset=offset,
        limit=limit,
    )
