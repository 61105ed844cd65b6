# app/websockets/event_dispatcher.py
import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from fastapi import status
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
from sqlalchemy.orm import sessionmaker

from app.config import get_settings
from app.models.enums import MessageType
from app.schemas.events import (
    ErrorEvent, EventType, MessageReceivedEvent, NewMessageEvent, PongEvent
)
from app.schemas.base import CamelModel
from app.schemas.messages import MessageResponse
from app.services.conversation_service import ConversationService
from app.services.message_service import MessageService
from app.services.user_service import UserService
from app.websockets.connection_manager import (
    ChatConnection, ConnectionRegistry, close_quietly, write_event
)

logger = logging.getLogger(__name__)

Handler = Callable[[ChatConnection, Dict[str, Any]], Awaitable[Any]]


def summarize(content: Optional[str], message_type: MessageType, max_length: int) -> str:
    """Snippet cached on the conversation for list rendering."""
    if content and content.strip():
        text = content
    else:
        text = f"[{message_type.value}]"
    return text[:max_length]


class EventDispatcher:
    """Dispatches WebSocket events to appropriate handlers based on event type."""

    def __init__(self):
        self.handlers: Dict[str, Handler] = {}

    def register_handler(self, event_type: str, handler: Handler):
        self.handlers[event_type] = handler

    async def dispatch(self, connection: ChatConnection, raw: str):
        """
        Parse one inbound frame and hand it to its handler.

        Malformed frames get an error reply; unknown event types are ignored.
        Nothing raised by a handler escapes, so the connection stays open.
        """
        try:
            event_data = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning(f"Invalid JSON from user {connection.principal_id}")
            await connection.send_event(ErrorEvent(error="Invalid JSON format"))
            return

        if not isinstance(event_data, dict):
            logger.warning(f"Non-object event from user {connection.principal_id}")
            await connection.send_event(ErrorEvent(error="Event must be a JSON object"))
            return

        event_type = event_data.get("type")
        handler = self.handlers.get(event_type)
        if not handler:
            logger.debug(f"Ignoring event type {event_type!r} from user {connection.principal_id}")
            return

        try:
            await handler(connection, event_data)
        except Exception as e:
            logger.error(f"Error in event handler for {event_type}: {str(e)}")
            await connection.send_event(ErrorEvent(error=f"Error processing {event_type}"))
class MessageRouter:
    """
    Persists inbound chat messages and fans them out to live participants.

    One router serves the whole process. Store access happens in the thread
    pool with a short-lived session per step. Storing a message and updating
    its conversation summary run under that conversation's lock, so summaries
    follow the order in which messages were stored. Fan-out happens after the
    lock is released, with every recipient written to concurrently and each
    write bounded by SEND_TIMEOUT_SECONDS.
    """

    def __init__(self, registry: ConnectionRegistry, session_factory: sessionmaker):
        self.registry = registry
        self.session_factory = session_factory
        self.settings = get_settings()
        self.send_timeout = self.settings.SEND_TIMEOUT_SECONDS
        self._conversation_locks: Dict[str, List[Any]] = {}
        self.dispatcher = EventDispatcher()
        self._setup_handlers()

    def _setup_handlers(self):
        self.dispatcher.register_handler(EventType.NEW_MESSAGE.value, self.handle_new_message)
        self.dispatcher.register_handler(EventType.PING.value, self.handle_ping)

    @asynccontextmanager
    async def _serialized(self, conversation_id: str):
        # [lock, holders]; dropped once nobody holds or waits on it
        entry = self._conversation_locks.setdefault(conversation_id, [asyncio.Lock(), 0])
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                self._conversation_locks.pop(conversation_id, None)

    # Store access, run in the thread pool

    def _load_context(self, sender_id: str, conversation_id: str) -> Tuple[bool, Optional[List[str]]]:
        """Sender's current approval and the conversation's participants (None if absent)."""
        with self.session_factory() as db:
            sender = UserService(db).get_user(sender_id)
            approved = sender is not None and sender.is_approved
            return approved, ConversationService(db).get_participant_ids(conversation_id)

    def _persist_message(self, sender_id: str, event: NewMessageEvent) -> Optional[MessageResponse]:
        with self.session_factory() as db:
            message = MessageService(db).create_message(
                conversation_id=event.conversation_id,
                sender_id=sender_id,
                content=event.content,
                message_type=event.message_type,
                media_url=event.media_url
            )
            if message is None:
                return None
            return MessageResponse.model_validate(message)

    def _update_summary(self, conversation_id: str, content: str, timestamp: datetime) -> bool:
        with self.session_factory() as db:
            return ConversationService(db).update_conversation_summary(conversation_id, content, timestamp)

    # Handlers

    async def handle_new_message(self, connection: ChatConnection, event_data: Dict[str, Any]) -> Optional[MessageResponse]:
        """
        Store a message from the connection's user and deliver it to every
        participant with an open channel, the sender included.

        A sender whose account is no longer approved is disconnected.
        Returns the stored message, or None if nothing was stored.
        """
        sender_id = connection.principal_id

        try:
            event = NewMessageEvent.model_validate(event_data)
        except ValidationError as e:
            logger.warning(f"Invalid new_message from user {sender_id}: {e.error_count()} validation errors")
            await connection.send_event(ErrorEvent(error="Invalid message payload"))
            return None

        conversation_id = event.conversation_id
        if not event.has_body:
            await connection.send_event(ErrorEvent(
                error="Message content cannot be empty",
                conversation_id=conversation_id
            ))
            return None

        async with self._serialized(conversation_id):
            approved, participant_ids = await run_in_threadpool(self._load_context, sender_id, conversation_id)
            if not approved:
                logger.warning(f"User {sender_id} is no longer approved; closing connection")
                await connection.send_event(ErrorEvent(
                    error="User not approved",
                    conversation_id=conversation_id
                ))
                await connection.close()
                await close_quietly(connection.websocket, status.WS_1008_POLICY_VIOLATION, "User not approved")
                return None

            if participant_ids is None:
                logger.warning(f"User {sender_id} sent to unknown conversation {conversation_id}")
                await connection.send_event(ErrorEvent(
                    error="Conversation not found",
                    conversation_id=conversation_id
                ))
                return None

            if sender_id not in participant_ids:
                logger.warning(f"User {sender_id} is not a participant of conversation {conversation_id}")
                await connection.send_event(ErrorEvent(
                    error="You are not a participant in this conversation",
                    conversation_id=conversation_id
                ))
                return None

            try:
                message = await run_in_threadpool(self._persist_message, sender_id, event)
            except Exception as e:
                logger.error(f"Failed to store message in conversation {conversation_id}: {str(e)}")
                message = None

            if message is None:
                await connection.send_event(ErrorEvent(
                    error="Message could not be sent",
                    conversation_id=conversation_id
                ))
                return None

            snippet = summarize(message.content, message.message_type, self.settings.SUMMARY_MAX_LENGTH)
            try:
                updated = await run_in_threadpool(
                    self._update_summary, conversation_id, snippet, message.created_at
                )
                if not updated:
                    logger.warning(f"Conversation {conversation_id} vanished before its summary was updated")
            except Exception as e:
                logger.warning(f"Failed to update summary of conversation {conversation_id}: {str(e)}")

        delivered = await self.fan_out(
            participant_ids,
            MessageReceivedEvent(conversation_id=conversation_id, message=message)
        )
        logger.debug(f"Message {message.id} delivered to {delivered}/{len(participant_ids)} participants")

        return message

    async def fan_out(self, recipient_ids: List[str], event: CamelModel) -> int:
        """
        Send an event to each recipient's channel, all at once.

        Each write is bounded by the send timeout. A channel that fails or
        stalls is logged and dropped from the registry; it never delays or
        stops delivery to the others. Returns the number of writes made.
        """
        targets = []
        for recipient_id in recipient_ids:
            websocket = await self.registry.get(recipient_id)
            if websocket is not None:
                targets.append((recipient_id, websocket))

        results = await asyncio.gather(
            *(asyncio.wait_for(write_event(websocket, event), self.send_timeout) for _, websocket in targets),
            return_exceptions=True
        )

        delivered = 0
        for (recipient_id, websocket), result in zip(targets, results):
            if isinstance(result, asyncio.TimeoutError):
                logger.warning(f"Delivery to user {recipient_id} timed out after {self.send_timeout}s")
                await self.registry.unregister(recipient_id, websocket)
            elif isinstance(result, BaseException):
                logger.warning(f"Delivery to user {recipient_id} failed: {str(result)}")
                await self.registry.unregister(recipient_id, websocket)
            elif result:
                delivered += 1
        return delivered

    async def handle_ping(self, connection: ChatConnection, event_data: Dict[str, Any]):
        """Respond to ping events with a pong."""
        await connection.send_event(PongEvent())
