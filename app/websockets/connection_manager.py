# app/websockets/connection_manager.py
import asyncio
from enum import Enum
import logging
from typing import Dict, List, Optional
from fastapi import HTTPException, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from fastapi.websockets import WebSocketState
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.services.auth_service import AuthService

logger = logging.getLogger(__name__)

SUPERSEDED_CLOSE_CODE = 4000


def is_open(websocket: WebSocket) -> bool:
    """True while both sides of the socket are connected"""
    return (
        websocket.client_state == WebSocketState.CONNECTED
        and websocket.application_state == WebSocketState.CONNECTED
    )


async def close_quietly(websocket: WebSocket, code: int, reason: str = ""):
    if websocket.application_state != WebSocketState.CONNECTED:
        return
    try:
        await websocket.close(code=code, reason=reason)
    except Exception as e:
        logger.debug(f"Ignoring error while closing WebSocket: {str(e)}")


async def write_event(websocket: WebSocket, event: BaseModel) -> bool:
    """Write an event to an open socket. Transport errors propagate."""
    if not is_open(websocket):
        return False
    await websocket.send_json(event.model_dump(mode="json", by_alias=True))
    return True


class ConnectionRegistry:
    """
    Process-wide map of user ID to that user's live WebSocket.

    One channel per user: registering again replaces the previous channel.
    Created once per application lifespan and shared by every connection.
    """

    def __init__(self):
        self.connections: Dict[str, WebSocket] = {}
        self._lock = asyncio.Lock()

    async def register(self, principal_id: str, websocket: WebSocket) -> Optional[WebSocket]:
        """Store the channel for a user, closing any channel it supersedes."""
        async with self._lock:
            previous = self.connections.get(principal_id)
            self.connections[principal_id] = websocket

        if previous is not None and previous is not websocket:
            logger.info(f"Replacing existing connection for user {principal_id}")
            await close_quietly(previous, SUPERSEDED_CLOSE_CODE, "Superseded by a newer connection")
        return previous

    async def unregister(self, principal_id: str, websocket: Optional[WebSocket] = None) -> bool:
        """
        Remove the channel for a user. No-op if there is none.

        When `websocket` is given the entry is only removed if it still points
        at that channel, so a superseded channel cannot evict its successor.
        """
        async with self._lock:
            current = self.connections.get(principal_id)
            if current is None:
                return False
            if websocket is not None and current is not websocket:
                return False
            del self.connections[principal_id]
            return True

    async def get(self, principal_id: str) -> Optional[WebSocket]:
        async with self._lock:
            return self.connections.get(principal_id)

    def is_connected(self, principal_id: str) -> bool:
        return principal_id in self.connections

    def connected_ids(self) -> List[str]:
        return list(self.connections)

    def __len__(self):
        return len(self.connections)

    async def send(self, principal_id: str, event: BaseModel) -> bool:
        """
        Write an event to a user's channel if it is registered and open.

        Returns whether a write was attempted. Transport errors propagate
        to the caller.
        """
        websocket = await self.get(principal_id)
        if websocket is None:
            return False
        return await write_event(websocket, event)

    async def close_all(self, code: int = status.WS_1001_GOING_AWAY, reason: str = ""):
        """Close every registered channel and clear the map."""
        async with self._lock:
            websockets = list(self.connections.values())
            self.connections.clear()

        for websocket in websockets:
            await close_quietly(websocket, code, reason)
        logger.info(f"Closed {len(websockets)} connections")


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class ChatConnection:
    """
    Lifecycle of one authenticated channel.

    connecting -> open registers the channel; open -> closed unregisters it.
    The user ID is bound here once and is the only sender identity used for
    messages arriving on this channel.
    """

    def __init__(self, websocket: WebSocket, principal_id: str, registry: ConnectionRegistry):
        self.websocket = websocket
        self.principal_id = principal_id
        self.registry = registry
        self.state = ConnectionState.CONNECTING

    @property
    def is_open(self) -> bool:
        return self.state == ConnectionState.OPEN

    async def open(self):
        if self.state == ConnectionState.OPEN:
            return
        if self.state == ConnectionState.CLOSED:
            raise RuntimeError("Cannot reopen a closed connection")

        await self.registry.register(self.principal_id, self.websocket)
        self.state = ConnectionState.OPEN

    async def close(self):
        if self.state == ConnectionState.CLOSED:
            return

        was_open = self.state == ConnectionState.OPEN
        self.state = ConnectionState.CLOSED
        if was_open:
            await self.registry.unregister(self.principal_id, self.websocket)

    async def send_event(self, event: BaseModel) -> bool:
        """Reply on this channel only. Failures are logged, never raised."""
        if not self.is_open:
            return False
        try:
            return await write_event(self.websocket, event)
        except Exception as e:
            logger.warning(f"Failed to send event to user {self.principal_id}: {str(e)}")
            return False


async def authenticate(websocket: WebSocket, token: Optional[str], db: Session) -> Optional[str]:
    """
    Resolve the handshake token to an approved user ID.
    On failure the socket is closed with a policy-violation code and None is returned.
    """
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Token required")
        return None

    auth_service = AuthService(db)
    try:
        user = await run_in_threadpool(auth_service.authenticate, token)
        return user.id
    except HTTPException as e:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.detail)
        return None
    except Exception as e:
        logger.error(f"Authentication failed: {str(e)}")
        await close_quietly(websocket, status.WS_1011_INTERNAL_ERROR, "Internal server error")
        return None
    finally:
        # The session is only needed for the handshake
        db.close()


async def receive_text(websocket: WebSocket) -> str:
    """Next frame as text; binary frames are decoded so bad payloads reach the dispatcher."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE), message.get("reason"))

    text = message.get("text")
    if text is None:
        text = (message.get("bytes") or b"").decode("utf-8", errors="replace")
    return text


async def handle_chat_connection(
    websocket: WebSocket,
    token: Optional[str],
    db: Session,
    registry: ConnectionRegistry,
    router
):
    try:
        await websocket.accept()
    except Exception as e:
        logger.error(f"Failed to accept WebSocket connection: {str(e)}")
        return

    principal_id = await authenticate(websocket, token, db)
    if principal_id is None:
        return

    connection = ChatConnection(websocket, principal_id, registry)
    await connection.open()
    logger.info(f"WebSocket connected: user {principal_id}")

    try:
        while True:
            data = await receive_text(websocket)
            await router.dispatcher.dispatch(connection, data)
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: user {principal_id}")
    except Exception as e:
        logger.error(f"Error processing message: {str(e)}")
        await close_quietly(websocket, status.WS_1011_INTERNAL_ERROR, "Internal server error")
    finally:
        await connection.close()
        logger.info(f"Connection closed for user {principal_id}")
