import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["LOG_LEVEL"] = "WARNING"

import asyncio
import itertools

import jwt
import pytest
from fastapi.testclient import TestClient
from fastapi.websockets import WebSocketState

from app.database import Base, SessionLocal, engine, init_db
from app.main import app
from app.models.enums import ApplicationStatus
from app.services.conversation_service import ConversationService
from app.services.user_service import UserService
from app.websockets.connection_manager import ChatConnection, ConnectionRegistry
from app.websockets.event_dispatcher import MessageRouter


class FakeWebSocket:
    """Stands in for a Starlette WebSocket: records writes, can be made to fail or hang."""

    def __init__(self, fail: bool = False, stall: bool = False):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.fail = fail
        self.stall = stall
        self.sent = []
        self.closed_with = None

    async def send_json(self, data):
        if self.stall:
            # a peer that never drains its receive buffer
            await asyncio.Event().wait()
        if self.fail:
            raise RuntimeError("broken pipe")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str = ""):
        self.application_state = WebSocketState.DISCONNECTED
        self.closed_with = (code, reason)

    def events(self, event_type):
        return [e for e in self.sent if e.get("type") == event_type]


JWT_SECRET = os.environ["JWT_SECRET"]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def database():
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make_user(status: ApplicationStatus = ApplicationStatus.APPROVED, **fields):
        n = next(counter)
        return UserService(db).create_user(
            username=fields.pop("username", f"student{n}"),
            email=fields.pop("email", f"student{n}@school.test"),
            full_name=fields.pop("full_name", f"Student {n}"),
            application_status=status,
            **fields
        )

    return _make_user


@pytest.fixture
def make_conversation(db):
    def _make_conversation(*users, is_group=False, group_name=None):
        return ConversationService(db).create_conversation(
            [u.id for u in users], is_group=is_group, group_name=group_name
        )

    return _make_conversation


@pytest.fixture
def fake_websocket():
    return FakeWebSocket


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def router(registry):
    return MessageRouter(registry, SessionLocal)


@pytest.fixture
def connect(registry):
    """Open a ChatConnection for a user over a fake socket."""
    async def _connect(user, websocket=None):
        connection = ChatConnection(websocket or FakeWebSocket(), user.id, registry)
        await connection.open()
        return connection

    return _connect


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def token_for():
    def _token_for(user_id=None, **claims):
        if user_id is not None:
            claims["sub"] = user_id
        return jwt.encode(claims, JWT_SECRET, algorithm="HS256")

    return _token_for


@pytest.fixture
def auth_headers(token_for):
    def _auth_headers(user):
        return {"Authorization": f"Bearer {token_for(user.id)}"}

    return _auth_headers
