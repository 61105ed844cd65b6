# app/main.py
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, WebSocket, Depends, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import logging

from app.api.v1.router import api_router
from app.database import SessionLocal, get_db, init_db
from app.config import get_settings
from app.websockets.connection_manager import ConnectionRegistry, handle_chat_connection
from app.websockets.event_dispatcher import MessageRouter

# Get settings
settings = get_settings()

# Setup logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables in the database
    init_db()

    # One registry and router per server process
    registry = ConnectionRegistry()
    app.state.connection_registry = registry
    app.state.message_router = MessageRouter(registry, SessionLocal)
    logger.info("Chat service started")

    yield

    await registry.close_all(code=status.WS_1001_GOING_AWAY, reason="Server shutting down")
    logger.info("Chat service stopped")


# Initialize app
app = FastAPI(
    title="Campus Chat API",
    description="Messaging API for the school community network: conversations, message history and real-time delivery",
    version="0.1.0",
    lifespan=lifespan
)

# CORS middleware for frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    """Health check and welcome message"""
    return {
        "message": "Welcome to the Campus Chat API",
        "status": "online",
        "version": "0.1.0"
    }

# Error handler for global exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": exc.detail if isinstance(exc, HTTPException) else str(exc)
        }
    )


@app.websocket(settings.WS_PATH)
async def chat_websocket_endpoint(
    websocket: WebSocket,
    token: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """
    WebSocket endpoint for real-time chat delivery

    Args:
        websocket: WebSocket connection
        token: JWT access token, passed as a query parameter
    """
    await handle_chat_connection(
        websocket=websocket,
        token=token,
        db=db,
        registry=websocket.app.state.connection_registry,
        router=websocket.app.state.message_router
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
