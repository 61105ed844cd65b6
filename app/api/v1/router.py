# app/api/v1/router.py
from fastapi import APIRouter
from app.api.v1 import conversations

# Create the main router
api_router = APIRouter()

# Include all the sub-routers
api_router.include_router(conversations.router, prefix="/conversations", tags=["conversations"])
