# app/config.py
from typing import List
from pydantic_settings import BaseSettings
from functools import lru_cache
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./campus_chat.db"

    # JWT verification (tokens are issued by the auth service)
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"

    # API configuration
    API_PREFIX: str = "/api/v1"
    WS_PATH: str = "/ws"
    CORS_ORIGINS: List[str] = ["*"]

    # Logging
    LOG_LEVEL: str = "INFO"

    # Messaging
    MESSAGE_PAGE_SIZE: int = 50
    MESSAGE_PAGE_SIZE_MAX: int = 100
    SUMMARY_MAX_LENGTH: int = 200
    SEND_TIMEOUT_SECONDS: float = 5.0

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()
