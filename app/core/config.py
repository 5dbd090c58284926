# app/core/config.py
import os
from datetime import time
from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from .env"""

    # === Database ===
    DATABASE_URL: str
    DATABASE_TEST_URL: Optional[str] = None

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure database URL is safe for current environment"""
        env = os.getenv("ENVIRONMENT", "development").lower()
        if env == "production" and "localhost" in v:
            raise ValueError("Production environment cannot use localhost database!")
        return v

    # === Redis / Celery ===
    REDIS_URL: Optional[str] = None
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    # === JWT ===
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # === CORS ===
    ALLOWED_ORIGINS: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173", "http://localhost:3000"]
    ALLOWED_METHODS: List[str] = ["*"]
    ALLOWED_HEADERS: List[str] = ["*"]

    # === System ===
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    TIMEZONE: str = "Asia/Kolkata"

    # === Business Rules ===
    WORK_DAY_START: time = time(9, 0)
    WORK_DAY_END: time = time(18, 0)
    LATE_GRACE_MINUTES: int = 15
    OVERTIME_THRESHOLD_MINUTES: int = 15

    # === Attendance concurrency ===
    TRANSITION_MAX_RETRIES: int = 3
    ATTENDANCE_LOCK_TIMEOUT_SECONDS: int = 10

    # === Attendance widget ===
    API_BASE_URL: str = "http://localhost:8000/api/v1"
    WIDGET_TICK_SECONDS: float = 1.0
    WIDGET_REFRESH_SECONDS: float = 30.0

    @field_validator("TRANSITION_MAX_RETRIES")
    @classmethod
    def validate_retries(cls, v):
        if v < 1:
            raise ValueError("TRANSITION_MAX_RETRIES must be at least 1")
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


# Create a global settings instance
settings = Settings()
