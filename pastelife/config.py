"""
Configuration module for pastelife.
Loads environment variables and provides config objects.
"""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _as_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        self.REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")
        self.STORE_BACKEND: str = os.getenv("STORE_BACKEND", "redis").lower()
        self.STORE_TIMEOUT_SECONDS: float = float(os.getenv("STORE_TIMEOUT_SECONDS", "2.0"))
        self.PASTE_RETENTION_SECONDS: int = int(os.getenv("PASTE_RETENTION_SECONDS", "3600"))
        self.PURGE_INTERVAL_SECONDS: float = float(os.getenv("PURGE_INTERVAL_SECONDS", "0"))
        self.APP_DOMAIN: str = os.getenv("APP_DOMAIN", "http://localhost:8000")
        self.ID_LENGTH: int = int(os.getenv("ID_LENGTH", "10"))
        self.ID_MAX_ATTEMPTS: int = int(os.getenv("ID_MAX_ATTEMPTS", "5"))
        self.DEBUG: bool = _as_bool(os.getenv("DEBUG", "False"))
        self.TEST_MODE: bool = _as_bool(os.getenv("TEST_MODE", "0"))
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

        if self.STORE_BACKEND not in ("redis", "memory"):
            raise ValueError(f"STORE_BACKEND must be 'redis' or 'memory', got {self.STORE_BACKEND!r}")


settings = Settings()
