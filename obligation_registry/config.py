"""
Application configuration loaded from environment variables / .env file.
"""
import warnings
from functools import lru_cache
from pydantic_settings import BaseSettings
from typing import List


_DEFAULT_SECRET = "obligation-registry-secret-key-change-in-production"


class Settings(BaseSettings):
    # ── App ──
    APP_NAME: str = "Obligation Registry API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # ── Database ──
    DATABASE_URL: str = "sqlite:///./obligation_registry.db"

    # ── Supabase Storage ──
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_KEY: str = ""
    SUPABASE_BUCKET: str = "contracts"
    SIGNED_URL_EXPIRES_IN: int = 300

    # ── JWT / Auth ──
    SECRET_KEY: str = _DEFAULT_SECRET
    ALGORITHM: str = "HS256"

    # ── CORS ──
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # ── AI Provider (OpenAI) ──
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_FILE_PURPOSE: str = "user_data"
    PROVIDER_TIMEOUT_SECONDS: float = 120.0

    # ── Export webhook ──
    EXPORT_WEBHOOK_URL: str = ""
    EXPORT_TIMEOUT_SECONDS: float = 30.0

    # ── Registry view ──
    POLL_INTERVAL_SECONDS: float = 10.0
    BATCH_WINDOW_MINUTES: int = 10

    # ── Uploads ──
    MAX_FILE_SIZE_MB: int = 50
    SUPPORTED_FILE_TYPES: List[str] = [".pdf"]

    # ── Rate Limiting ──
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_UPLOAD: str = "20/minute"
    RATE_LIMIT_PROCESS: str = "5/minute"
    RATE_LIMIT_EXPORT: str = "10/minute"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"          # ignore unknown vars in .env


@lru_cache
def get_settings() -> Settings:
    """Build the settings once at process entry."""
    settings = Settings()

    # ── Security: reject the default placeholder secret in production ──
    if settings.SECRET_KEY == _DEFAULT_SECRET and not settings.DEBUG:
        warnings.warn(
            "\n⚠  SECRET_KEY is set to the insecure default!\n"
            "   Set a strong, random SECRET_KEY in your .env file.\n",
            stacklevel=1,
        )
    return settings
