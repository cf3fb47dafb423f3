"""
Configuration management for the GlamScan backend.
Values come from the environment, with backend/.env loaded first when present.
"""
import os
from typing import List

from dotenv import load_dotenv


dotenv_path_explicit = os.path.join(os.path.dirname(__file__), '..', '.env')
if os.path.exists(dotenv_path_explicit):
    load_dotenv(dotenv_path=dotenv_path_explicit)
else:
    load_dotenv()  # Fallback


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _normalize_database_url(url: str) -> str:
    # Heroku-style URLs are rejected by SQLAlchemy 1.4+
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def _split_origins(raw: str) -> List[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


class Settings:
    """Application settings and configuration"""

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Database Configuration
    DATABASE_URL: str = _normalize_database_url(os.getenv("DATABASE_URL", "sqlite:///./glamscan.db"))

    # OpenAI Configuration (any OpenAI-compatible endpoint works through OPENAI_BASE_URL)
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "")
    OPENAI_CHAT_MODEL: str = os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini")
    OPENAI_VISION_MODEL: str = os.getenv("OPENAI_VISION_MODEL", "gpt-4o")
    OPENAI_EMBEDDING_MODEL: str = os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
    USE_MOCK_AI: bool = _env_flag("GLAMSCAN_MOCK_AI", "false")

    # Amazon Associates
    AMAZON_ASSOCIATE_TAG: str = os.getenv("AMAZON_ASSOCIATE_TAG", "")

    # Sessions
    SESSION_COOKIE_NAME: str = os.getenv("SESSION_COOKIE_NAME", "glamscan_session")
    SESSION_EXPIRATION_SECONDS: int = int(os.getenv("SESSION_EXPIRATION_SECONDS", str(7 * 24 * 60 * 60)))
    COOKIE_SECURE: bool = _env_flag("COOKIE_SECURE", "false")

    # Frontend origins allowed by CORS
    CORS_ORIGINS: List[str] = _split_origins(os.getenv("CORS_ORIGINS", "http://localhost:8501"))

    # Uploaded images
    MEDIA_DIR: str = os.getenv("MEDIA_DIR", os.path.join(os.path.dirname(__file__), '..', 'media'))
    MEDIA_BASE_URL: str = os.getenv("MEDIA_BASE_URL", "/media")
    MAX_IMAGE_SIZE: int = int(os.getenv("MAX_IMAGE_SIZE", str(5 * 1024 * 1024)))  # 5MB default

    # Feature flags
    RATE_LIMIT_ENABLED: bool = _env_flag("RATE_LIMIT_ENABLED", "true")


settings = Settings()
