"""Configuration settings loaded from .env file."""

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings, loaded from .env file.

    The API key itself is not a setting; it lives in the secret store
    (see tools/secret_store.py) and is read once per chat turn.
    """

    # Chat completion provider
    chat_api_url: str = "https://api.openai.com/v1/chat/completions"
    chat_model: str = "gpt-4o-mini"
    chat_temperature: float = 0.7
    request_timeout: float = 60.0

    # Prompt bounds
    context_excerpt_max_chars: int = 8000
    history_max_messages: int = 10

    # Bibliographic catalogs
    google_books_base_url: str = "https://www.googleapis.com/books/v1"
    open_library_base_url: str = "https://openlibrary.org"
    catalog_timeout: float = 15.0
    catalog_max_results: int = 20

    # Storage
    sqlite_db_path: Path = Path("./data/bookchat.db")
    secrets_path: Path = Path("./data/secrets.json")
    db_retry_attempts: int = 5

    # Logging
    log_dir: Path = Path("./data/logs")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    @field_validator("chat_api_url")
    @classmethod
    def validate_chat_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"chat_api_url must start with http:// or https:// (got {v!r})")
        return v

    @field_validator("google_books_base_url", "open_library_base_url")
    @classmethod
    def validate_catalog_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Catalog URL must start with http:// or https:// (got {v!r})")
        return v.rstrip("/")

    @field_validator("chat_temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError("chat_temperature must be between 0.0 and 2.0")
        return v

    @field_validator("context_excerpt_max_chars", "history_max_messages", "catalog_max_results")
    @classmethod
    def validate_positive_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Limit must be >= 1")
        return v

    @field_validator("request_timeout", "catalog_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v

    @field_validator("db_retry_attempts")
    @classmethod
    def validate_retry_attempts(cls, v: int) -> int:
        if v < 0:
            raise ValueError("db_retry_attempts must be non-negative")
        return v

    @field_validator("sqlite_db_path", "secrets_path", "log_dir")
    @classmethod
    def ensure_parent_dirs(cls, v: Path) -> Path:
        v.parent.mkdir(parents=True, exist_ok=True)
        return v


_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
