"""Configuration package: settings, logging, and exceptions."""

from config.exceptions import (
    BookChatError,
    ChatClientError,
    MissingCredentialError,
    InvalidRequestError,
    NetworkError,
    StreamParseError,
    StorageError,
    SecretStoreError,
    CatalogError,
    SessionError,
    SessionNotOpenError,
    ValidationError,
    InvalidPositionError,
    InvalidChapterError,
)
from config.logging_config import setup_logging
from config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "setup_logging",
    "BookChatError",
    "ChatClientError",
    "MissingCredentialError",
    "InvalidRequestError",
    "NetworkError",
    "StreamParseError",
    "StorageError",
    "SecretStoreError",
    "CatalogError",
    "SessionError",
    "SessionNotOpenError",
    "ValidationError",
    "InvalidPositionError",
    "InvalidChapterError",
]
