"""Custom exception hierarchy for the reading-companion chat engine."""

from typing import Optional


class BookChatError(Exception):
    """Base exception for all bookchat errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# ---- Chat client errors ----

class ChatClientError(BookChatError):
    """Base exception for chat completion API errors."""


class MissingCredentialError(ChatClientError):
    """No API key is configured for the chat provider."""

    def __init__(self, message: str = "API key not configured"):
        super().__init__(message)


class InvalidRequestError(ChatClientError):
    """The chat request could not be constructed."""


class NetworkError(ChatClientError):
    """Non-success response or transport failure."""

    def __init__(self, message: str = "Network error occurred", status_code: Optional[int] = None):
        details = {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, details)
        self.status_code = status_code


class StreamParseError(ChatClientError):
    """The response stream could not be decoded."""

    def __init__(self, message: str = "Failed to decode response stream", raw_line: str = ""):
        details = {"raw_line": raw_line[:200]} if raw_line else {}
        super().__init__(message, details)
        self.raw_line = raw_line


# ---- Storage errors ----

class StorageError(BookChatError):
    """Persisted store operation failed."""


class SecretStoreError(StorageError):
    """Secret could not be saved or removed."""


# ---- Catalog errors ----

class CatalogError(BookChatError):
    """Bibliographic lookup failed."""


# ---- Session errors ----

class SessionError(BookChatError):
    """Base exception for chat session errors."""


class SessionNotOpenError(SessionError):
    """Session used before open() was called."""

    def __init__(self, message: str = "Chat session is not open"):
        super().__init__(message)


# ---- Validation errors ----

class ValidationError(BookChatError):
    """Input validation failed."""


class InvalidPositionError(ValidationError):
    """Reading position is out of range."""

    def __init__(self, page: int, total_pages: Optional[int] = None, message: str = ""):
        if not message:
            if total_pages is not None and page > total_pages:
                message = f"Page cannot exceed {total_pages}"
            else:
                message = "Enter a valid page number"
        details = {"page": page}
        if total_pages is not None:
            details["total_pages"] = total_pages
        super().__init__(message, details)
        self.page = page
        self.total_pages = total_pages


class InvalidChapterError(ValidationError):
    """Chapter is not part of the book's table of contents."""

    def __init__(self, chapter: str):
        super().__init__(f"Unknown chapter: {chapter}", {"chapter": chapter})
        self.chapter = chapter
