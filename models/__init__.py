"""Models package: database, dataclass models, and enums."""

from models.database import Database
from models.book import Book
from models.conversation import Conversation, Message
from models.enums import MessageRole, SessionState

__all__ = [
    "Database",
    "Book",
    "Conversation",
    "Message",
    "MessageRole",
    "SessionState",
]
