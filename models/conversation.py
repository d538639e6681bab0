"""Conversation and message data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import uuid4

from models.enums import MessageRole


@dataclass
class Message:
    """A single message in a conversation.

    ``created_at`` is the ordering key and never changes after creation.
    ``is_streaming`` stays True while an in-flight response is still
    appending to ``content``.
    """
    role: MessageRole = MessageRole.USER
    content: str = ""
    is_streaming: bool = False
    id: str = field(default_factory=lambda: uuid4().hex)
    created_at: datetime = field(default_factory=datetime.now)
    conversation_id: Optional[str] = None


@dataclass
class Conversation:
    """The conversation thread about one book."""
    book_id: str = ""
    id: str = field(default_factory=lambda: uuid4().hex)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    messages: list[Message] = field(default_factory=list)

    def add_message(self, message: Message, updated_at: Optional[datetime] = None) -> None:
        """Attach ``message``; ``updated_at`` lets callers reuse the timestamp they persisted."""
        message.conversation_id = self.id
        self.messages.append(message)
        self.updated_at = updated_at or datetime.now()

    def remove_message(self, message_id: str) -> Optional[Message]:
        for i, message in enumerate(self.messages):
            if message.id == message_id:
                return self.messages.pop(i)
        return None

    @property
    def sorted_messages(self) -> list[Message]:
        # sorted() is stable, so equal timestamps keep insertion order
        return sorted(self.messages, key=lambda m: m.created_at)
