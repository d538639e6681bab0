"""Builds the bounded, spoiler-safe prompt for a single chat turn."""

import logging
from typing import Sequence

from pydantic import BaseModel

from models.book import Book
from models.conversation import Message
from models.enums import MessageRole

logger = logging.getLogger(__name__)

# Book excerpt cap, in characters of the text-so-far
DEFAULT_MAX_EXCERPT_CHARS = 8000
# Number of prior messages sent with each turn
DEFAULT_MAX_HISTORY_MESSAGES = 10


class PromptMessage(BaseModel):
    """One role/content pair of the outbound payload."""

    role: MessageRole
    content: str

    def to_payload(self) -> dict:
        return {"role": self.role.value, "content": self.content}


class ContextBuilder:
    """Assembles system instructions, recent history and the new user message.

    Building never fails: optional book fields that are missing are left
    out of the prompt rather than replaced with placeholders.
    """

    def __init__(
        self,
        max_excerpt_chars: int = DEFAULT_MAX_EXCERPT_CHARS,
        max_history_messages: int = DEFAULT_MAX_HISTORY_MESSAGES,
    ):
        self.max_excerpt_chars = max_excerpt_chars
        self.max_history_messages = max_history_messages

    @classmethod
    def from_settings(cls, settings) -> "ContextBuilder":
        return cls(
            max_excerpt_chars=settings.context_excerpt_max_chars,
            max_history_messages=settings.history_max_messages,
        )

    def build_system_prompt(self, book: Book) -> str:
        """Return the system instruction for ``book`` at the reader's current page."""
        page_marker = f"page {book.current_page}"
        if book.total_pages:
            page_marker += f" of {book.total_pages}"

        byline = f'"{book.title}"'
        if book.author:
            byline += f" by {book.author}"

        parts = [
            f"You are a helpful reading companion for the book {byline}.",
            "Your role is to:\n"
            "1. Answer questions about the book based ONLY on what the reader has read so far\n"
            "2. Clarify characters, plot points, and themes up to their current reading position\n"
            "3. Remind them of what happened earlier in the book\n"
            "4. Help deepen their understanding without spoiling future events",
            f"CRITICAL: The reader is currently on {page_marker}.\n"
            f"You must NEVER reveal anything that happens after page {book.current_page}.\n"
            "If asked about future events, politely decline and suggest they continue reading.",
        ]

        if book.current_chapter:
            parts.append(f"Current chapter: {book.current_chapter}")

        if book.summary:
            parts.append(f"Book Summary: {book.summary}")

        excerpt = book.text_up_to_current_position()
        if excerpt:
            if len(excerpt) > self.max_excerpt_chars:
                logger.debug(
                    "Excerpt truncated from %d to %d chars", len(excerpt), self.max_excerpt_chars,
                )
                excerpt = excerpt[:self.max_excerpt_chars]
            parts.append(f"Context from the book (up to reader's current position):\n{excerpt}")

        parts.append(
            "Be conversational, helpful, and engaging. Use the book's tone and style when appropriate.\n"
            "Always be mindful of spoilers and respect the reader's journey through the book."
        )
        return "\n\n".join(parts)

    def recent_history(self, history: Sequence[Message]) -> list[Message]:
        """Keep only the most recent messages; older ones are dropped."""
        if self.max_history_messages <= 0:
            return []
        return list(history[-self.max_history_messages:])

    def build(self, book: Book, history: Sequence[Message], new_user_text: str) -> list[PromptMessage]:
        """Return the ordered messages for one turn.

        Args:
            book: Book being discussed; its current position bounds the excerpt.
            history: Prior messages, already in chronological order.
            new_user_text: The utterance being sent this turn.
        """
        messages = [PromptMessage(role=MessageRole.SYSTEM, content=self.build_system_prompt(book))]
        for message in self.recent_history(history):
            messages.append(PromptMessage(role=message.role, content=message.content))
        messages.append(PromptMessage(role=MessageRole.USER, content=new_user_text))
        return messages
