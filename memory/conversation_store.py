"""Durable, ordered message log per book."""

import logging
from datetime import datetime

from config.exceptions import StorageError
from models.conversation import Conversation, Message
from models.database import Database

logger = logging.getLogger(__name__)


class ConversationStore:
    """Keeps in-memory conversations and their persisted records in step.

    Every mutation is one commit against the database; when a commit
    fails, StorageError propagates and the in-memory conversation is left
    as it was before the call.
    """

    def __init__(self, db: Database):
        self.db = db

    def ensure(self, book_id: str) -> Conversation:
        """Return the conversation for ``book_id``, creating it on first use."""
        conversation = self.db.get_or_create_conversation(Conversation(book_id=book_id))
        conversation.messages = self.db.get_messages(conversation.id)
        logger.debug(
            "Conversation %s for book %s loaded with %d messages",
            conversation.id, book_id, len(conversation.messages),
        )
        return conversation

    def append(self, conversation: Conversation, message: Message) -> None:
        """Persist ``message`` and add it to ``conversation``."""
        message.conversation_id = conversation.id
        updated_at = datetime.now()
        self.db.insert_message(message, updated_at)
        conversation.add_message(message, updated_at)

    def save_message(self, conversation: Conversation, message: Message) -> None:
        """Commit the message's current content and streaming flag together."""
        updated_at = datetime.now()
        self.db.update_message(message, updated_at)
        conversation.updated_at = updated_at

    def finalize(self, conversation: Conversation, message: Message) -> None:
        """Mark a streamed message complete and commit it."""
        message.is_streaming = False
        try:
            self.save_message(conversation, message)
        except StorageError:
            message.is_streaming = True
            raise

    def remove(self, conversation: Conversation, message: Message) -> None:
        """Delete ``message`` from the store and from ``conversation``."""
        self.db.delete_message(message.id)
        conversation.remove_message(message.id)

    def discard_abandoned(self, conversation: Conversation) -> int:
        """Drop messages still flagged as streaming from an earlier, interrupted run."""
        removed = self.db.delete_streaming_messages(conversation.id)
        if removed:
            conversation.messages = [m for m in conversation.messages if not m.is_streaming]
            logger.warning(
                "Discarded %d abandoned streaming message(s) from conversation %s",
                removed, conversation.id,
            )
        return removed

    def sorted_messages(self, conversation: Conversation) -> list[Message]:
        """Messages ordered by creation time; ties keep insertion order."""
        return conversation.sorted_messages

    def message_count(self, conversation: Conversation) -> int:
        """Number of persisted messages in ``conversation``."""
        return self.db.count_messages(conversation.id)
