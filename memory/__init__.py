"""Memory package: persisted conversation history."""

from memory.conversation_store import ConversationStore

__all__ = ["ConversationStore"]
