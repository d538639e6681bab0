"""Chat session orchestrator: turns a reader's utterance into a persisted exchange."""

import asyncio
import logging
from contextlib import aclosing
from typing import Optional

from config.exceptions import (
    BookChatError,
    InvalidRequestError,
    MissingCredentialError,
    NetworkError,
    SessionNotOpenError,
    StorageError,
    StreamParseError,
)
from memory.conversation_store import ConversationStore
from models.book import Book
from models.conversation import Conversation, Message
from models.enums import MessageRole, SessionState
from tools.chat_client import StreamingChatClient
from tools.context_builder import ContextBuilder
from tools.secret_store import OPENAI_API_KEY, SecretStore
from workflow.callbacks import ChatCallback, LoggingCallback

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Response cancelled."


def describe_error(error: BaseException) -> str:
    """Convert a turn-level failure into one human-readable line."""
    if isinstance(error, MissingCredentialError):
        return "OpenAI API key not configured. Please add your API key in Settings."
    if isinstance(error, InvalidRequestError):
        return "Invalid API URL"
    if isinstance(error, NetworkError):
        if error.status_code is not None:
            return f"Network error occurred (HTTP {error.status_code}). Please try again."
        return "Network error occurred. Please try again."
    if isinstance(error, StreamParseError):
        return "Failed to decode response"
    if isinstance(error, StorageError):
        return "Could not save the conversation. Your message was kept; please try again."
    if isinstance(error, asyncio.CancelledError):
        return CANCELLED_MESSAGE
    return str(error) or "Something went wrong. Please try again."


def _contains(conversation: Conversation, message: Message) -> bool:
    return any(m.id == message.id for m in conversation.messages)


class ChatSession:
    """One reader's chat about one book.

    States: idle -> sending -> (streaming -> idle) | (failed -> idle).
    At most one turn is in flight; a submission while one is running is
    rejected, not queued. A failed or cancelled turn keeps the user's
    message and removes the assistant placeholder from memory and store.
    """

    def __init__(
        self,
        book: Book,
        store: ConversationStore,
        client: StreamingChatClient,
        secrets: SecretStore,
        context_builder: Optional[ContextBuilder] = None,
        callback: Optional[ChatCallback] = None,
    ):
        self.book = book
        self.store = store
        self.client = client
        self.secrets = secrets
        self.context_builder = context_builder or ContextBuilder()
        self.callback = callback or LoggingCallback()

        self.conversation: Optional[Conversation] = None
        self.state = SessionState.IDLE
        self.error_message: Optional[str] = None
        self.draft = ""  # text kept for retry when it could not be saved
        self._task: Optional[asyncio.Task] = None

    # ── Lifecycle ─────────────────────────────────────────────────────

    def open(self) -> Conversation:
        """Load (or create) the book's conversation and clear leftovers from a crash."""
        conversation = self.store.ensure(self.book.id)
        self.store.discard_abandoned(conversation)
        self.conversation = conversation
        return conversation

    @property
    def messages(self) -> list[Message]:
        if self.conversation is None:
            return []
        return self.store.sorted_messages(self.conversation)

    @property
    def is_sending(self) -> bool:
        if self.state in (SessionState.SENDING, SessionState.STREAMING):
            return True
        return self._task is not None and not self._task.done()

    def _set_state(self, state: SessionState) -> None:
        self.state = state
        self.callback.on_state_change(state)

    def _require_conversation(self) -> Conversation:
        if self.conversation is None:
            raise SessionNotOpenError()
        return self.conversation

    # ── Turns ─────────────────────────────────────────────────────────

    async def _commit(self, func, *args):
        """Run a blocking store call in a worker thread.

        SQLite lock retries sleep there instead of on the event loop. If the
        turn is cancelled meanwhile, the commit is allowed to settle first so
        the in-memory conversation matches the store when cleanup runs.
        """
        future = asyncio.ensure_future(asyncio.to_thread(func, *args))
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            try:
                await future
            except StorageError as e:
                logger.warning("Store call interrupted by cancellation failed: %s", e)
            raise

    async def submit(self, text: str) -> bool:
        """Send ``text`` and stream the assistant's reply into the conversation.

        Returns:
            True when the reply was streamed and saved; False when the
            submission was ignored (blank text, turn already in flight) or
            the turn failed, in which case error_message explains why.

        Raises:
            SessionNotOpenError: If open() has not been called.
            asyncio.CancelledError: If the turn was cancelled; cleanup has
                already run when it propagates.
        """
        if not text or not text.strip():
            return False
        if self.state in (SessionState.SENDING, SessionState.STREAMING):
            logger.info("Submission rejected: a turn is already in flight")
            return False
        conversation = self._require_conversation()

        self._set_state(SessionState.SENDING)
        self.error_message = None
        self.draft = ""

        # History for the prompt is everything before this turn
        history = self.store.sorted_messages(conversation)

        user_message = Message(role=MessageRole.USER, content=text)
        try:
            await self._commit(self.store.append, conversation, user_message)
        except StorageError as e:
            self.draft = text
            self._fail(e)
            return False
        except asyncio.CancelledError as e:
            if not _contains(conversation, user_message):
                self.draft = text
            self._fail(e)
            raise
        self.callback.on_message_added(user_message)

        assistant_message = Message(role=MessageRole.ASSISTANT, content="", is_streaming=True)
        try:
            await self._commit(self.store.append, conversation, assistant_message)
            self.callback.on_message_added(assistant_message)
            await self._stream_reply(conversation, history, text, assistant_message)
        except asyncio.CancelledError as e:
            logger.info("Turn cancelled for book %s", self.book.id)
            await self._discard(conversation, assistant_message)
            self._fail(e)
            raise
        except BookChatError as e:
            logger.warning("Turn failed for book %s: %s", self.book.id, e)
            await self._discard(conversation, assistant_message)
            self._fail(e)
            return False
        except Exception as e:
            logger.exception("Unexpected error during chat turn")
            await self._discard(conversation, assistant_message)
            self._fail(e)
            raise

        self._set_state(SessionState.IDLE)
        return True

    async def _stream_reply(
        self,
        conversation: Conversation,
        history: list[Message],
        text: str,
        assistant_message: Message,
    ) -> None:
        payload = self.context_builder.build(self.book, history, text)
        credential = self.secrets.get(OPENAI_API_KEY)
        stream = self.client.send(payload, credential)

        self._set_state(SessionState.STREAMING)
        async with aclosing(stream):
            async for delta in stream:
                assistant_message.content += delta
                self.callback.on_delta(assistant_message, delta)

        await self._commit(self.store.finalize, conversation, assistant_message)
        logger.info(
            "Turn complete for book %s (%d chars)", self.book.id, len(assistant_message.content),
        )

    async def _discard(self, conversation: Conversation, message: Message) -> None:
        """Remove a failed placeholder; a leftover row is cleared on the next open()."""
        if not _contains(conversation, message):
            return
        try:
            await self._commit(self.store.remove, conversation, message)
        except StorageError as e:
            logger.error("Could not delete failed message %s: %s", message.id, e)
            conversation.remove_message(message.id)
        message.is_streaming = False
        self.callback.on_message_removed(message)

    def _fail(self, error: BaseException) -> None:
        self.error_message = describe_error(error)
        self._set_state(SessionState.FAILED)
        self.callback.on_error(self.error_message)
        self._set_state(SessionState.IDLE)

    # ── Background turns and cancellation ─────────────────────────────

    def start(self, text: str) -> Optional[asyncio.Task]:
        """Run a turn in the background; returns None if it was not accepted."""
        if not text or not text.strip() or self.is_sending:
            return None
        self._require_conversation()
        self._task = asyncio.create_task(self.submit(text))
        return self._task

    def cancel(self) -> bool:
        """Cancel the in-flight background turn without waiting for its teardown."""
        if self._task is None or self._task.done():
            return False
        self._task.cancel()
        return True
