"""Chat session callbacks for observing turns as they stream."""

import logging
from typing import Protocol, runtime_checkable

from models.conversation import Message
from models.enums import SessionState

logger = logging.getLogger(__name__)


@runtime_checkable
class ChatCallback(Protocol):
    """Protocol for chat session observers.

    Implement this protocol to follow a session's turns. Observers receive
    the session's messages for display only; mutations go through the
    session.
    """

    def on_state_change(self, state: SessionState) -> None:
        """Called on every state machine transition."""
        ...

    def on_message_added(self, message: Message) -> None:
        """Called after a message has been persisted and added to the conversation."""
        ...

    def on_delta(self, message: Message, delta: str) -> None:
        """Called for each increment appended to a streaming assistant message."""
        ...

    def on_message_removed(self, message: Message) -> None:
        """Called when a failed assistant placeholder is discarded."""
        ...

    def on_error(self, error_message: str) -> None:
        """Called with the user-facing description of a failed turn."""
        ...


class LoggingCallback:
    """Lightweight callback that logs session activity to the standard logger."""

    def on_state_change(self, state: SessionState) -> None:
        logger.debug("Session state -> %s", state.value)

    def on_message_added(self, message: Message) -> None:
        logger.debug("Message %s added (role=%s)", message.id, message.role.value)

    def on_delta(self, message: Message, delta: str) -> None:
        pass

    def on_message_removed(self, message: Message) -> None:
        logger.info("Message %s discarded", message.id)

    def on_error(self, error_message: str) -> None:
        logger.error("Chat turn failed: %s", error_message)


class RichStreamCallback(LoggingCallback):
    """Renders assistant increments inline on a Rich console as they arrive."""

    def __init__(self, console=None):
        """
        Args:
            console: Rich Console instance. Creates one if not provided.
        """
        if console is None:
            from cli.theme import get_console
            console = get_console()
        self._console = console
        self._streaming_started = False

    def on_state_change(self, state: SessionState) -> None:
        super().on_state_change(state)
        if state == SessionState.STREAMING:
            self._streaming_started = False
            self._console.print("[accent]AI>[/] ", end="")
        elif state == SessionState.IDLE and self._streaming_started:
            self._console.print()
            self._streaming_started = False

    def on_delta(self, message: Message, delta: str) -> None:
        self._streaming_started = True
        # markup/highlight off: model text may contain square brackets
        self._console.print(delta, end="", markup=False, highlight=False, soft_wrap=True)

    def on_message_removed(self, message: Message) -> None:
        super().on_message_removed(message)
        if self._streaming_started:
            self._console.print()
            self._streaming_started = False

    def on_error(self, error_message: str) -> None:
        super().on_error(error_message)
        self._console.print(f"\n[error]{error_message}[/]")
