"""Workflow package: chat session orchestration, library operations, and callbacks."""

from workflow.callbacks import ChatCallback, LoggingCallback, RichStreamCallback
from workflow.chat_session import ChatSession, describe_error
from workflow.library import Library

__all__ = [
    "ChatCallback",
    "LoggingCallback",
    "RichStreamCallback",
    "ChatSession",
    "describe_error",
    "Library",
]
