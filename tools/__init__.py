"""Tools package: position tracking, prompt assembly, streaming client, and collaborators."""

from tools.position import (
    compute_progress,
    text_up_to_position,
    estimated_page_for_chapter,
    chapter_index,
)
from tools.context_builder import ContextBuilder, PromptMessage
from tools.stream_parser import parse_stream_line, is_done_line
from tools.chat_client import StreamingChatClient
from tools.secret_store import SecretStore, FileSecretStore, OPENAI_API_KEY, GOOGLE_BOOKS_API_KEY
from tools.book_catalog import BookCatalogClient, BookSearchResult, BookDetails

__all__ = [
    "compute_progress",
    "text_up_to_position",
    "estimated_page_for_chapter",
    "chapter_index",
    "ContextBuilder",
    "PromptMessage",
    "parse_stream_line",
    "is_done_line",
    "StreamingChatClient",
    "SecretStore",
    "FileSecretStore",
    "OPENAI_API_KEY",
    "GOOGLE_BOOKS_API_KEY",
    "BookCatalogClient",
    "BookSearchResult",
    "BookDetails",
]
