"""Shared pytest fixtures for the bookchat test suite."""

import json

import httpx
import pytest


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite database path."""
    return tmp_path / "test_books.db"


@pytest.fixture
def db(tmp_db_path):
    """Return an initialized Database instance backed by a temp file."""
    from models.database import Database
    return Database(tmp_db_path, retry_attempts=0)


@pytest.fixture
def store(db):
    from memory.conversation_store import ConversationStore
    return ConversationStore(db)


# ---------------------------------------------------------------------------
# Settings fixture
# ---------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path):
    """Return a Settings instance with all paths pointing to tmp_path."""
    from config.settings import Settings
    return Settings(
        _env_file=None,
        sqlite_db_path=tmp_path / "books.db",
        secrets_path=tmp_path / "secrets.json",
        log_dir=tmp_path / "logs",
        chat_api_url="https://chat.test/v1/chat/completions",
        google_books_base_url="https://books.test/books/v1",
        open_library_base_url="https://openlibrary.test",
    )


# ---------------------------------------------------------------------------
# Secret store fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def secrets(tmp_path):
    """Return a FileSecretStore holding a test OpenAI key."""
    from tools.secret_store import FileSecretStore, OPENAI_API_KEY
    secret_store = FileSecretStore(tmp_path / "secrets.json")
    secret_store.save(OPENAI_API_KEY, "sk-test")
    return secret_store


@pytest.fixture
def empty_secrets(tmp_path):
    from tools.secret_store import FileSecretStore
    return FileSecretStore(tmp_path / "empty_secrets.json")


# ---------------------------------------------------------------------------
# Sample data fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_book(db):
    """Insert and return a sample Book at page 36 of 180."""
    from models.book import Book
    book = Book(
        title="The Great Gatsby",
        author="F. Scott Fitzgerald",
        total_pages=180,
        summary="A portrait of the Jazz Age.",
        full_text="x" * 10000,
    )
    book.update_progress(36)
    db.create_book(book)
    return book


@pytest.fixture
def chaptered_book(db):
    """Insert and return a Book with a five-entry table of contents."""
    from models.book import Book
    book = Book(
        title="Five Parts",
        author="Anon",
        total_pages=180,
        chapters=["One", "Two", "Three", "Four", "Five"],
    )
    db.create_book(book)
    return book


# ---------------------------------------------------------------------------
# Chat stream helpers
# ---------------------------------------------------------------------------

def sse_body(fragments, done=True) -> bytes:
    """Encode text fragments as a chat completion event stream."""
    lines = [": keep-alive", 'data: {"choices":[{"delta":{"role":"assistant"}}]}']
    for fragment in fragments:
        lines.append("data: " + json.dumps({"choices": [{"delta": {"content": fragment}}]}))
    if done:
        lines.append("data: [DONE]")
    return ("\n\n".join(lines) + "\n\n").encode("utf-8")


def sse_transport(fragments, status_code=200, captured=None) -> httpx.MockTransport:
    """MockTransport answering every request with ``fragments`` as a stream."""
    def handler(request: httpx.Request) -> httpx.Response:
        if captured is not None:
            captured.append(request)
        if status_code != 200:
            return httpx.Response(status_code, json={"error": {"message": "boom"}})
        return httpx.Response(
            200,
            headers={"Content-Type": "text/event-stream"},
            content=sse_body(fragments),
        )
    return httpx.MockTransport(handler)


class FakeChatClient:
    """Stand-in for StreamingChatClient yielding scripted increments.

    ``fail_after`` raises ``error`` once that many increments were yielded;
    ``block_after`` suspends forever after that many, for cancellation tests.
    """

    def __init__(self, fragments=("Hello", ", ", "reader"), fail_after=None, error=None, block_after=None):
        self.fragments = list(fragments)
        self.fail_after = fail_after
        self.error = error
        self.block_after = block_after
        self.payloads = []
        self.credentials = []
        self.closed = False
        self.blocked = None

    def send(self, payload, credential):
        from config.exceptions import MissingCredentialError
        if not credential:
            raise MissingCredentialError("OpenAI API key not configured. Please add your API key in settings.")
        self.payloads.append(list(payload))
        self.credentials.append(credential)
        return self._stream()

    async def _stream(self):
        import asyncio
        try:
            for i, fragment in enumerate(self.fragments):
                if self.fail_after is not None and i == self.fail_after:
                    raise self.error
                if self.block_after is not None and i == self.block_after:
                    self.blocked.set()
                    await asyncio.Event().wait()
                yield fragment
        finally:
            self.closed = True


@pytest.fixture
def fake_client():
    return FakeChatClient()
