"""SQLite database initialization and CRUD operations."""

import json
import logging
import sqlite3
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator, Optional, TypeVar

from config.exceptions import StorageError
from models.book import Book
from models.conversation import Conversation, Message
from models.enums import MessageRole

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SQL for creating all tables
_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS books (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    author TEXT NOT NULL DEFAULT '',
    isbn TEXT,
    cover_image_url TEXT,
    current_page INTEGER NOT NULL DEFAULT 0,
    total_pages INTEGER,
    current_chapter TEXT,
    reading_progress REAL NOT NULL DEFAULT 0.0,
    chapters TEXT,
    full_text TEXT,
    summary TEXT,
    date_added TIMESTAMP NOT NULL,
    date_started TIMESTAMP,
    date_finished TIMESTAMP
);

CREATE TABLE IF NOT EXISTS conversations (
    id TEXT PRIMARY KEY,
    book_id TEXT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    created_at TIMESTAMP NOT NULL,
    updated_at TIMESTAMP NOT NULL
);

CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    conversation_id TEXT NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
    role TEXT NOT NULL,
    content TEXT NOT NULL DEFAULT '',
    is_streaming BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMP NOT NULL
);
"""

# Indexes and constraints added via migration (idempotent)
_MIGRATION_SQL = [
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_conversations_book ON conversations(book_id)",
    "CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_messages_streaming ON messages(conversation_id, is_streaming)",
]

_RETRY_INITIAL_DELAY = 0.05
_RETRY_MAX_DELAY = 2.0
_RETRYABLE_ERRORS = ("locked", "busy")


def _to_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="microseconds") if value is not None else None


def _from_timestamp(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class Database:
    """SQLite database manager for books, conversations and messages.

    Every public method runs in its own transaction: it either fully
    applies or leaves the database unchanged.
    """

    def __init__(self, db_path: str | Path, retry_attempts: int = 5):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.retry_attempts = retry_attempts
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_conn()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_db(self):
        try:
            with self._transaction() as conn:
                conn.executescript(_CREATE_TABLES_SQL)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to initialize database: {e}", {"path": str(self.db_path)}) from e
        self._migrate()

    def _migrate(self):
        """Apply idempotent schema migrations (indexes, constraints)."""
        with self._transaction() as conn:
            for sql in _MIGRATION_SQL:
                try:
                    conn.execute(sql)
                except sqlite3.DatabaseError as e:
                    if "already exists" in str(e).lower():
                        logger.debug("Migration skipped (already applied): %s", e)
                    else:
                        logger.warning("Migration failed, schema left without it: %s (%s)", sql, e)

    def _run(self, operation: str, func: Callable[[sqlite3.Connection], T]) -> T:
        """Run ``func`` in a transaction, retrying with backoff while the database is locked."""
        delay = _RETRY_INITIAL_DELAY
        for attempt in range(self.retry_attempts + 1):
            try:
                with self._transaction() as conn:
                    return func(conn)
            except sqlite3.OperationalError as e:
                retryable = any(err in str(e).lower() for err in _RETRYABLE_ERRORS)
                if not retryable or attempt >= self.retry_attempts:
                    if attempt > 0:
                        logger.error("%s failed after %d attempts: %s", operation, attempt + 1, e)
                    raise StorageError(f"{operation} failed: {e}", {"operation": operation}) from e
                logger.warning(
                    "Database locked during %s (attempt %d/%d), retrying in %.2fs",
                    operation, attempt + 1, self.retry_attempts + 1, delay,
                )
                time.sleep(delay)
                delay = min(delay * 2, _RETRY_MAX_DELAY)
            except sqlite3.Error as e:
                raise StorageError(f"{operation} failed: {e}", {"operation": operation}) from e
        raise StorageError(f"{operation} failed", {"operation": operation})

    # ---- Book CRUD ----

    def create_book(self, book: Book) -> str:
        def _insert(conn):
            conn.execute(
                "INSERT INTO books (id, title, author, isbn, cover_image_url, current_page, "
                "total_pages, current_chapter, reading_progress, chapters, full_text, summary, "
                "date_added, date_started, date_finished) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (book.id, book.title, book.author, book.isbn, book.cover_image_url,
                 book.current_page, book.total_pages, book.current_chapter,
                 book.reading_progress,
                 json.dumps(book.chapters, ensure_ascii=False) if book.chapters is not None else None,
                 book.full_text, book.summary, _to_timestamp(book.date_added),
                 _to_timestamp(book.date_started), _to_timestamp(book.date_finished)),
            )
            return book.id
        return self._run("create_book", _insert)

    def get_book(self, book_id: str) -> Optional[Book]:
        def _select(conn):
            row = conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()
            return self._row_to_book(row) if row else None
        return self._run("get_book", _select)

    def update_book(self, book: Book):
        def _update(conn):
            conn.execute(
                "UPDATE books SET title=?, author=?, isbn=?, cover_image_url=?, current_page=?, "
                "total_pages=?, current_chapter=?, reading_progress=?, chapters=?, full_text=?, "
                "summary=?, date_started=?, date_finished=? WHERE id=?",
                (book.title, book.author, book.isbn, book.cover_image_url, book.current_page,
                 book.total_pages, book.current_chapter, book.reading_progress,
                 json.dumps(book.chapters, ensure_ascii=False) if book.chapters is not None else None,
                 book.full_text, book.summary, _to_timestamp(book.date_started),
                 _to_timestamp(book.date_finished), book.id),
            )
        self._run("update_book", _update)

    def delete_book(self, book_id: str):
        """Delete a book together with its conversation and messages."""
        def _delete(conn):
            conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
        self._run("delete_book", _delete)
        logger.info("Book %s and all associated data deleted", book_id)

    def list_books(self) -> list[Book]:
        def _select(conn):
            rows = conn.execute("SELECT * FROM books ORDER BY date_added").fetchall()
            return [self._row_to_book(r) for r in rows]
        return self._run("list_books", _select)

    def _row_to_book(self, row) -> Book:
        return Book(
            id=row["id"], title=row["title"], author=row["author"],
            isbn=row["isbn"], cover_image_url=row["cover_image_url"],
            current_page=row["current_page"], total_pages=row["total_pages"],
            current_chapter=row["current_chapter"],
            reading_progress=row["reading_progress"],
            chapters=json.loads(row["chapters"]) if row["chapters"] else None,
            full_text=row["full_text"], summary=row["summary"],
            date_added=_from_timestamp(row["date_added"]),
            date_started=_from_timestamp(row["date_started"]),
            date_finished=_from_timestamp(row["date_finished"]),
        )

    # ---- Conversation CRUD ----

    def get_or_create_conversation(self, conversation: Conversation) -> Conversation:
        """Insert ``conversation`` unless its book already has one; return the stored record."""
        def _upsert(conn):
            conn.execute(
                "INSERT OR IGNORE INTO conversations (id, book_id, created_at, updated_at) "
                "VALUES (?, ?, ?, ?)",
                (conversation.id, conversation.book_id,
                 _to_timestamp(conversation.created_at), _to_timestamp(conversation.updated_at)),
            )
            row = conn.execute(
                "SELECT * FROM conversations WHERE book_id = ? ORDER BY created_at LIMIT 1",
                (conversation.book_id,),
            ).fetchone()
            return self._row_to_conversation(row)
        return self._run("get_or_create_conversation", _upsert)

    def find_conversations(self, book_id: str) -> list[Conversation]:
        def _select(conn):
            rows = conn.execute(
                "SELECT * FROM conversations WHERE book_id = ? ORDER BY created_at",
                (book_id,),
            ).fetchall()
            return [self._row_to_conversation(r) for r in rows]
        return self._run("find_conversations", _select)

    def _row_to_conversation(self, row) -> Conversation:
        return Conversation(
            id=row["id"], book_id=row["book_id"],
            created_at=_from_timestamp(row["created_at"]),
            updated_at=_from_timestamp(row["updated_at"]),
        )

    # ---- Message CRUD ----

    def insert_message(self, message: Message, updated_at: datetime):
        """Insert a message and advance its conversation's updated_at in one commit."""
        def _insert(conn):
            conn.execute(
                "INSERT INTO messages (id, conversation_id, role, content, is_streaming, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (message.id, message.conversation_id, message.role.value, message.content,
                 message.is_streaming, _to_timestamp(message.created_at)),
            )
            conn.execute(
                "UPDATE conversations SET updated_at = ? WHERE id = ?",
                (_to_timestamp(updated_at), message.conversation_id),
            )
        self._run("insert_message", _insert)

    def update_message(self, message: Message, updated_at: datetime):
        """Write content and streaming flag together so readers never see a mix."""
        def _update(conn):
            cursor = conn.execute(
                "UPDATE messages SET content = ?, is_streaming = ? WHERE id = ?",
                (message.content, message.is_streaming, message.id),
            )
            if cursor.rowcount == 0:
                raise sqlite3.IntegrityError(f"message {message.id} does not exist")
            conn.execute(
                "UPDATE conversations SET updated_at = ? WHERE id = ?",
                (_to_timestamp(updated_at), message.conversation_id),
            )
        self._run("update_message", _update)

    def delete_message(self, message_id: str):
        def _delete(conn):
            conn.execute("DELETE FROM messages WHERE id = ?", (message_id,))
        self._run("delete_message", _delete)

    def delete_streaming_messages(self, conversation_id: str) -> int:
        """Delete messages left in the streaming state; return how many were removed."""
        def _delete(conn):
            cursor = conn.execute(
                "DELETE FROM messages WHERE conversation_id = ? AND is_streaming = TRUE",
                (conversation_id,),
            )
            return cursor.rowcount
        return self._run("delete_streaming_messages", _delete)

    def get_messages(self, conversation_id: str) -> list[Message]:
        def _select(conn):
            rows = conn.execute(
                "SELECT * FROM messages WHERE conversation_id = ? ORDER BY created_at, rowid",
                (conversation_id,),
            ).fetchall()
            return [self._row_to_message(r) for r in rows]
        return self._run("get_messages", _select)

    def count_messages(self, conversation_id: str) -> int:
        def _count(conn):
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM messages WHERE conversation_id = ?",
                (conversation_id,),
            ).fetchone()
            return row["n"]
        return self._run("count_messages", _count)

    def _row_to_message(self, row) -> Message:
        return Message(
            id=row["id"], conversation_id=row["conversation_id"],
            role=MessageRole(row["role"]), content=row["content"],
            is_streaming=bool(row["is_streaming"]),
            created_at=_from_timestamp(row["created_at"]),
        )
