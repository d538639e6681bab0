"""Library operations: adding books, tracking reading position, removing books."""

import logging
from pathlib import Path
from typing import Optional

from config.exceptions import InvalidChapterError, InvalidPositionError, StorageError
from models.book import Book
from models.database import Database
from tools.book_catalog import BookCatalogClient, BookSearchResult
from tools.position import chapter_index, estimated_page_for_chapter

logger = logging.getLogger(__name__)


class Library:
    """The reader's books, backed by the database."""

    def __init__(self, db: Database):
        self.db = db

    def add_book(
        self,
        title: str,
        author: str = "",
        total_pages: Optional[int] = None,
        summary: Optional[str] = None,
        chapters: Optional[list[str]] = None,
        isbn: Optional[str] = None,
        cover_image_url: Optional[str] = None,
        full_text: Optional[str] = None,
    ) -> Book:
        """Create and persist a new book at page 0."""
        title = title.strip()
        if not title:
            raise ValueError("Book title is required")
        if total_pages is not None and total_pages <= 0:
            total_pages = None
        if chapters is not None:
            chapters = [c.strip() for c in chapters if c.strip()] or None
        book = Book(
            title=title,
            author=author.strip(),
            total_pages=total_pages,
            summary=summary or None,
            chapters=chapters,
            isbn=isbn,
            cover_image_url=cover_image_url,
            full_text=full_text,
        )
        self.db.create_book(book)
        logger.info("Book added: %s (%s)", book.title, book.id)
        return book

    async def add_from_catalog(self, catalog: BookCatalogClient, result: BookSearchResult) -> Book:
        """Add a search result, enriched with page count, summary and chapters when available.

        Details are fetched once here and never re-fetched during chat.
        """
        details = await catalog.get_details(result.id)
        return self.add_book(
            title=result.title,
            author=result.author,
            isbn=result.isbn or (details.isbn if details else None),
            cover_image_url=result.cover_image_url or (details.cover_image_url if details else None),
            total_pages=details.number_of_pages if details else None,
            summary=details.description if details else None,
            chapters=details.chapters if details else None,
        )

    def get_book(self, book_id: str) -> Optional[Book]:
        return self.db.get_book(book_id)

    def list_books(self) -> list[Book]:
        return self.db.list_books()

    def delete_book(self, book_id: str) -> None:
        """Delete a book; its conversation and messages go with it."""
        self.db.delete_book(book_id)

    def update_position(self, book: Book, page: int, chapter: Optional[str] = None) -> Book:
        """Move the reader to ``page`` and, optionally, ``chapter``.

        When the book has a table of contents the chapter must be one of
        its entries; free text is only accepted for books without one.

        Raises:
            InvalidPositionError: Negative page, or past the last page.
            InvalidChapterError: Chapter not in the book's chapter list.
        """
        if page < 0:
            raise InvalidPositionError(page, book.total_pages)
        if book.total_pages is not None and book.total_pages > 0 and page > book.total_pages:
            raise InvalidPositionError(page, book.total_pages)

        if chapter is not None:
            chapter = chapter.strip() or None
        if chapter is not None and book.has_chapter_list:
            if chapter_index(book.chapters, chapter) is None:
                raise InvalidChapterError(chapter)

        previous = (book.current_page, book.current_chapter, book.reading_progress,
                    book.date_started, book.date_finished)
        book.current_chapter = chapter
        book.update_progress(page)
        try:
            self.db.update_book(book)
        except StorageError:
            (book.current_page, book.current_chapter, book.reading_progress,
             book.date_started, book.date_finished) = previous
            raise
        logger.info(
            "Book %s moved to page %d (%d%%)", book.id, page, book.progress_percentage,
        )
        return book

    def select_chapter(self, book: Book, index: int) -> Book:
        """Move to the estimated start page of chapter ``index``."""
        if not book.chapters or not 0 <= index < len(book.chapters):
            raise InvalidChapterError(str(index))
        page = estimated_page_for_chapter(index, len(book.chapters), book.total_pages)
        if book.total_pages is None:
            # No page estimate possible; keep the current page
            page = book.current_page
        return self.update_position(book, page, book.chapters[index])

    def attach_text(self, book: Book, path: str | Path) -> Book:
        """Load the book body from a UTF-8 text file for spoiler-safe context."""
        text = Path(path).read_text(encoding="utf-8")
        book.full_text = text
        self.db.update_book(book)
        logger.info("Attached %d chars of text to book %s", len(text), book.id)
        return book
