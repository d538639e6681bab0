"""Book data model."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import uuid4


@dataclass
class Book:
    """Represents a book in the reader's library and their position in it."""
    id: str = field(default_factory=lambda: uuid4().hex)
    title: str = ""
    author: str = ""
    isbn: Optional[str] = None
    cover_image_url: Optional[str] = None

    # Reading position
    current_page: int = 0
    total_pages: Optional[int] = None
    current_chapter: Optional[str] = None
    reading_progress: float = 0.0  # 0.0 to 1.0, derived from current_page

    # Content used for chat context
    chapters: Optional[list[str]] = None  # table of contents, reading order
    full_text: Optional[str] = None
    summary: Optional[str] = None

    date_added: datetime = field(default_factory=datetime.now)
    date_started: Optional[datetime] = None
    date_finished: Optional[datetime] = None

    def update_progress(self, page: int) -> None:
        """Move to ``page`` and recompute reading_progress.

        Progress is left at its last value when total_pages is unknown.
        """
        from tools.position import compute_progress

        self.current_page = page
        if self.total_pages is not None and self.total_pages > 0:
            self.reading_progress = compute_progress(page, self.total_pages)
        if page > 0 and self.date_started is None:
            self.date_started = datetime.now()
        if self.reading_progress >= 1.0 and self.date_finished is None:
            self.date_finished = datetime.now()

    def text_up_to_current_position(self) -> Optional[str]:
        """Return the spoiler-safe prefix of full_text, if one can be computed."""
        from tools.position import text_up_to_position

        return text_up_to_position(self.full_text, self.current_page, self.total_pages)

    @property
    def has_chapter_list(self) -> bool:
        return bool(self.chapters)

    @property
    def progress_percentage(self) -> int:
        return int(self.reading_progress * 100)
