"""Reading position utilities: progress fraction, spoiler-safe text cutoff, chapter pages."""

from typing import Optional


def compute_progress(current_page: int, total_pages: Optional[int]) -> float:
    """Return how far into the book ``current_page`` is, as a fraction in [0.0, 1.0].

    Returns 0.0 when total_pages is unknown or not positive.
    """
    if total_pages is None or total_pages <= 0:
        return 0.0
    return max(0.0, min(1.0, current_page / total_pages))


def text_up_to_position(
    full_text: Optional[str],
    current_page: int,
    total_pages: Optional[int],
) -> Optional[str]:
    """Return the prefix of ``full_text`` the reader has already read.

    The cutoff is proportional to current_page / total_pages and measured in
    characters (code points). Returns None when no safe cutoff can be
    computed: no text, no page yet, or unknown total_pages.
    """
    if full_text is None:
        return None
    if current_page <= 0 or total_pages is None or total_pages <= 0:
        return None

    # Integer floor of len * page / total; the page can exceed total_pages
    cutoff = min(len(full_text), len(full_text) * current_page // total_pages)
    return full_text[:cutoff]


def estimated_page_for_chapter(chapter_index: int, chapter_count: int, total_pages: Optional[int]) -> int:
    """Estimate the start page of a chapter assuming equal-length chapters.

    A coarse heuristic; callers must tolerate inaccurate positions.
    """
    if total_pages is None or total_pages <= 0 or chapter_count <= 0:
        return 0
    page = (chapter_index * total_pages) // chapter_count
    return min(max(0, page), total_pages)


def chapter_index(chapters: Optional[list[str]], chapter: Optional[str]) -> Optional[int]:
    """Return the index of ``chapter`` in the table of contents, or None."""
    if not chapters or chapter is None:
        return None
    try:
        return chapters.index(chapter)
    except ValueError:
        return None
