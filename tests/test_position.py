"""Tests for reading position utilities and Book progress tracking."""

import pytest


class TestComputeProgress:
    def test_fraction_of_total(self):
        from tools.position import compute_progress
        assert compute_progress(36, 180) == pytest.approx(0.2)

    def test_unknown_total_is_zero(self):
        from tools.position import compute_progress
        assert compute_progress(50, None) == 0.0

    def test_non_positive_total_is_zero(self):
        from tools.position import compute_progress
        assert compute_progress(50, 0) == 0.0
        assert compute_progress(50, -10) == 0.0

    def test_clamped_to_unit_interval(self):
        from tools.position import compute_progress
        assert compute_progress(500, 180) == 1.0
        assert compute_progress(-5, 180) == 0.0

    def test_last_page_is_complete(self):
        from tools.position import compute_progress
        assert compute_progress(180, 180) == 1.0


class TestTextUpToPosition:
    def test_proportional_cutoff(self):
        from tools.position import text_up_to_position
        text = "a" * 10000
        result = text_up_to_position(text, 36, 180)
        assert len(result) == 2000

    def test_is_prefix_of_full_text(self):
        from tools.position import text_up_to_position
        text = "".join(chr(ord("a") + i % 26) for i in range(1000))
        result = text_up_to_position(text, 1, 3)
        assert text.startswith(result)
        assert len(result) == 333

    def test_absent_text(self):
        from tools.position import text_up_to_position
        assert text_up_to_position(None, 10, 100) is None

    def test_page_zero(self):
        from tools.position import text_up_to_position
        assert text_up_to_position("abc", 0, 100) is None

    def test_unknown_total(self):
        from tools.position import text_up_to_position
        assert text_up_to_position("abc", 10, None) is None
        assert text_up_to_position("abc", 10, 0) is None

    def test_page_beyond_total_returns_whole_text(self):
        from tools.position import text_up_to_position
        assert text_up_to_position("abcdef", 300, 100) == "abcdef"

    def test_counts_code_points(self):
        from tools.position import text_up_to_position
        text = "é" * 100
        assert text_up_to_position(text, 1, 2) == "é" * 50

    def test_monotonic_in_page(self):
        from tools.position import text_up_to_position
        text = "z" * 777
        lengths = [len(text_up_to_position(text, p, 50)) for p in range(1, 51)]
        assert lengths == sorted(lengths)
        assert lengths[-1] == 777


class TestEstimatedPageForChapter:
    def test_equal_division(self):
        from tools.position import estimated_page_for_chapter
        assert estimated_page_for_chapter(2, 5, 180) == 72

    def test_first_chapter_is_page_zero(self):
        from tools.position import estimated_page_for_chapter
        assert estimated_page_for_chapter(0, 5, 180) == 0

    def test_stays_within_book(self):
        from tools.position import estimated_page_for_chapter
        for idx in range(7):
            page = estimated_page_for_chapter(idx, 7, 100)
            assert 0 <= page <= 100

    def test_non_decreasing_with_chapter_index(self):
        from tools.position import estimated_page_for_chapter
        for count, total in [(5, 180), (7, 100), (12, 5), (30, 29), (1, 1), (3, 1000)]:
            pages = [estimated_page_for_chapter(i, count, total) for i in range(count)]
            assert pages == sorted(pages), (count, total, pages)

    def test_unknown_total(self):
        from tools.position import estimated_page_for_chapter
        assert estimated_page_for_chapter(2, 5, None) == 0

    def test_no_chapters(self):
        from tools.position import estimated_page_for_chapter
        assert estimated_page_for_chapter(0, 0, 100) == 0


class TestChapterIndex:
    def test_found(self):
        from tools.position import chapter_index
        assert chapter_index(["A", "B", "C"], "B") == 1

    def test_missing(self):
        from tools.position import chapter_index
        assert chapter_index(["A"], "Z") is None
        assert chapter_index(None, "A") is None
        assert chapter_index(["A"], None) is None


class TestBookProgress:
    def test_update_progress(self):
        from models.book import Book
        book = Book(title="T", total_pages=180)
        book.update_progress(36)
        assert book.current_page == 36
        assert book.reading_progress == pytest.approx(0.2)
        assert book.progress_percentage == 20

    def test_progress_unchanged_without_total(self):
        from models.book import Book
        book = Book(title="T", reading_progress=0.4)
        book.update_progress(12)
        assert book.current_page == 12
        assert book.reading_progress == 0.4

    def test_dates_stamped(self):
        from models.book import Book
        book = Book(title="T", total_pages=10)
        assert book.date_started is None
        book.update_progress(1)
        assert book.date_started is not None
        assert book.date_finished is None
        book.update_progress(10)
        assert book.date_finished is not None

    def test_text_up_to_current_position(self):
        from models.book import Book
        book = Book(title="T", total_pages=180, full_text="x" * 10000)
        book.update_progress(36)
        assert len(book.text_up_to_current_position()) == 2000
