"""Tests for spoiler-safe prompt assembly."""

from datetime import datetime, timedelta

from models.enums import MessageRole


def _history(count):
    from models.conversation import Message
    base = datetime(2024, 1, 1, 12, 0, 0)
    roles = [MessageRole.USER, MessageRole.ASSISTANT]
    return [
        Message(role=roles[i % 2], content=f"m{i}", created_at=base + timedelta(seconds=i))
        for i in range(count)
    ]


def _book(**kwargs):
    from models.book import Book
    defaults = dict(title="Dune", author="Frank Herbert", total_pages=400)
    defaults.update(kwargs)
    book = Book(**defaults)
    return book


class TestSystemPrompt:
    def test_names_book_and_position(self):
        from tools.context_builder import ContextBuilder
        book = _book()
        book.update_progress(120)
        prompt = ContextBuilder().build_system_prompt(book)
        assert '"Dune" by Frank Herbert' in prompt
        assert "page 120 of 400" in prompt
        assert "NEVER reveal anything that happens after page 120" in prompt

    def test_unknown_total_pages_omits_total(self):
        from tools.context_builder import ContextBuilder
        book = _book(total_pages=None, current_page=15)
        prompt = ContextBuilder().build_system_prompt(book)
        assert "page 15." in prompt
        assert " of None" not in prompt

    def test_optional_fields_omitted_when_absent(self):
        from tools.context_builder import ContextBuilder
        prompt = ContextBuilder().build_system_prompt(_book())
        assert "Current chapter" not in prompt
        assert "Book Summary" not in prompt
        assert "Context from the book" not in prompt

    def test_chapter_and_summary_included(self):
        from tools.context_builder import ContextBuilder
        book = _book(current_chapter="Book One", summary="Desert planet politics.")
        prompt = ContextBuilder().build_system_prompt(book)
        assert "Current chapter: Book One" in prompt
        assert "Book Summary: Desert planet politics." in prompt

    def test_excerpt_stops_at_reading_position(self):
        from tools.context_builder import ContextBuilder
        text = "A" * 500 + "SPOILER" + "B" * 493
        book = _book(total_pages=2, full_text=text)
        book.update_progress(1)
        prompt = ContextBuilder().build_system_prompt(book)
        assert "A" * 500 in prompt
        assert "SPOILER" not in prompt

    def test_excerpt_capped(self):
        from tools.context_builder import ContextBuilder
        book = _book(total_pages=10, full_text="q" * 50000)
        book.update_progress(10)
        prompt = ContextBuilder(max_excerpt_chars=8000).build_system_prompt(book)
        assert "q" * 8000 in prompt
        assert "q" * 8001 not in prompt

    def test_default_excerpt_cap(self):
        from tools.context_builder import ContextBuilder, DEFAULT_MAX_EXCERPT_CHARS
        assert DEFAULT_MAX_EXCERPT_CHARS == 8000
        assert ContextBuilder().max_excerpt_chars == 8000


class TestHistoryWindow:
    def test_keeps_last_ten(self):
        from tools.context_builder import ContextBuilder
        kept = ContextBuilder().recent_history(_history(25))
        assert [m.content for m in kept] == [f"m{i}" for i in range(15, 25)]

    def test_short_history_kept_whole(self):
        from tools.context_builder import ContextBuilder
        assert len(ContextBuilder().recent_history(_history(3))) == 3

    def test_zero_window(self):
        from tools.context_builder import ContextBuilder
        assert ContextBuilder(max_history_messages=0).recent_history(_history(5)) == []


class TestBuild:
    def test_shape(self):
        from tools.context_builder import ContextBuilder
        payload = ContextBuilder().build(_book(), _history(25), "Who is Paul?")
        assert len(payload) == 12
        assert payload[0].role == MessageRole.SYSTEM
        assert payload[-1].role == MessageRole.USER
        assert payload[-1].content == "Who is Paul?"
        assert [p.content for p in payload[1:-1]] == [f"m{i}" for i in range(15, 25)]

    def test_empty_history(self):
        from tools.context_builder import ContextBuilder
        payload = ContextBuilder().build(_book(), [], "Hi")
        assert [p.role for p in payload] == [MessageRole.SYSTEM, MessageRole.USER]

    def test_to_payload(self):
        from tools.context_builder import PromptMessage
        msg = PromptMessage(role=MessageRole.ASSISTANT, content="ok")
        assert msg.to_payload() == {"role": "assistant", "content": "ok"}

    def test_from_settings(self, settings):
        from tools.context_builder import ContextBuilder
        builder = ContextBuilder.from_settings(settings)
        assert builder.max_excerpt_chars == settings.context_excerpt_max_chars
        assert builder.max_history_messages == settings.history_max_messages
