"""Tests for event stream line parsing."""


class TestParseStreamLine:
    def test_content_delta(self):
        from tools.stream_parser import parse_stream_line
        line = 'data: {"choices":[{"delta":{"content":"Hello"}}]}'
        assert parse_stream_line(line) == "Hello"

    def test_done_sentinel_carries_no_text(self):
        from tools.stream_parser import parse_stream_line
        assert parse_stream_line("data: [DONE]") is None

    def test_lines_without_prefix_ignored(self):
        from tools.stream_parser import parse_stream_line
        assert parse_stream_line("") is None
        assert parse_stream_line(": keep-alive") is None
        assert parse_stream_line("event: message") is None

    def test_role_only_delta(self):
        from tools.stream_parser import parse_stream_line
        assert parse_stream_line('data: {"choices":[{"delta":{"role":"assistant"}}]}') is None

    def test_empty_choices(self):
        from tools.stream_parser import parse_stream_line
        assert parse_stream_line('data: {"choices":[]}') is None

    def test_malformed_json_skipped(self):
        from tools.stream_parser import parse_stream_line
        assert parse_stream_line("data: {not json") is None

    def test_deeply_nested_payload_skipped(self):
        from tools.stream_parser import parse_stream_line
        assert parse_stream_line("data: " + "[" * 200000) is None
        assert parse_stream_line("data: " + "{\"a\":" * 200000) is None

    def test_unexpected_shape_skipped(self):
        from tools.stream_parser import parse_stream_line
        assert parse_stream_line('data: {"choices":"nope"}') is None
        assert parse_stream_line("data: 42") is None

    def test_raw_control_characters_tolerated(self):
        from tools.stream_parser import parse_stream_line
        line = 'data: {"choices":[{"delta":{"content":"a\tb"}}]}'
        assert parse_stream_line(line) == "a\tb"

    def test_unicode_preserved(self):
        from tools.stream_parser import parse_stream_line
        line = 'data: {"choices":[{"delta":{"content":"caf\\u00e9 ☕"}}]}'
        assert parse_stream_line(line) == "café ☕"


class TestDoneLine:
    def test_detects_sentinel(self):
        from tools.stream_parser import is_done_line
        assert is_done_line("data: [DONE]")
        assert is_done_line("data: [DONE]  ")

    def test_other_lines(self):
        from tools.stream_parser import is_done_line
        assert not is_done_line("[DONE]")
        assert not is_done_line('data: {"choices":[]}')
