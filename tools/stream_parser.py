"""Parsing for the chat completion event stream.

Each line of interest starts with ``data: ``. The remainder is either the
``[DONE]`` sentinel or a JSON chunk shaped like
``{"choices": [{"delta": {"content": "..."}}]}``. Lines that don't fit
that shape (keep-alives, comments, role-only deltas, metadata) carry no
text and are skipped rather than treated as errors.
"""

import json
from typing import Optional

from pydantic import BaseModel, ValidationError

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

# Lenient decoder that allows control characters (raw newlines, tabs) inside
# JSON strings; some providers emit them unescaped.
_LENIENT_DECODER = json.JSONDecoder(strict=False)


class ChunkDelta(BaseModel):
    content: Optional[str] = None


class ChunkChoice(BaseModel):
    delta: ChunkDelta = ChunkDelta()


class StreamChunk(BaseModel):
    choices: list[ChunkChoice] = []


def _try_loads(text: str):
    """Try parsing JSON, first strictly then leniently."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    return _LENIENT_DECODER.decode(text)


def line_payload(line: str) -> Optional[str]:
    """Return the text after the data prefix, or None for lines of no interest."""
    if not line.startswith(DATA_PREFIX):
        return None
    return line[len(DATA_PREFIX):].strip()


def is_done_line(line: str) -> bool:
    """True when ``line`` is the end-of-stream sentinel."""
    return line_payload(line) == DONE_SENTINEL


def parse_stream_line(line: str) -> Optional[str]:
    """Extract the text increment carried by one stream line.

    Returns None for any line that carries no text, including the
    terminal sentinel; use is_done_line() to detect stream end.
    """
    payload = line_payload(line)
    if not payload or payload == DONE_SENTINEL:
        return None
    try:
        document = _try_loads(payload)
    except (ValueError, RecursionError):
        # Undecodable or pathologically nested payloads are skipped like any other noise
        return None
    try:
        chunk = StreamChunk.model_validate(document)
    except ValidationError:
        return None
    if not chunk.choices:
        return None
    return chunk.choices[0].delta.content
