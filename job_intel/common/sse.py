"""
Server-Sent Events framing.

Server side: format_sse() renders one frame.
Client side: SSEFrameParser turns arbitrarily chunked text into SSEEvents,
and TextAccumulator collects a logical text channel (cover letter, company
summary, job snippet) before it is rendered once.

Frame format:
    event: <name>
    data: <json>
    <blank line>
"""

import json
from dataclasses import dataclass
from typing import Any, List, Optional


def format_sse(event: str, data: Any) -> str:
    """
    Render a single SSE frame.

    Args:
        event: Event name (progress, heartbeat, result, error, complete)
        data: JSON-serializable payload

    Returns:
        "event: <event>\\ndata: <json>\\n\\n"
    """
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


@dataclass
class SSEEvent:
    """One parsed frame."""
    event: str
    data: Any

    @property
    def is_terminal(self) -> bool:
        return self.event in ("result", "error")


class TextAccumulator:
    """
    Append-only text buffer with an explicit end.

    append() may be called any number of times; finalize() returns the full
    text once and seals the buffer so late chunks are rejected.
    """

    def __init__(self):
        self._parts: List[str] = []
        self._final: Optional[str] = None

    @property
    def finalized(self) -> bool:
        return self._final is not None

    def append(self, chunk: str) -> None:
        if self._final is not None:
            raise RuntimeError("Cannot append to a finalized accumulator")
        if chunk:
            self._parts.append(chunk)

    def peek(self) -> str:
        """Current text without sealing the buffer."""
        return self._final if self._final is not None else "".join(self._parts)

    def finalize(self) -> str:
        if self._final is None:
            self._final = "".join(self._parts)
            self._parts = []
        return self._final


class SSEFrameParser:
    """
    Incremental SSE parser.

    feed() accepts any slice of the stream and returns the frames it
    completed; partial frames stay buffered until their blank line arrives.
    Frames without a data line are ignored. Data that is not JSON is kept
    as the raw string.
    """

    def __init__(self):
        self._buffer = TextAccumulator()

    def feed(self, chunk: str) -> List[SSEEvent]:
        self._buffer.append(chunk.replace("\r\n", "\n"))
        text = self._buffer.finalize()

        *frames, remainder = text.split("\n\n")
        self._buffer = TextAccumulator()
        self._buffer.append(remainder)

        events = []
        for frame in frames:
            event = self._parse_frame(frame)
            if event is not None:
                events.append(event)
        return events

    def finalize(self) -> List[SSEEvent]:
        """Flush a trailing frame that was not followed by a blank line."""
        remainder = self._buffer.finalize()
        self._buffer = TextAccumulator()
        event = self._parse_frame(remainder)
        return [event] if event is not None else []

    @staticmethod
    def _parse_frame(frame: str) -> Optional[SSEEvent]:
        name = "message"
        data_lines = []
        for line in frame.split("\n"):
            if line.startswith(":"):
                continue
            field, _, value = line.partition(":")
            if value.startswith(" "):
                value = value[1:]
            if field == "event":
                name = value
            elif field == "data":
                data_lines.append(value)

        if not data_lines:
            return None

        raw = "\n".join(data_lines)
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            data = raw
        return SSEEvent(event=name, data=data)
