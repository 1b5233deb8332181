"""Server-sent event framing shared by the stream endpoint and the HTTP client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Iterator, List, Optional

from inksnap.utils.json import dumps, loads


@dataclass
class SSEEvent:
    event: str = "message"
    data: str = ""
    id: Optional[str] = None

    def json(self) -> Any:
        return loads(self.data) if self.data else None


def format_event(data: Any, event: Optional[str] = None, event_id: Optional[str] = None) -> str:
    lines: List[str] = []
    if event_id is not None:
        lines.append(f"id: {event_id}")
    if event:
        lines.append(f"event: {event}")
    for chunk in dumps(data).splitlines() or [""]:
        lines.append(f"data: {chunk}")
    return "\n".join(lines) + "\n\n"


def format_comment(text: str) -> str:
    return f": {text}\n\n"


class SSEParser:
    """Incremental parser fed one line at a time (without the newline)."""

    def __init__(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._event = "message"
        self._data: List[str] = []
        self._id: Optional[str] = None

    def feed(self, line: str) -> Optional[SSEEvent]:
        line = line.rstrip("\r")
        if not line:
            if not self._data:
                self._reset()
                return None
            ev = SSEEvent(event=self._event, data="\n".join(self._data), id=self._id)
            self._reset()
            return ev
        if line.startswith(":"):
            return None
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            self._event = value or "message"
        elif name == "data":
            self._data.append(value)
        elif name == "id":
            self._id = value
        return None


def parse_events(lines: Iterable[str]) -> Iterator[SSEEvent]:
    parser = SSEParser()
    for line in lines:
        ev = parser.feed(line)
        if ev is not None:
            yield ev
