"""Incremental parser for the remote ``text/event-stream`` feed."""

from __future__ import annotations

import codecs
import json
import logging
from typing import List, Optional

from core.streaming.types import RelayEvent

logger = logging.getLogger(__name__)

DEFAULT_EVENT_TYPE = "message"
_EVENT_PREFIX = "event:"
_DATA_PREFIX = "data:"


def _field_value(line: str, prefix: str) -> str:
    value = line[len(prefix):]
    return value[1:] if value.startswith(" ") else value


class SSEEventParser:
    """Turn arbitrary byte chunks into :class:`RelayEvent` objects.

    Chunk boundaries may fall anywhere, including inside a multibyte UTF-8
    character; the outcome is identical to feeding the whole body at once.
    The current event type persists across blank lines until the next
    ``event:`` line.
    """

    def __init__(self, *, run_label: str = "") -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._event_type = DEFAULT_EVENT_TYPE
        self._run_label = run_label
        self.dropped = 0

    @property
    def event_type(self) -> str:
        return self._event_type

    def feed(self, chunk: bytes) -> List[RelayEvent]:
        """Consume ``chunk`` and return every event completed by it."""

        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        events: List[RelayEvent] = []
        for line in lines:
            event = self._process_line(line)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> List[RelayEvent]:
        """Parse whatever is left once the transport reports end of stream."""

        self._buffer += self._decoder.decode(b"", final=True)
        remainder, self._buffer = self._buffer, ""
        if not remainder:
            return []
        event = self._process_line(remainder)
        return [event] if event is not None else []

    def _process_line(self, raw_line: str) -> Optional[RelayEvent]:
        line = raw_line[:-1] if raw_line.endswith("\r") else raw_line
        if not line.strip():
            return None

        if line.startswith(_EVENT_PREFIX):
            self._event_type = _field_value(line, _EVENT_PREFIX).strip() or DEFAULT_EVENT_TYPE
            return None

        if line.startswith(_DATA_PREFIX):
            payload = _field_value(line, _DATA_PREFIX)
            try:
                data = json.loads(payload)
            except json.JSONDecodeError as exc:
                self.dropped += 1
                logger.error(
                    "Dropping malformed event data (%s): %s",
                    exc,
                    payload[:200],
                    extra={"run_id": self._run_label},
                )
                return None
            return RelayEvent(type=self._event_type, data=data)

        # ``id:``, ``retry:`` and ``:`` comment lines carry nothing we relay.
        return None


__all__ = ["DEFAULT_EVENT_TYPE", "SSEEventParser"]
