#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .utils import parse_json_token

logger = logging.getLogger(__name__)

DONE_TAG = "[DONE]"
DONE_EVENT = "done"

_BOM = "\ufeff"


class ServerSentEventKind(Enum):
    COMMENT = "comment"
    EVENT = "event"
    DATA = "data"
    ID = "id"
    RETRY = "retry"


EVENT_MAP: dict[str, ServerSentEventKind] = {
    kind.value: kind for kind in ServerSentEventKind
}
EVENT_MAP[""] = ServerSentEventKind.COMMENT


@dataclass(frozen=True)
class ServerSentEvent:
    """A single parsed server sent event frame."""

    kind: ServerSentEventKind
    value: Any = None
    """The value of the frame's first field, decoded as JSON when possible."""

    data: Any = None
    """The frame's data payload, decoded as JSON when possible."""

    object: str = field(default="stream.event", init=False)

    def to_json_string(self) -> str:
        document: dict[str, Any] = {self.kind.value: self.value}
        if self.data is not None:
            document["data"] = self.data
        return json.dumps(document)

    def __str__(self) -> str:
        return self.to_json_string()


def try_get_event_stream_data(line: str) -> tuple[bool, str | None]:
    """Extract the payload of a single ``data:`` line.

    :returns: Whether the line carried data, and the payload. The ``[DONE]`` sentinel
        is reported as no data.
    """
    prefix = "data: "
    if not line.startswith(prefix):
        return False, None
    payload = line[len(prefix) :].strip()
    if payload == DONE_TAG:
        return False, None
    return True, payload


def _strip_value(value: str) -> str:
    return value.lstrip(_BOM + " ")


class _Frame:
    def __init__(self) -> None:
        self.kind: ServerSentEventKind | None = None
        self.value: str | None = None
        self.data_lines: list[str] = []

    @property
    def is_empty(self) -> bool:
        return self.kind is None

    def add_field(self, name: str, value: str) -> None:
        key = name.strip(_BOM + " \t").lower()
        kind = EVENT_MAP.get(key, ServerSentEventKind.COMMENT)
        if self.kind is None:
            self.kind = kind
            self.value = value
        if kind is ServerSentEventKind.DATA:
            self.data_lines.append(value)

    def is_terminal(self) -> bool:
        if self.value == DONE_TAG or self.joined_data() == DONE_TAG:
            return True
        return self.kind is ServerSentEventKind.EVENT and self.value == DONE_EVENT

    def joined_data(self) -> str | None:
        if not self.data_lines:
            return None
        return "\n".join(self.data_lines)

    def build(self) -> ServerSentEvent:
        assert self.kind is not None
        if self.kind is ServerSentEventKind.DATA:
            # The first data line doubles as the frame's value.
            data = self.joined_data() if len(self.data_lines) > 1 else None
        else:
            data = self.joined_data()
        return ServerSentEvent(
            kind=self.kind,
            value=parse_json_token(self.value),
            data=parse_json_token(data),
        )


class ServerSentEventParser:
    """Incrementally parses server sent events out of a growing text buffer.

    Each call to :py:meth:`parse` receives the full text received so far. The parser
    remembers a cursor pointing at the first unconsumed character, so frames are
    emitted exactly once. A frame is only emitted once its terminating blank line has
    arrived.
    """

    def __init__(self) -> None:
        self._cursor = 0
        self._done = False

    @property
    def cursor(self) -> int:
        """Offset of the first character that hasn't been consumed."""
        return self._cursor

    @property
    def is_done(self) -> bool:
        """Whether a termination sentinel has been seen."""
        return self._done

    def reset(self) -> None:
        self._cursor = 0
        self._done = False

    def parse(self, text: str) -> list[ServerSentEvent]:
        """Parse every complete frame after the cursor.

        :param text: All text received so far.
        :returns: The newly completed events, in arrival order.
        """
        if self._cursor < 0 or self._cursor > len(text):
            logger.warning(
                "Server sent event cursor %s is outside of buffer of length %s, "
                "resetting to 0",
                self._cursor,
                len(text),
            )
            self._cursor = 0

        events: list[ServerSentEvent] = []
        if self._done:
            return events

        position = self._cursor
        frame = _Frame()
        frame_start = position

        while position < len(text):
            newline = text.find("\n", position)
            if newline == -1:
                # The trailing line is incomplete.
                break

            line = text[position:newline].removesuffix("\r")
            position = newline + 1

            if not line:
                if not frame.is_empty:
                    if frame.is_terminal():
                        logger.debug("Received end of server sent event stream")
                        self._done = True
                        self._cursor = position
                        return events
                    events.append(frame.build())
                frame = _Frame()
                frame_start = position
                self._cursor = position
                continue

            name, separator, value = line.partition(":")
            if not separator:
                if frame.is_empty:
                    frame.add_field("", _strip_value(line))
                continue

            frame.add_field(name, _strip_value(value))

        # Anything after the last boundary is re-scanned once more text arrives.
        self._cursor = frame_start
        return events
