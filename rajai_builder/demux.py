"""Incremental demuxer for the model's interleaved status/code stream.

The model writes ``[AGENT_UPDATE]{...json...}`` lines followed by a single
``[CODE_START] ... [CODE_END]`` block. Fragments arrive with arbitrary
boundaries, so markers and JSON objects may be split anywhere.
"""
import json
import logging
from typing import Iterator, List, Optional, Sequence, Tuple, Union
from pydantic import ValidationError

from rajai_builder.crew import AGENT_UPDATE_MARKER, CODE_END_MARKER, CODE_START_MARKER
from rajai_builder.state import CodeFragment, StatusEvent

logger = logging.getLogger(__name__)

DemuxEvent = Union[StatusEvent, CodeFragment]

_COMPLETE = "complete"
_BROKEN = "broken"
_INCOMPLETE = "incomplete"


def _partial_marker_len(text: str, markers: Sequence[str]) -> int:
    """Length of the longest suffix of text that is a proper prefix of a marker."""
    longest = 0
    for marker in markers:
        for size in range(min(len(marker) - 1, len(text)), longest, -1):
            if text.endswith(marker[:size]):
                longest = size
                break
    return longest


def _scan_json_object(text: str, start: int, stop: Optional[int] = None) -> Tuple[str, int]:
    """
    Find the end of the JSON object starting at text[start] == "{".

    Scanning ends at stop (default: end of text).

    Returns:
        (_COMPLETE, index just past the closing brace),
        (_BROKEN, index of the newline that cut the object short), or
        (_INCOMPLETE, -1) when the object is still open at stop.
    """
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text) if stop is None else stop):
        char = text[index]
        if char == "\n":
            # JSON strings cannot hold a raw newline, so the line is over
            return _BROKEN, index
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return _COMPLETE, index + 1
    return _INCOMPLETE, -1


class StreamDemuxer:
    """
    Splits one text stream into StatusEvent and CodeFragment events.

    The only state is the pending text buffer and whether a code block is
    open, so one instance serves exactly one generation.
    """

    def __init__(self, request_id: Optional[str] = None):
        self.request_id = request_id
        self._buffer = ""
        self._in_code = False

    @property
    def in_code_block(self) -> bool:
        return self._in_code

    @property
    def pending(self) -> str:
        """Text received but not yet emitted."""
        return self._buffer

    def reset(self) -> None:
        self._buffer = ""
        self._in_code = False

    def feed(self, fragment: str) -> List[DemuxEvent]:
        """Append a transport fragment and return every event it completes."""
        if fragment:
            self._buffer += fragment
        return list(self._drain(final=False))

    def finish(self) -> List[DemuxEvent]:
        """Flush at end of stream and reset for reuse."""
        events = list(self._drain(final=True))
        if self._in_code:
            remainder = self._buffer.replace(CODE_END_MARKER, "")
            if remainder:
                events.append(self._code(remainder))
        elif self._buffer.strip():
            logger.debug(f"Discarding {len(self._buffer)} characters left outside the code block")
        self.reset()
        return events

    def _code(self, text: str) -> CodeFragment:
        return CodeFragment(text=text, request_id=self.request_id)

    def _drain(self, final: bool) -> Iterator[DemuxEvent]:
        while self._buffer:
            if self._in_code:
                end = self._buffer.find(CODE_END_MARKER)
                if end == -1:
                    if final:
                        return
                    # Hold back a possible split end marker, emit the rest
                    keep = _partial_marker_len(self._buffer, (CODE_END_MARKER,))
                    text = self._buffer[:len(self._buffer) - keep]
                    self._buffer = self._buffer[len(text):]
                    if text:
                        yield self._code(text)
                    return
                if end:
                    yield self._code(self._buffer[:end])
                self._buffer = self._buffer[end + len(CODE_END_MARKER):]
                self._in_code = False
                continue

            marker = self._buffer.find(AGENT_UPDATE_MARKER)
            start = self._buffer.find(CODE_START_MARKER)

            if marker != -1 and (start == -1 or marker < start):
                consumed, event = self._take_status(marker, start, final)
                if consumed is None:
                    return
                self._buffer = self._buffer[consumed:]
                if event is not None:
                    yield event
                continue

            if start != -1:
                self._buffer = self._buffer[start + len(CODE_START_MARKER):]
                self._in_code = True
                continue

            keep = 0 if final else _partial_marker_len(
                self._buffer, (AGENT_UPDATE_MARKER, CODE_START_MARKER)
            )
            self._buffer = self._buffer[len(self._buffer) - keep:]
            return

    def _take_status(
        self, marker: int, code_start: int, final: bool
    ) -> Tuple[Optional[int], Optional[StatusEvent]]:
        """
        Try to decode the status line whose marker sits at buffer[marker].

        Returns:
            (None, None) while the JSON object is still incomplete, otherwise
            the number of buffer characters consumed and the event (None when
            the line was malformed and dropped).
        """
        buffer = self._buffer
        position = marker + len(AGENT_UPDATE_MARKER)
        while position < len(buffer) and buffer[position] in " \t":
            position += 1

        if position == len(buffer):
            return (len(buffer), None) if final else (None, None)

        if buffer[position] != "{":
            logger.debug("Dropping [AGENT_UPDATE] marker not followed by a JSON object")
            return marker + len(AGENT_UPDATE_MARKER), None

        has_code_start = code_start > marker
        outcome, end = _scan_json_object(buffer, position, code_start if has_code_start else None)

        if outcome == _INCOMPLETE:
            if has_code_start:
                # The code block opened before the object closed
                logger.debug("Dropping status update left open before [CODE_START]")
                return code_start, None
            if not final:
                return None, None
            logger.debug("Dropping status update that never completed before end of stream")
            return len(buffer), None

        if outcome == _BROKEN:
            logger.debug("Dropping status update cut short by a newline")
            return end + 1, None

        raw = buffer[position:end]
        try:
            payload = json.loads(raw)
            if not isinstance(payload, dict):
                raise TypeError(f"expected a JSON object, got {type(payload).__name__}")
            event = StatusEvent.model_validate({**payload, "request_id": self.request_id})
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.debug(f"Dropping malformed status update: {e}")
            return end, None

        return end, event
