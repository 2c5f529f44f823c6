"""Incremental frame decoder for event-stream and NDJSON upstreams."""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from services.streaming.profiles import FrameDelimiter, FrameKind, StreamProfile


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RawFrame:
    """One protocol-level unit extracted from the inbound stream."""

    kind: FrameKind
    payload: str
    event: str | None = None
    data: Mapping[str, Any] | None = None


class FrameDecoder:
    """Turn arbitrarily split chunks into complete, classified frames.

    ``feed`` may be called with any slicing of the upstream bytes; partial
    frames stay pending until their delimiter arrives. ``flush`` drains a
    trailing frame that the upstream never terminated.
    """

    def __init__(self, profile: StreamProfile) -> None:
        self._profile = profile
        self._separator = (
            "\n\n" if profile.delimiter is FrameDelimiter.EVENT_STREAM else "\n"
        )
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self._closed = False
        self.discarded = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def feed(self, chunk: bytes | str) -> list[RawFrame]:
        if self._closed:
            return []
        text = self._utf8.decode(chunk) if isinstance(chunk, bytes) else chunk
        if not text:
            return []
        # A trailing "\r" may be half of a "\r\n" split across chunks.
        buffered = self._pending + text
        hold = ""
        if buffered.endswith("\r"):
            buffered, hold = buffered[:-1], "\r"
        buffered = buffered.replace("\r\n", "\n").replace("\r", "\n")

        blocks = buffered.split(self._separator)
        self._pending = blocks.pop() + hold
        return self._decode_blocks(blocks)

    def flush(self) -> list[RawFrame]:
        if self._closed:
            return []
        tail = self._pending + self._utf8.decode(b"", final=True)
        self._pending = ""
        self._closed = True
        tail = tail.replace("\r\n", "\n").replace("\r", "\n")
        return self._decode_blocks(tail.split(self._separator))

    def _decode_blocks(self, blocks: list[str]) -> list[RawFrame]:
        frames: list[RawFrame] = []
        for block in blocks:
            frame = self._decode_block(block)
            if frame is not None:
                frames.append(frame)
        return frames

    def _decode_block(self, block: str) -> RawFrame | None:
        if self._profile.delimiter is FrameDelimiter.EVENT_STREAM:
            event, payload = _parse_event_block(block)
        else:
            event, payload = None, block.strip()
        if not payload:
            return None

        if payload == self._profile.terminator:
            return RawFrame(kind=FrameKind.TERMINATOR, payload=payload, event=event)

        try:
            data = json.loads(payload)
        except (ValueError, RecursionError) as exc:
            # ValueError covers JSONDecodeError and the int digit limit
            self.discarded += 1
            logger.warning(
                "Discarding malformed %s frame (%s)",
                self._profile.name,
                getattr(exc, "msg", type(exc).__name__),
            )
            return None
        if not isinstance(data, dict):
            self.discarded += 1
            logger.warning(
                "Discarding %s frame with non-object payload (%s)",
                self._profile.name,
                type(data).__name__,
            )
            return None

        return RawFrame(
            kind=self._profile.classify(data, event),
            payload=payload,
            event=event,
            data=data,
        )


def _parse_event_block(block: str) -> tuple[str | None, str]:
    """Return (event name, joined data) for one event-stream block."""
    event: str | None = None
    data_lines: list[str] = []
    for line in block.split("\n"):
        if not line or line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "data":
            data_lines.append(value)
        elif field == "event":
            event = value.strip() or None
    return event, "\n".join(data_lines).strip()
