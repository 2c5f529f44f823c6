"""Upstream stream profiles.

A profile names, for one provider protocol, how frames are delimited and
where the incremental and snapshot text live inside each decoded frame.
Profiles are immutable and passed into the decoder and accumulator
explicitly; nothing in the engine reads them from module state.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


PathKey = str | int


class FrameDelimiter(StrEnum):
    EVENT_STREAM = "event_stream"  # blocks separated by a blank line
    NDJSON = "ndjson"  # one JSON record per line


class FrameKind(StrEnum):
    DELTA = "delta"
    COMPLETED = "completed"
    TERMINATOR = "terminator"
    OTHER = "other"


def extract_path(data: Any, path: tuple[PathKey, ...]) -> Any:
    """Walk ``path`` through nested dicts/lists, returning None on any miss."""
    current = data
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or not -len(current) <= key < len(current):
                return None
            current = current[key]
        else:
            if not isinstance(current, Mapping):
                return None
            current = current.get(key)
        if current is None:
            return None
    return current


def _type_is(expected: str) -> Callable[[Mapping[str, Any], str | None], bool]:
    def matcher(data: Mapping[str, Any], event: str | None) -> bool:
        frame_type = data.get("type")
        if isinstance(frame_type, str):
            return frame_type == expected
        return event == expected

    return matcher


def _has_path(path: tuple[PathKey, ...]) -> Callable[[Mapping[str, Any], str | None], bool]:
    def matcher(data: Mapping[str, Any], event: str | None) -> bool:
        return extract_path(data, path) is not None

    return matcher


def _ndjson_in_progress(data: Mapping[str, Any], event: str | None) -> bool:
    return not data.get("done", False)


@dataclass(frozen=True, slots=True)
class StreamProfile:
    """How to read one provider's streaming protocol."""

    name: str
    delimiter: FrameDelimiter
    delta_path: tuple[PathKey, ...]
    is_delta: Callable[[Mapping[str, Any], str | None], bool]
    snapshot_path: tuple[PathKey, ...] | None = None
    is_snapshot: Callable[[Mapping[str, Any], str | None], bool] | None = None
    terminator: str = "[DONE]"

    def classify(self, data: Mapping[str, Any], event: str | None = None) -> FrameKind:
        """Classify a decoded JSON frame. Snapshots are checked before deltas."""
        if self.is_snapshot is not None and self.is_snapshot(data, event):
            return FrameKind.COMPLETED
        if self.is_delta(data, event):
            return FrameKind.DELTA
        return FrameKind.OTHER


RESPONSES_PROFILE = StreamProfile(
    name="responses",
    delimiter=FrameDelimiter.EVENT_STREAM,
    delta_path=("delta",),
    is_delta=_type_is("response.output_text.delta"),
    snapshot_path=("response", "output_text"),
    is_snapshot=_type_is("response.completed"),
)

CHAT_COMPLETIONS_PROFILE = StreamProfile(
    name="chat_completions",
    delimiter=FrameDelimiter.EVENT_STREAM,
    delta_path=("choices", 0, "delta", "content"),
    is_delta=_has_path(("choices", 0, "delta", "content")),
)

NDJSON_GENERATE_PROFILE = StreamProfile(
    name="ndjson_generate",
    delimiter=FrameDelimiter.NDJSON,
    delta_path=("response",),
    is_delta=_ndjson_in_progress,
)
