"""Turn the generator's annotation claims into verified spans over the input.

The generator cannot be trusted to produce valid JSON, correct offsets, or
non-overlapping ranges. This module is the single point where its output
becomes facts about the source text:

1. ``decode_annotation_payload`` reads the finalized text into a tagged
   result (bare array, object with an ``errors`` list, or empty).
2. ``coerce_raw_annotations`` keeps only well-typed fields.
3. ``normalize_spans`` resolves each candidate to an exact ``[start, end)``
   range, first come first served in input order.
"""

from __future__ import annotations

import bisect
import json
import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, get_args

from schemas.corrections import AnnotationCategory, UiError


logger = logging.getLogger(__name__)

CATEGORIES: frozenset[str] = frozenset(get_args(AnnotationCategory))
DEFAULT_CATEGORY = "grammar"
ANNOTATION_FIELD = "errors"

_FENCE_RE = re.compile(r"```(?:json)?\n?")


# --- Tagged payload decode ---------------------------------------------------


@dataclass(frozen=True, slots=True)
class WrappedArray:
    """The generator answered with a bare JSON list of annotations."""

    items: list[Any]


@dataclass(frozen=True, slots=True)
class ObjectWithField:
    """The generator answered with ``{"errors": [...]}``."""

    items: list[Any]


@dataclass(frozen=True, slots=True)
class EmptyPayload:
    """Nothing usable: blank output, invalid JSON, or an unrecognised shape."""

    reason: str


AnnotationPayload = WrappedArray | ObjectWithField | EmptyPayload


def decode_annotation_payload(raw_text: str) -> AnnotationPayload:
    """Decode finalized generator output with a fixed fallback order."""
    cleaned = _FENCE_RE.sub("", raw_text or "").strip()
    if not cleaned:
        return EmptyPayload(reason="blank")
    try:
        parsed = json.loads(cleaned)
    except (ValueError, RecursionError) as exc:
        logger.warning(
            "Annotation payload is not valid JSON: %s",
            getattr(exc, "msg", type(exc).__name__),
        )
        return EmptyPayload(reason="invalid_json")

    if isinstance(parsed, list):
        return WrappedArray(items=parsed)
    if isinstance(parsed, dict) and isinstance(parsed.get(ANNOTATION_FIELD), list):
        return ObjectWithField(items=parsed[ANNOTATION_FIELD])
    return EmptyPayload(reason="unrecognised_shape")


# --- Annotation values -------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RawAnnotation:
    """An untrusted annotation as claimed by the generator."""

    text: str
    suggestion: str = ""
    category: str = DEFAULT_CATEGORY
    start: int | None = None
    end: int | None = None


@dataclass(frozen=True, slots=True)
class ResolvedAnnotation:
    """A verified annotation: ``0 <= start < end <= len(source)``."""

    id: int
    text: str
    suggestion: str
    category: str
    start: int
    end: int


def _as_int(value: Any) -> int | None:
    # bool is an int subclass; JSON true/false are not offsets
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def coerce_raw_annotations(items: Iterable[Any]) -> list[RawAnnotation]:
    """Keep dict items only, reading each field defensively."""
    annotations: list[RawAnnotation] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        category = item.get("type", item.get("category"))
        annotations.append(
            RawAnnotation(
                text=_as_str(item.get("errorText", item.get("text"))),
                suggestion=_as_str(item.get("suggestion")),
                category=category if category in CATEGORIES else DEFAULT_CATEGORY,
                start=_as_int(item.get("start")),
                end=_as_int(item.get("end")),
            )
        )
    return annotations


# --- Span resolution ---------------------------------------------------------


class _AcceptedRanges:
    """Accepted ``[start, end)`` ranges, pairwise disjoint and sorted by start."""

    def __init__(self) -> None:
        self._starts: list[int] = []
        self._ends: list[int] = []

    def overlaps(self, start: int, end: int) -> bool:
        # Only the nearest range on each side can overlap a disjoint set.
        i = bisect.bisect_left(self._starts, end)
        return i > 0 and self._ends[i - 1] > start

    def add(self, start: int, end: int) -> None:
        i = bisect.bisect_left(self._starts, start)
        self._starts.insert(i, start)
        self._ends.insert(i, end)


def _explicit_range(candidate: RawAnnotation, length: int) -> tuple[int, int] | None:
    start, end = candidate.start, candidate.end
    if start is None or end is None:
        return None
    if 0 <= start < end <= length:
        return start, end
    return None


def _locate(text: str, source_text: str, accepted: _AcceptedRanges) -> tuple[int, int] | None:
    """First occurrence of ``text`` that does not collide with accepted ranges."""
    idx = source_text.find(text)
    while idx != -1:
        end = idx + len(text)
        if not accepted.overlaps(idx, end):
            return idx, end
        idx = source_text.find(text, idx + 1)
    return None


def normalize_spans(
    raw_annotations: Sequence[RawAnnotation],
    source_text: str,
    max_count: int,
) -> list[ResolvedAnnotation]:
    """Resolve candidates to non-overlapping, in-bounds spans.

    Greedy over input order: explicit offsets are used when they are valid
    integers inside the text, otherwise the first non-colliding exact
    occurrence of ``text`` is used. A candidate whose range overlaps one
    already accepted is dropped. Pure: same inputs, same output.
    """
    length = len(source_text)
    accepted = _AcceptedRanges()
    resolved: list[ResolvedAnnotation] = []

    for candidate in raw_annotations[: max(max_count, 0)]:
        span = _explicit_range(candidate, length)
        if span is None:
            if not candidate.text:
                continue
            span = _locate(candidate.text, source_text, accepted)
            if span is None:
                continue
        start, end = span
        if accepted.overlaps(start, end):
            continue

        accepted.add(start, end)
        resolved.append(
            ResolvedAnnotation(
                id=len(resolved),
                text=candidate.text or source_text[start:end],
                suggestion=candidate.suggestion,
                category=candidate.category,
                start=start,
                end=end,
            )
        )

    return resolved


def to_ui_errors(resolved: Iterable[ResolvedAnnotation]) -> list[UiError]:
    """Map resolved annotations to the editor's error records."""
    return [
        UiError(
            id=annotation.id,
            type=annotation.category,
            error_text=annotation.text,
            suggestion=annotation.suggestion,
            start=annotation.start,
            end=annotation.end,
            all_suggestions=[annotation.suggestion] if annotation.suggestion else [],
        )
        for annotation in resolved
    ]
