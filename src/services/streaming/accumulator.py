"""Assemble the generator's final output from deltas and snapshots."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from schemas.streaming import ProgressEvent
from services.streaming.frames import RawFrame
from services.streaming.profiles import FrameKind, StreamProfile, extract_path


logger = logging.getLogger(__name__)


class DeltaAccumulator:
    """Single-owner text buffer for one relay session.

    Deltas append; a non-blank ``completed`` snapshot replaces everything
    accumulated so far (last snapshot wins). Once finalized, the buffer is
    frozen and further frames are ignored.
    """

    def __init__(self, profile: StreamProfile, progress_message: str) -> None:
        self._profile = profile
        self._progress = ProgressEvent(message=progress_message)
        self._parts: list[str] = []
        self._final: str | None = None
        self.delta_count = 0
        self.snapshot_seen = False

    @property
    def finalized(self) -> bool:
        return self._final is not None

    @property
    def text(self) -> str:
        if self._final is not None:
            return self._final
        return "".join(self._parts)

    def on_frame(self, frame: RawFrame) -> ProgressEvent | None:
        if self._final is not None:
            return None
        if frame.kind is FrameKind.DELTA:
            return self._on_delta(frame)
        if frame.kind is FrameKind.COMPLETED:
            self._on_snapshot(frame)
        return None

    def finalize(self) -> str:
        if self._final is None:
            self._final = "".join(self._parts)
            self._parts = []
        return self._final

    def _on_delta(self, frame: RawFrame) -> ProgressEvent | None:
        data = self._frame_data(frame)
        if data is None:
            return None
        delta = extract_path(data, self._profile.delta_path)
        if not isinstance(delta, str) or not delta:
            return None
        self._parts.append(delta)
        self.delta_count += 1
        return self._progress

    def _on_snapshot(self, frame: RawFrame) -> None:
        if self._profile.snapshot_path is None:
            return
        data = self._frame_data(frame)
        if data is None:
            return
        snapshot = extract_path(data, self._profile.snapshot_path)
        # TODO: confirm against the provider whether a snapshot can ever be
        # shorter than the deltas it replaces; replace-not-merge is kept as observed.
        if isinstance(snapshot, str) and snapshot.strip():
            self._parts = [snapshot]
            self.snapshot_seen = True

    def _frame_data(self, frame: RawFrame) -> Mapping[str, Any] | None:
        if frame.data is not None:
            return frame.data
        try:
            data = json.loads(frame.payload)
        except (ValueError, RecursionError):
            logger.warning("Skipping %s frame with undecodable payload", frame.kind)
            return None
        return data if isinstance(data, dict) else None
