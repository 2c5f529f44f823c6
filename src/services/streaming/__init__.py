"""Init file for the streaming reconciliation engine."""

from .accumulator import DeltaAccumulator
from .frames import FrameDecoder, RawFrame
from .normalizer import normalize_spans
from .profiles import (
    CHAT_COMPLETIONS_PROFILE,
    NDJSON_GENERATE_PROFILE,
    RESPONSES_PROFILE,
    StreamProfile,
)
from .relay import RelaySession, SseEventChannel, relay_to_sse


__all__ = [
    "CHAT_COMPLETIONS_PROFILE",
    "NDJSON_GENERATE_PROFILE",
    "RESPONSES_PROFILE",
    "DeltaAccumulator",
    "FrameDecoder",
    "RawFrame",
    "RelaySession",
    "SseEventChannel",
    "StreamProfile",
    "normalize_spans",
    "relay_to_sse",
]
