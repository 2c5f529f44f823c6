"""Schemas for the outbound SSE event stream.

Every relay writes a sequence of these events. The union is closed: the
``type`` discriminator is one of ``status``, ``progress``, ``result``,
``error`` or ``done``, and exactly one of the terminal types is the last
event written on a stream.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from schemas.corrections import UiError


MAX_SSE_EVENT_BYTES: int = 131_072

TERMINAL_EVENT_TYPES: frozenset[str] = frozenset({"result", "error", "done"})


class _SseEvent(BaseModel):
    """Common serialization for outbound events."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    def to_sse(self) -> str:
        """Serialize event to SSE format with size validation."""
        payload = self.model_dump_json(exclude_none=True, by_alias=True)
        if len(payload.encode("utf-8")) > MAX_SSE_EVENT_BYTES:
            raise ValueError("SSE payload exceeded MAX_SSE_EVENT_BYTES")
        return f"data: {payload}\n\n"

    @property
    def is_terminal(self) -> bool:
        return getattr(self, "type") in TERMINAL_EVENT_TYPES


class StatusEvent(_SseEvent):
    """Initial liveness signal, written before the upstream is contacted."""

    type: Literal["status"] = "status"
    message: str


class ProgressEvent(_SseEvent):
    """Written once per upstream delta. Carries a fixed message, never the delta."""

    type: Literal["progress"] = "progress"
    message: str


class ResultEvent(_SseEvent):
    """Terminal success event.

    Correction relays fill ``errors``; text relays fill ``text`` (and the
    paraphrase relay adds the fidelity fields).
    """

    type: Literal["result"] = "result"
    errors: list[UiError] | None = None
    text: str | None = None
    fidelity_score: int | None = Field(default=None, alias="fidelityScore")
    fidelity_status: Literal["ok", "lowConfidence"] | None = Field(
        default=None, alias="fidelityStatus"
    )


class ErrorEvent(_SseEvent):
    """Terminal failure event."""

    type: Literal["error"] = "error"
    message: str
    status: int | None = None


class DoneEvent(_SseEvent):
    """Terminal marker with no payload."""

    type: Literal["done"] = "done"


OutboundEvent = Annotated[
    StatusEvent | ProgressEvent | ResultEvent | ErrorEvent | DoneEvent,
    Field(discriminator="type"),
]

_outbound_adapter: TypeAdapter[OutboundEvent] = TypeAdapter(OutboundEvent)


def parse_outbound_event(data: dict[str, Any]) -> OutboundEvent:
    """Validate a decoded SSE payload back into its event class."""
    return _outbound_adapter.validate_python(data)
