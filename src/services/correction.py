"""Correction relay: stream the provider's error list, resolve it to spans."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from schemas.streaming import ErrorEvent, ResultEvent
from services.openai_client import HttpUpstream, OpenAIClient
from services.prompts import EMPTY_RESULT_MESSAGE
from services.streaming.normalizer import (
    EmptyPayload,
    coerce_raw_annotations,
    decode_annotation_payload,
    normalize_spans,
    to_ui_errors,
)
from services.streaming.relay import Finalizer


logger = logging.getLogger(__name__)


def build_correction_upstream(
    client: OpenAIClient,
    source_text: str,
    *,
    instructions: str,
    schema: Mapping[str, Any],
    max_annotations: int,
    max_output_tokens: int,
) -> HttpUpstream:
    return client.responses_stream(
        instructions.format(max_errors=max_annotations),
        source_text,
        max_output_tokens=max_output_tokens,
        schema=dict(schema),
        schema_name="spanish_corrections",
    )


def correction_finalizer(source_text: str, max_annotations: int) -> Finalizer:
    """Build the finalizer that turns accumulated output into a result event."""

    async def finalize(final_text: str) -> ResultEvent | ErrorEvent:
        payload = decode_annotation_payload(final_text)
        if isinstance(payload, EmptyPayload):
            logger.warning("Correction output unusable (%s)", payload.reason)
            return ErrorEvent(message=EMPTY_RESULT_MESSAGE)

        raw = coerce_raw_annotations(payload.items)
        resolved = normalize_spans(raw, source_text, max_annotations)
        logger.info(
            "Resolved %d of %d claimed corrections", len(resolved), len(raw)
        )
        return ResultEvent(errors=to_ui_errors(resolved))

    return finalize
