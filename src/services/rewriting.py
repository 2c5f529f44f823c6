"""Translation, paraphrase, synonym and stylebrush request builders."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from typing import Any, Literal

import numpy as np

from core.exceptions import UpstreamError
from schemas.streaming import ErrorEvent, ResultEvent
from services.openai_client import HttpUpstream, OpenAIClient
from services.prompts import EMPTY_RESULT_MESSAGE
from services.streaming.relay import Finalizer


logger = logging.getLogger(__name__)

MAX_SYNONYM_WORD_CHARS = 40
MAX_SYNONYM_CONTEXT_CHARS = 900
MAX_SYNONYMS = 4

TRANSLATION_TEMPERATURE = 0.0
PARAPHRASE_TEMPERATURE = 0.6
SYNONYMS_TEMPERATURE = 0.2
STYLEBRUSH_TEMPERATURE = 0.2

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

FidelityStatus = Literal["ok", "lowConfidence"]


# --- Translation -------------------------------------------------------------


def resolve_translation_target(
    target: str | None, targets: Mapping[str, str], default: str
) -> str:
    """Return a supported target code, falling back to ``default``."""
    return target if target in targets else default


def build_translation_upstream(
    client: OpenAIClient,
    source_text: str,
    *,
    system_prompt: str,
    target_name: str,
) -> HttpUpstream:
    messages = [
        {"role": "system", "content": system_prompt},
        {
            "role": "user",
            "content": f"Translate to: {target_name}\n\nTEXT:\n<<<\n{source_text}\n>>>",
        },
    ]
    return client.chat_stream(messages, temperature=TRANSLATION_TEMPERATURE)


def text_finalizer() -> Finalizer:
    """Finalizer for plain-text relays: the stripped buffer or an error."""

    async def finalize(final_text: str) -> ResultEvent | ErrorEvent:
        stripped = final_text.strip()
        if not stripped:
            return ErrorEvent(message=EMPTY_RESULT_MESSAGE)
        return ResultEvent(text=stripped)

    return finalize


# --- Paraphrase --------------------------------------------------------------


def build_paraphrase_system_prompt(
    template: str,
    *,
    modes: Mapping[str, str],
    tones: Mapping[str, str],
    mode: str | None,
    tone: str | None,
    custom_mode: str,
    custom_instruction: str | None,
    custom_fallback: str,
    default_mode: str = "Standard",
) -> str:
    """Fill the paraphrase template with the mode and tone instructions.

    Unknown modes fall back to ``default_mode``; an unknown tone adds no
    instruction. The custom mode uses the caller's own instruction.
    """
    if mode == custom_mode:
        mode_instruction = (custom_instruction or "").strip() or custom_fallback
    else:
        mode_instruction = modes.get(mode or "", modes[default_mode])
    tone_instruction = tones.get(tone or "", "")
    return template.format(
        mode_instruction=mode_instruction, tone_instruction=tone_instruction
    )


def build_paraphrase_upstream(
    client: OpenAIClient, source_text: str, *, system_prompt: str
) -> HttpUpstream:
    messages = [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": source_text},
    ]
    return client.chat_stream(messages, temperature=PARAPHRASE_TEMPERATURE)


def cosine_similarity(vector_a: list[float], vector_b: list[float]) -> float:
    """Cosine similarity clamped to [0, 1]; zero vectors score 0."""
    a = np.asarray(vector_a, dtype=float)
    b = np.asarray(vector_b, dtype=float)
    norm = float(np.linalg.norm(a) * np.linalg.norm(b))
    if a.shape != b.shape or norm == 0:
        return 0.0
    similarity = float(np.dot(a, b)) / norm
    return min(1.0, max(0.0, similarity))


def fidelity_from_similarity(
    similarity: float, min_fidelity: int
) -> tuple[int, FidelityStatus]:
    score = round(similarity * 100)
    return score, "lowConfidence" if score < min_fidelity else "ok"


async def semantic_fidelity(
    client: OpenAIClient,
    original_text: str,
    paraphrased_text: str,
    min_fidelity: int,
) -> tuple[int, FidelityStatus]:
    embeddings = await client.embed([original_text, paraphrased_text])
    if len(embeddings) < 2:
        raise UpstreamError("Embeddings incompletos")
    similarity = cosine_similarity(embeddings[0], embeddings[1])
    return fidelity_from_similarity(similarity, min_fidelity)


def paraphrase_finalizer(
    client: OpenAIClient, source_text: str, min_fidelity: int
) -> Finalizer:
    """Finalizer that attaches a fidelity score to the paraphrased text.

    The paraphrase is still delivered when the embedding call fails; only
    the score is left out.
    """

    async def finalize(final_text: str) -> ResultEvent | ErrorEvent:
        paraphrased = final_text.strip()
        if not paraphrased:
            return ErrorEvent(message=EMPTY_RESULT_MESSAGE)
        try:
            score, status = await semantic_fidelity(
                client, source_text, paraphrased, min_fidelity
            )
        except UpstreamError as exc:
            logger.warning("Fidelity scoring skipped: %s", exc.message)
            return ResultEvent(text=paraphrased)
        return ResultEvent(
            text=paraphrased, fidelity_score=score, fidelity_status=status
        )

    return finalize


# --- Synonyms ----------------------------------------------------------------


def sanitize_synonym_word(word: Any) -> str | None:
    """Stripped word, or None when it is blank, too long or has no letter."""
    if not isinstance(word, str):
        return None
    cleaned = word.strip()
    if not cleaned or len(cleaned) > MAX_SYNONYM_WORD_CHARS:
        return None
    # \w minus digits and underscore leaves letters in any script
    if not re.search(r"[^\W\d_]", cleaned):
        return None
    return cleaned


def _load_synonyms_object(content: str) -> Any:
    try:
        return json.loads(content)
    except ValueError:
        match = _JSON_OBJECT_RE.search(content)
        if match is None:
            return {}
        return json.loads(match.group(0))


def parse_synonyms(content: str, word: str) -> list[str]:
    """Extract at most four distinct-from-``word`` synonyms from model output.

    Raises ``ValueError`` when neither the content nor its first
    ``{...}`` block is valid JSON.
    """
    parsed = _load_synonyms_object(content)
    items = parsed.get("synonyms") if isinstance(parsed, dict) else None
    if not isinstance(items, list):
        return []

    lowered = word.lower()
    synonyms = [
        item.strip()
        for item in items
        if isinstance(item, str) and item.strip()
    ]
    return [item for item in synonyms if item.lower() != lowered][:MAX_SYNONYMS]


async def suggest_synonyms(
    client: OpenAIClient,
    word: str,
    context: str,
    mode: str,
    *,
    system_prompt: str,
    user_template: str,
) -> list[str]:
    messages = [
        {"role": "system", "content": system_prompt},
        {
            "role": "user",
            "content": user_template.format(
                word=word, context=context[:MAX_SYNONYM_CONTEXT_CHARS], mode=mode
            ),
        },
    ]
    content = await client.chat_complete(messages, temperature=SYNONYMS_TEMPERATURE)
    return parse_synonyms(content, word)


# --- Stylebrush --------------------------------------------------------------


async def rewrite_selection(
    client: OpenAIClient,
    selected_text: str,
    *,
    effect_instruction: str,
    system_template: str,
    before: str,
    after: str,
) -> str:
    """Rewrite ``selected_text`` in context; returns the stripped reply."""
    messages = [
        {
            "role": "system",
            "content": system_template.format(before=before, after=after),
        },
        {"role": "user", "content": f"{effect_instruction}\n\n{selected_text}"},
    ]
    content = await client.chat_complete(messages, temperature=STYLEBRUSH_TEMPERATURE)
    return content.strip()
