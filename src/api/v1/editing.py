"""Inline editing helpers: context-aware synonyms and stylebrush rewrites."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from core.error_handler import StructuredLogger
from core.exceptions import UpstreamError
from schemas.corrections import (
    StylebrushRequest,
    StylebrushResponse,
    SynonymsRequest,
    SynonymsResponse,
)
from services.openai_client import OpenAIClient, get_openai_client
from services.prompts import (
    STYLEBRUSH_EFFECTS,
    STYLEBRUSH_SYSTEM,
    SYNONYMS_SYSTEM,
    SYNONYMS_USER,
)
from services.rewriting import rewrite_selection, sanitize_synonym_word, suggest_synonyms


logger = StructuredLogger(__name__)

router = APIRouter(tags=["editing"])

EMPTY_TEXT_MESSAGE = "Texto vacío"
EMPTY_REPLY_MESSAGE = "Respuesta vacía"


@router.post("/synonyms", response_model=SynonymsResponse)
async def get_synonyms(
    payload: SynonymsRequest,
    client: Annotated[OpenAIClient, Depends(get_openai_client)],
) -> SynonymsResponse:
    """Suggest up to four synonyms that fit ``context``.

    Never fails: invalid words and provider or parse failures all return an
    empty list.
    """
    safe_word = sanitize_synonym_word(payload.word)
    if safe_word is None:
        return SynonymsResponse(synonyms=[])

    try:
        synonyms = await suggest_synonyms(
            client,
            safe_word,
            payload.context or "",
            payload.mode or "humanizar",
            system_prompt=SYNONYMS_SYSTEM,
            user_template=SYNONYMS_USER,
        )
    except UpstreamError as exc:
        logger.warning(
            "Synonym lookup failed upstream", upstream_status=exc.status_code
        )
        return SynonymsResponse(synonyms=[])
    except (ValueError, RecursionError):
        logger.warning("Synonym reply was not valid JSON")
        return SynonymsResponse(synonyms=[])

    return SynonymsResponse(synonyms=synonyms)


@router.post(
    "/stylebrush",
    response_model=StylebrushResponse,
    responses={
        400: {"description": "Empty selection"},
        500: {"description": "Empty model reply"},
    },
)
async def stylebrush(
    payload: StylebrushRequest,
    client: Annotated[OpenAIClient, Depends(get_openai_client)],
) -> StylebrushResponse | JSONResponse:
    """Rewrite the selected fragment, keeping the surrounding text fixed."""
    if not payload.selected_text.strip():
        return JSONResponse(
            {"error": EMPTY_TEXT_MESSAGE}, status_code=status.HTTP_400_BAD_REQUEST
        )

    replacement = await rewrite_selection(
        client,
        payload.selected_text,
        effect_instruction=STYLEBRUSH_EFFECTS[payload.effect],
        system_template=STYLEBRUSH_SYSTEM,
        before=payload.before,
        after=payload.after,
    )
    if not replacement:
        logger.warning("Stylebrush reply was empty", effect=payload.effect)
        return JSONResponse(
            {"error": EMPTY_REPLY_MESSAGE},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    logger.info(
        "Stylebrush applied",
        effect=payload.effect,
        input_chars=len(payload.selected_text),
    )
    return StylebrushResponse(replacement=replacement)
