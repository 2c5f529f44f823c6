"""Request and response schemas for the writing-assistant endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


AnnotationCategory = Literal["spelling", "punctuation", "grammar"]


class UiError(BaseModel):
    """One resolved correction in the shape the editor highlights."""

    id: int
    type: AnnotationCategory
    error_text: str = Field(alias="errorText")
    suggestion: str
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    message: str = "Error detectado"
    context: str = ""
    rule: str = ""
    all_suggestions: list[str] = Field(default_factory=list, alias="allSuggestions")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class CorrectionRequest(BaseModel):
    """Request payload for a streamed correction pass."""

    text: str | None = None


class TranslationRequest(BaseModel):
    """Request payload for a streamed translation.

    Unknown targets fall back to English rather than failing validation.
    """

    text: str | None = None
    target: str | None = None


class ParaphraseRequest(BaseModel):
    """Request payload for a streamed paraphrase."""

    text: str = ""
    mode: str | None = None
    tone: str | None = None
    custom_instruction: str | None = Field(default=None, alias="customInstruction")

    model_config = ConfigDict(populate_by_name=True)


class SynonymsRequest(BaseModel):
    word: str | None = None
    context: str | None = ""
    mode: str | None = "humanizar"


class SynonymsResponse(BaseModel):
    synonyms: list[str] = Field(default_factory=list)


class StylebrushRequest(BaseModel):
    effect: Literal["simplify", "professional"] = "simplify"
    selected_text: str = Field(default="", alias="selectedText")
    before: str = ""
    after: str = ""

    model_config = ConfigDict(populate_by_name=True)


class StylebrushResponse(BaseModel):
    replacement: str
