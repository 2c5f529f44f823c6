"""Envelope schemas for JSON responses that are not SSE streams.

Health checks and every error produced by the global exception handler use
these shapes; the writing endpoints keep their own lightweight bodies.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope.

    Attributes:
        success: Whether the request was successful.
        data: Endpoint payload when ``success`` is True.
        message: A human-readable message about the response.
        error: Error details when ``success`` is False.
    """

    success: bool = True
    data: T | None = None
    message: str = "Operation completed successfully"
    error: dict[str, Any] | None = None


class ErrorResponse(ApiResponse[None]):
    """Error envelope; ``error`` holds the correlation id and error type."""

    success: bool = False
    message: str = "An error occurred"
    error: dict[str, Any] | None = None
