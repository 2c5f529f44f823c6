"""Liveness endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends

from core.config import Settings, get_settings
from schemas.api import ApiResponse


router = APIRouter()


@router.get("/health", response_model=ApiResponse[dict[str, str]])
def health_check(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ApiResponse[dict[str, str]]:
    """Report that the process is serving; the provider is not contacted."""
    return ApiResponse(
        data={
            "status": "healthy",
            "message": f"{settings.APP_NAME} API is running",
            "environment": settings.ENVIRONMENT,
        },
        message="Health check successful",
    )
