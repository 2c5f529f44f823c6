from fastapi import APIRouter

from .editing import router as editing_router
from .health import router as health_router
from .writing import router as writing_router


# All routes are public; the service holds no user data.
api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(writing_router)
api_router.include_router(editing_router)
