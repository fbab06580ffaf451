"""Health check route."""

from pydantic import BaseModel
from fastapi import APIRouter

from ...app import IApplication


class HealthResponse(BaseModel):
    status: str
    backend: bool


def create_health_router(app: IApplication) -> APIRouter:
    router = APIRouter(prefix="/api", tags=["health"])

    @router.get("/health", response_model=HealthResponse)
    async def health() -> dict:
        backend = await app.backend_available()
        return {"status": "ok" if backend else "degraded", "backend": backend}

    return router
