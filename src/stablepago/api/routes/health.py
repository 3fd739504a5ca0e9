"""Health check endpoints."""

from fastapi import APIRouter, Request

from stablepago.config import get_settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "stablepago"}


@router.get("/health/detailed")
async def detailed_health(request: Request):
    """Detailed health check with configuration info."""
    settings = get_settings()
    engine = request.app.state.engine
    return {
        "status": "healthy",
        "service": "stablepago",
        "version": "0.1.0",
        "wallet_provider": engine.provider.name,
        "default_network": engine.registry.current().key,
        "config": settings.get_safe_dict(),
    }
