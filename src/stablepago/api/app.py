"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stablepago.config import get_settings
from stablepago.engine import TransactionEngine, build_engine
from stablepago.errors import ProviderError, StablePagoError, ValidationError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    app.state.engine.gate.start()
    yield
    # Shutdown
    await app.state.engine.gate.stop()


async def stablepago_error_handler(request: Request, exc: StablePagoError) -> JSONResponse:
    if isinstance(exc, ValidationError):
        status_code = 422
    elif isinstance(exc, ProviderError):
        status_code = 404 if exc.status_code == 404 else 502
    else:
        status_code = 400
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "error": type(exc).__name__, "message": exc.user_message},
    )


def create_app(engine: Optional[TransactionEngine] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="StablePago API",
        description="Stablecoin transfer, bridge and swap orchestration API",
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.engine = engine or build_engine()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StablePagoError, stablepago_error_handler)

    # Register routes
    from stablepago.api.routes import health, intents

    app.include_router(health.router, tags=["Health"])
    app.include_router(intents.router, prefix="/api/v1", tags=["Intents"])

    return app
