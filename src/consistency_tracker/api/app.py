"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from consistency_tracker.api.users import router as users_router
from consistency_tracker.app_logging import configure_logging
from consistency_tracker.containers import AppContainer
from consistency_tracker.domain.errors import (
    ChallengeLocked,
    ChallengeNotReady,
    EngineError,
    GenerationFailed,
    GenerationInProgress,
    StoreUnavailable,
)

_ERROR_STATUS: dict[type[EngineError], int] = {
    GenerationFailed: status.HTTP_502_BAD_GATEWAY,
    StoreUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
    GenerationInProgress: status.HTTP_409_CONFLICT,
    ChallengeLocked: status.HTTP_409_CONFLICT,
    ChallengeNotReady: status.HTTP_404_NOT_FOUND,
}


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(users_router)

    @app.exception_handler(EngineError)
    async def engine_error(request: Request, exc: EngineError) -> JSONResponse:
        status_code = _ERROR_STATUS.get(
            type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error("Engine operation failed: %s", exc, exc_info=exc)
        else:
            logger.info("Engine operation rejected: %s", exc)
        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.args[0], "operation": exc.operation},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
