"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from hunt_sync.api.locks import router as locks_router
from hunt_sync.api.progress import router as progress_router
from hunt_sync.api.uploads import router as uploads_router
from hunt_sync.app_logging import configure_logging
from hunt_sync.containers import AppContainer
from hunt_sync.errors import HuntError


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            container.lock_service.cleanup_expired()
        except Exception:
            logger.exception("Failed to purge expired team locks")
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(locks_router)
    app.include_router(progress_router)
    app.include_router(uploads_router)

    @app.exception_handler(HuntError)
    async def handle_hunt_error(request: Request, exc: HuntError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        return JSONResponse(
            status_code=400,
            content={
                "error": "Invalid request",
                "code": "VALIDATION_ERROR",
                "details": details,
            },
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
