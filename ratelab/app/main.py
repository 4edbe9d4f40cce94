from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ratelab.app.api.config import router as config_router
from ratelab.app.api.limiters import router as limiters_router
from ratelab.app.api.logs import router as logs_router
from ratelab.app.core.config import settings
from ratelab.app.core.logging import get_logger, setup_logging
from ratelab.app.exceptions import InvalidConfigError, UnknownAlgorithmError
from ratelab.app.services.registry import LimiterRegistry


def create_app(registry: Optional[LimiterRegistry] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        registry: Prebuilt limiter registry; built from settings when omitted

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    logger = get_logger(__name__)

    registry = registry or LimiterRegistry.from_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Start the leak tickers on startup, stop them and the store on shutdown."""
        registry.start()
        logger.info(
            "Application startup complete",
            extra={
                "shared_store": registry.shared_store is not None,
                "debug_mode": settings.debug,
            },
        )
        yield
        await registry.stop()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="ratelab",
        description="Side-by-side admission control: fixed window, sliding window, token bucket and leaky bucket",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.registry = registry

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        max_age=600,
    )

    # Fixed paths first so /api/{algorithm} does not shadow them
    app.include_router(config_router)
    app.include_router(logs_router)
    app.include_router(limiters_router)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Health check with shared store status."""
        health_status: dict[str, Any] = {"status": "ok", "components": {}}
        store = registry.shared_store
        if store is None:
            health_status["components"]["store"] = {"status": "ok", "type": "memory"}
        elif await store.ping():
            health_status["components"]["store"] = {"status": "ok", "type": "redis"}
        else:
            # Decisions still work through the local fallback
            health_status["status"] = "degraded"
            health_status["components"]["store"] = {
                "status": "error",
                "type": "redis",
                "fallback": "local",
            }
        return health_status

    @app.exception_handler(UnknownAlgorithmError)
    async def unknown_algorithm_handler(request: Request, exc: UnknownAlgorithmError) -> JSONResponse:
        """Handle UnknownAlgorithmError and return HTTP 404 response."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": "unknown_algorithm", "message": exc.message, "algorithm": exc.algorithm},
        )

    @app.exception_handler(InvalidConfigError)
    async def invalid_config_handler(request: Request, exc: InvalidConfigError) -> JSONResponse:
        """Handle InvalidConfigError and return HTTP 400 response."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Transport-level failure: the only place an ``error`` status is produced.

        Full details are logged server-side; the client gets a generic body
        (plus the exception message in debug mode).
        """
        logger.exception(
            f"Unhandled exception on {request.method} {request.url.path}",
            extra={"exception_type": type(exc).__name__},
        )
        content: dict[str, Any] = {"status": "error", "error": "internal_error"}
        if settings.debug:
            content["message"] = str(exc)
            content["exception_type"] = type(exc).__name__
        return JSONResponse(status_code=500, content=content)

    return app


# Create the application instance
app = create_app()
