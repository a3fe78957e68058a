"""
Synapse Router - Main API Server

FastAPI application exposing the routing engine.

Endpoints:
- POST /v1/messages     routed chat requests
- /admin/*              configuration, health, usage, model tests
- GET  /health          liveness (no provider probing)
- GET  /metrics         Prometheus metrics

The Orchestrator is built in the lifespan from environment settings (or
injected through create_app for tests). Its health watchdog starts with the
app and is cancelled at shutdown.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .api import RequestIdMiddleware, admin_router, proxy_router
from .config.settings import Settings, load_settings
from .core.errors import (
    ErrorDetails,
    ErrorType,
    SynapseException,
    internal_error_details,
)
from .observability import get_logger, metrics_endpoint, setup_logging
from .orchestrator import Orchestrator

logger = get_logger(__name__)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "")


def _error_response(request: Request, error: ErrorDetails, status_code: int) -> JSONResponse:
    request_id = _request_id(request)
    if request_id and not error.request_id:
        error.request_id = request_id

    headers = {
        "X-Error-Type": error.type.value,
        "X-Error-Code": error.code,
    }
    if request_id:
        headers["X-Request-Id"] = request_id
    if error.provider:
        headers["X-Provider"] = error.provider

    return JSONResponse(status_code=status_code, content=error.to_dict(), headers=headers)


# ============================================================
# Error handlers
# ============================================================

async def synapse_exception_handler(request: Request, exc: SynapseException):
    """Render every Synapse Router error in the standard envelope."""
    if exc.status_code >= 500:
        logger.error("Request failed", code=exc.code, error=exc.error.message, path=request.url.path)
    return _error_response(request, exc.error, exc.status_code)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are 400, not FastAPI's default 422."""
    details = [
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', '')}"
        for err in exc.errors()
    ]
    error = ErrorDetails(
        code="invalid_request",
        message="Invalid request payload",
        type=ErrorType.SEMANTIC,
        details=details,
    )
    return _error_response(request, error, 400)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    error = ErrorDetails(
        code="http_error",
        message=str(exc.detail),
        type=ErrorType.SEMANTIC if exc.status_code < 500 else ErrorType.INFRA,
        retryable=exc.status_code >= 500,
    )
    return _error_response(request, error, exc.status_code)


async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception("Unhandled error", path=request.url.path, error=str(exc))
    return _error_response(request, internal_error_details(reason=str(exc)), 500)


# ============================================================
# App factory
# ============================================================

def create_app(
    orchestrator: Optional[Orchestrator] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        orchestrator: pre-built Orchestrator (tests); built from settings otherwise
        settings: process settings; read from the environment when omitted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan - startup and shutdown."""
        instance = app.state.orchestrator
        if instance is None:
            resolved = settings or load_settings()
            setup_logging(level=resolved.log_level, json_output=resolved.log_json)
            instance = Orchestrator.from_settings(resolved)
            app.state.orchestrator = instance

        await instance.start()
        logger.info(
            "Synapse Router ready",
            version=__version__,
            config_path=str(instance.config_store.path),
        )

        yield

        await instance.stop()
        logger.info("Synapse Router stopped")

    app = FastAPI(
        title="Synapse Router",
        description="Context-aware model routing with health-checked provider fallback",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator

    app.add_middleware(RequestIdMiddleware)

    app.include_router(proxy_router)
    app.include_router(admin_router)

    app.add_exception_handler(SynapseException, synapse_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    @app.get("/health")
    async def health_check():
        """Liveness check; does not probe providers."""
        return {"status": "ok", "version": __version__}

    @app.get("/metrics")
    async def prometheus_metrics(request: Request):
        """Prometheus metrics endpoint."""
        instance = request.app.state.orchestrator
        return metrics_endpoint(instance.metrics if instance is not None else None)

    return app


app = create_app()


def main():
    """Run the server with uvicorn using HOST/PORT from the environment."""
    import uvicorn

    settings = load_settings()
    setup_logging(level=settings.log_level, json_output=settings.log_json)
    uvicorn.run(create_app(settings=settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
