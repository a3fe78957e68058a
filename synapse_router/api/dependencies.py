"""
Synapse Router - API Dependencies

The Orchestrator is created in the server lifespan and stored on
app.state; routes receive it through FastAPI dependency injection.
"""

from fastapi import Request

from ..core.errors import ErrorDetails, ErrorType, InfraError
from ..orchestrator import Orchestrator


def get_orchestrator(request: Request) -> Orchestrator:
    """Dependency returning the application's Orchestrator."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise InfraError(
            ErrorDetails(
                code="service_unavailable",
                message="Router not initialized. Server may be starting up.",
                type=ErrorType.INFRA,
                retryable=True,
            ),
            status_code=503,
        )
    return orchestrator


def get_request_id(request: Request) -> str:
    """Request id assigned by RequestIdMiddleware."""
    return getattr(request.state, "request_id", "")
