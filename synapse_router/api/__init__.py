"""
Synapse Router - API Layer

- admin: /admin/* configuration, health, usage and model tests
- proxy: /v1/messages routed chat requests
"""

from .admin import router as admin_router
from .dependencies import get_orchestrator, get_request_id
from .middleware import RequestIdMiddleware
from .models import MessagesRequest, TestModelRequest
from .proxy import router as proxy_router

__all__ = [
    "admin_router",
    "proxy_router",
    "get_orchestrator",
    "get_request_id",
    "RequestIdMiddleware",
    "MessagesRequest",
    "TestModelRequest",
]
