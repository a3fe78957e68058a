"""
Synapse Router - Admin API

Read/update surface over the configuration, provider health and usage.

    GET  /admin/config      current configuration
    POST /admin/config      validate + merge a configuration patch
    GET  /admin/health      probe providers, aggregate health
    GET  /admin/usage       usage statistics (projectId, agentId, timeRange)
    POST /admin/test-model  send a test prompt to one provider/model

Errors are raised as SynapseException subclasses and rendered by the
server's exception handlers.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ..core.errors import MissingFieldsError, ParseError
from ..orchestrator import Orchestrator
from ..usage.storage import UsageFilters, parse_time_range
from .dependencies import get_orchestrator
from .models import TestModelRequest

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/config")
async def get_config(orchestrator: Orchestrator = Depends(get_orchestrator)):
    return {"success": True, "config": orchestrator.get_config().to_dict()}


@router.post("/config")
async def update_config(
    request: Request,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    """
    Apply a partial configuration.

    The raw body is passed to the store so validation can report every
    violation at once (400 with `details`).
    """
    try:
        body = await request.json()
    except ValueError as e:
        raise ParseError("body", str(e)) from e

    orchestrator.update_config(body)
    return {"success": True, "message": "Configuration updated successfully"}


@router.get("/health")
async def get_health(orchestrator: Orchestrator = Depends(get_orchestrator)):
    health = await orchestrator.get_health()
    return {"success": True, "health": health}


@router.get("/usage")
async def get_usage(
    projectId: Optional[str] = Query(default=None),
    agentId: Optional[str] = Query(default=None),
    timeRange: Optional[str] = Query(default=None),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    filters = UsageFilters(
        project_id=projectId or None,
        agent_id=agentId or None,
        time_range=parse_time_range(timeRange),
    )
    usage = orchestrator.get_usage(filters)
    return {"success": True, "usage": usage.to_dict()}


@router.post("/test-model")
async def test_model(
    body: TestModelRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    missing = [name for name in ("provider", "model") if not getattr(body, name)]
    if missing:
        raise MissingFieldsError("Provider and model are required", missing)

    result = await orchestrator.test_model(body.provider, body.model)
    return {"success": True, "result": result.to_dict()}
