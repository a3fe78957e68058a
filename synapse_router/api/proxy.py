"""
Synapse Router - Messages API

POST /v1/messages: route one chat request through the Orchestrator.

Routing hints travel in x-synapse-* headers. The response is the provider's
JSON plus success, provider, model, routingReason, latency and totalLatency.
"""

from fastapi import APIRouter, Depends, Request

from ..orchestrator import Orchestrator
from .dependencies import get_orchestrator, get_request_id
from .models import MessagesRequest

router = APIRouter(prefix="/v1", tags=["messages"])


@router.post("/messages")
async def create_message(
    body: MessagesRequest,
    request: Request,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    return await orchestrator.handle_message(
        request.headers,
        body.to_payload(),
        request_id=get_request_id(request),
    )
