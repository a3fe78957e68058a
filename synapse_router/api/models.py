"""
Synapse Router - API Request Models

Pydantic models for the request bodies the server validates itself.
Admin config patches are validated by the ConfigStore, not here, so that
every violation is reported together.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class MessagesRequest(BaseModel):
    """
    Anthropic-style chat request.

    Unknown fields are kept and forwarded upstream unchanged.
    """
    model_config = ConfigDict(extra="allow")

    model: Optional[str] = None
    messages: List[Dict[str, Any]] = Field(..., min_length=1)
    system: Optional[Union[str, List[Dict[str, Any]]]] = None
    tools: Optional[List[Dict[str, Any]]] = None
    max_tokens: Optional[int] = Field(default=None, ge=1)
    thinking: Optional[Any] = None

    def to_payload(self) -> Dict[str, Any]:
        """Body forwarded to the provider (unset optional fields dropped)."""
        return self.model_dump(exclude_none=True)


class TestModelRequest(BaseModel):
    """Body of POST /admin/test-model; presence is checked by the handler."""
    # Not a pytest test class despite the name
    __test__ = False

    provider: Optional[str] = None
    model: Optional[str] = None
