"""
Synapse Router - Error Definitions

Error taxonomy for the routing core and the admin surface.

Every error carries an ErrorDetails payload and an HTTP status code so the
server can render it without inspecting the concrete class:

- ValidationError         400  config patch violations (always the full batch)
- ParseError              400  malformed JSON in a body/query field
- NotFoundError           404  unknown provider/model/route
- NoHealthyProviderError  500  no candidate passed the health filter
- FallbackExhaustedError  500  every dispatch attempt failed
- PersistenceError        500  store read/write failure
- ProviderRequestError    502  a single provider dispatch failed
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorType(str, Enum):
    """Error classification."""
    INFRA = "infra_error"
    SEMANTIC = "semantic_error"


@dataclass
class ErrorDetails:
    """Full error information for API response."""
    # Core fields (always present)
    code: str
    message: str
    type: ErrorType

    # Context fields
    provider: Optional[str] = None
    model: Optional[str] = None

    # Trace fields
    request_id: str = ""

    # Recovery fields
    retryable: bool = False
    fallback_attempted: Optional[bool] = None

    # Violation list (validation) or debug payload
    details: List[Any] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Render the `{success: false, error, ...}` envelope."""
        result: Dict[str, Any] = {
            "success": False,
            "error": self.message,
            "code": self.code,
            "type": self.type.value,
        }

        if self.request_id:
            result["request_id"] = self.request_id
        if self.provider:
            result["provider"] = self.provider
        if self.model:
            result["model"] = self.model
        if self.fallback_attempted is not None:
            result["fallback_attempted"] = self.fallback_attempted
        if self.details:
            result["details"] = list(self.details)
        result.update(self.extra)

        return result


class SynapseException(Exception):
    """Base exception for all Synapse Router errors."""

    def __init__(self, error: ErrorDetails, status_code: int = 500):
        self.error = error
        self.status_code = status_code
        super().__init__(error.message)

    @property
    def code(self) -> str:
        return self.error.code


# ============================================================
# Semantic Errors (caller must fix the request)
# ============================================================

class ValidationError(SynapseException):
    """Configuration patch failed validation; carries every violation."""

    def __init__(self, errors: List[str], message: str = "Invalid configuration"):
        self.errors = list(errors)
        super().__init__(
            ErrorDetails(
                code="invalid_configuration",
                message=message,
                type=ErrorType.SEMANTIC,
                details=self.errors,
            ),
            status_code=400,
        )


class ParseError(SynapseException):
    """Malformed JSON in a hint, query or body field."""

    def __init__(self, field_name: str, reason: str = ""):
        self.field_name = field_name
        message = f"Malformed JSON in field: {field_name}"
        super().__init__(
            ErrorDetails(
                code="parse_error",
                message=message,
                type=ErrorType.SEMANTIC,
                details=[reason] if reason else [],
            ),
            status_code=400,
        )


class NotFoundError(SynapseException):
    """Unknown provider, model or route."""

    def __init__(self, message: str, provider: Optional[str] = None, model: Optional[str] = None):
        super().__init__(
            ErrorDetails(
                code="not_found",
                message=message,
                type=ErrorType.SEMANTIC,
                provider=provider,
                model=model,
            ),
            status_code=404,
        )


class MissingFieldsError(SynapseException):
    """Required request fields were not supplied."""

    def __init__(self, message: str, fields: List[str]):
        super().__init__(
            ErrorDetails(
                code="missing_fields",
                message=message,
                type=ErrorType.SEMANTIC,
                details=list(fields),
            ),
            status_code=400,
        )


# ============================================================
# Infra Errors
# ============================================================

class InfraError(SynapseException):
    """Base class for infrastructure errors."""
    pass


class ProviderRequestError(InfraError):
    """A single dispatch to one provider failed."""

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int = 0,
        model: Optional[str] = None,
    ):
        self.provider = provider
        self.upstream_status = status_code
        super().__init__(
            ErrorDetails(
                code="provider_request_failed",
                message=f"Request to {provider} failed: {message}",
                type=ErrorType.INFRA,
                provider=provider,
                model=model,
                retryable=True,
            ),
            status_code=502,
        )


class NoHealthyProviderError(InfraError):
    """No candidate provider passed the health filter."""

    def __init__(self, model: str, candidates: Optional[List[str]] = None):
        self.candidates = list(candidates or [])
        super().__init__(
            ErrorDetails(
                code="no_healthy_provider",
                message="No healthy providers available",
                type=ErrorType.INFRA,
                model=model,
                retryable=False,
                extra={"candidates": self.candidates},
            ),
            status_code=500,
        )


class FallbackExhaustedError(InfraError):
    """Every dispatch attempt failed; wraps the last underlying failure."""

    def __init__(
        self,
        model: str,
        attempts: int,
        last_error: Optional[Exception] = None,
        providers_tried: Optional[List[str]] = None,
        attempt_log: Optional[List[Dict[str, Any]]] = None,
    ):
        self.attempts = attempts
        self.last_error = last_error
        self.providers_tried = list(providers_tried or [])

        message = f"All {attempts} fallback attempts failed"
        if last_error is not None:
            message = f"{message}: {last_error}"

        super().__init__(
            ErrorDetails(
                code="fallback_exhausted",
                message=message,
                type=ErrorType.INFRA,
                model=model,
                retryable=False,
                fallback_attempted=attempts > 1,
                details=list(attempt_log or []),
                extra={"providers_tried": self.providers_tried},
            ),
            status_code=500,
        )
        self.__cause__ = last_error


class PersistenceError(InfraError):
    """Reading or writing a persisted document failed."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(
            ErrorDetails(
                code="persistence_error",
                message=message,
                type=ErrorType.INFRA,
                retryable=True,
                extra={"path": path} if path else {},
            ),
            status_code=500,
        )


def internal_error_details(message: str = "An unexpected error occurred", reason: str = "") -> ErrorDetails:
    """ErrorDetails for an unexpected exception."""
    return ErrorDetails(
        code="internal_error",
        message=message,
        type=ErrorType.INFRA,
        retryable=True,
        details=[reason] if reason else [],
    )
