"""
Structured exceptions and error responses for Trellis.

Validation verdicts from the dependency engine are plain result objects;
these exceptions exist for the HTTP layer and the in-memory editor, where
a rejected edit has to stop the request:
- Custom exception classes
- Structured error response format
- FastAPI exception handlers
"""

from typing import Any, Dict, List, Optional, Sequence

from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.logging_config import get_logger

logger = get_logger(__name__)


# =============================================================================
# Error Response Schema
# =============================================================================

class ErrorDetail(BaseModel):
    """Detail of a single error."""
    loc: Optional[List[str]] = None
    msg: str
    type: str


class ErrorResponse(BaseModel):
    """Structured error response format."""
    error: str  # Error code (e.g., "not_found", "dependency_rejected")
    message: str
    details: Optional[List[ErrorDetail]] = None


# =============================================================================
# Custom Exceptions
# =============================================================================

class TrellisException(Exception):
    """Base exception for all Trellis errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "internal_error",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class NotFoundError(TrellisException):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            message=f"{resource} with ID {resource_id} not found",
            error_code="not_found",
            status_code=status.HTTP_404_NOT_FOUND,
        )
        self.resource = resource
        self.resource_id = resource_id


def _issue_details(issues: Sequence[Any], loc: str) -> List[Dict[str, Any]]:
    details = []
    for issue in issues:
        detail = {"loc": ["body", loc], "msg": issue.message, "type": issue.kind.value}
        if issue.path:
            detail["path"] = [str(node_id) for node_id in issue.path]
        details.append(detail)
    return details


class DependencyRejectedError(TrellisException):
    """The proposed dependency failed one or more hard checks."""

    def __init__(self, errors: Sequence[Any]):
        super().__init__(
            message="The dependency cannot be created",
            error_code="dependency_rejected",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=_issue_details(errors, "errors"),
        )
        self.errors = list(errors)


class ConfirmationRequiredError(TrellisException):
    """The dependency is allowed, but only once the user confirms the warnings."""

    def __init__(self, warnings: Sequence[Any]):
        super().__init__(
            message="The dependency needs confirmation before it is created",
            error_code="confirmation_required",
            status_code=status.HTTP_409_CONFLICT,
            details=_issue_details(warnings, "warnings"),
        )
        self.warnings = list(warnings)


# =============================================================================
# Exception Handlers
# =============================================================================

async def trellis_exception_handler(request: Request, exc: TrellisException) -> JSONResponse:
    """Handle TrellisException and return structured response."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "message": exc.message,
            "details": exc.details,
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred",
            "details": None,
        },
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(TrellisException, trellis_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
