"""
StudyShare Backend - Custom Exception Hierarchy
================================================

What:  Application-specific exceptions, one per failure the API reports.
How:   Each exception carries a user-facing message, an optional context dict
       (logged, not returned) and the HTTP status code it maps to. The global
       handler registered in main.py turns any of them into
       `{"error": <message>, "request_id": <id>}` with that status.
Who:   Raised by services; caught by the global handler.

Exception Hierarchy:
    StudyShareError (base)            → 500
    ├── ValidationError               → 400 Bad Request (client can fix)
    ├── NotFoundError                 → 404 Not Found
    ├── ConfigurationError            → 500 (credentials / connection missing)
    ├── DatabaseError                 → 500 (query failed, original message kept)
    └── AIServiceError                → 500
        ├── AIRateLimitError          → 429 (try again later)
        ├── AIQuotaExceededError      → 402 (add funds)
        ├── AIGatewayError            → 500 (other upstream failure)
        └── AIResponseFormatError     → 500 (model output not an id array)
"""

from typing import Any, Dict, Optional


class StudyShareError(Exception):
    """
    Base exception for all StudyShare application errors.

    Attributes:
        message:      User-facing error description (returned in the response)
        context:      Additional debug info (logged but NOT returned to client)
        status_code:  HTTP status used by the global handler
    """

    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(StudyShareError):
    """
    Raised when client input fails a business rule.

    HTTP: 400 Bad Request. Schema-level problems (wrong JSON types) stay with
    FastAPI's own 422 handling.
    """

    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(StudyShareError):
    """Raised when a requested resource does not exist (or is not public)."""

    status_code = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConfigurationError(StudyShareError):
    """
    Raised when a required credential or connection parameter is missing.

    Request-level: the request is aborted with 500, the process keeps serving.
    """

    def __init__(
        self,
        message: str = "Missing required environment variables",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(StudyShareError):
    """
    Raised when a query against the platform database fails.

    The underlying driver message is kept in `message`; the caller sees it.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AIServiceError(StudyShareError):
    """Base for failures of the chat-completion gateway."""

    def __init__(
        self,
        message: str = "AI gateway error",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AIRateLimitError(AIServiceError):
    """
    The gateway answered 429.

    Surfaced as 429 so callers can retry later; nothing retries internally.
    """

    status_code = 429

    def __init__(
        self,
        message: str = "Rate limits exceeded, please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AIQuotaExceededError(AIServiceError):
    """The gateway answered 402: the workspace is out of credits."""

    status_code = 402

    def __init__(
        self,
        message: str = "Payment required, please add funds to your AI gateway workspace.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AIGatewayError(AIServiceError):
    """Any other non-success answer, transport failure, or an empty completion."""


class AIResponseFormatError(AIServiceError):
    """The completion text did not contain a JSON array of note ids."""

    def __init__(
        self,
        message: str = "Invalid AI response format",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
