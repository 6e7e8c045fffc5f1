"""Custom exception hierarchy for the assistant.

These exceptions provide structured error handling with proper HTTP status codes
and consistent error response formats. The orchestration core raises them too,
so callers outside the HTTP layer get the same taxonomy.
"""

from typing import Any


class AssistantError(Exception):
    """Base exception for all assistant errors."""

    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        detail: str | None = None,
        **extra: Any,
    ) -> None:
        self.message = message or self.__class__.message
        self.detail = detail
        self.extra = extra
        super().__init__(self.message)


# 400 Bad Request errors
class ValidationError(AssistantError):
    """Invalid input data."""

    status_code = 400
    message = "Invalid request data"


# 401/403 errors
class AuthenticationRequiredError(AssistantError):
    """No principal was supplied with the request."""

    status_code = 401
    message = "User identity required"


class AccessDeniedError(AssistantError):
    """Principal is not allowed to use the assistant."""

    status_code = 403
    message = (
        "You do not have access to the AI Assistant. "
        "Please contact your administrator if you believe this is an error."
    )


# 404 Not Found errors
class NotFoundError(AssistantError):
    """Requested resource not found."""

    status_code = 404
    message = "Resource not found"


# 500 Internal Server errors
class ToolLoopError(AssistantError):
    """The tool-calling loop lost track of a requested tool call."""

    status_code = 500
    message = "Tool call bookkeeping failed"


# 502 Bad Gateway errors
class ExternalServiceError(AssistantError):
    """External API call failed."""

    status_code = 502
    message = "External service request failed"


class ProviderError(ExternalServiceError):
    """LLM vendor answered with a non-success status."""

    message = "AI provider returned an error"

    def __init__(self, provider: str, vendor_status: int, vendor_message: str) -> None:
        super().__init__(
            message=f"{provider} API error ({vendor_status}): {vendor_message}",
            provider=provider,
            vendor_status=vendor_status,
        )
        self.provider = provider
        self.vendor_status = vendor_status
        self.vendor_message = vendor_message


# 503 Service Unavailable errors
class ServiceUnavailableError(AssistantError):
    """External service or dependency unavailable."""

    status_code = 503
    message = "Service temporarily unavailable"


class LLMNotConfiguredError(ServiceUnavailableError):
    """LLM provider or API key not configured."""

    message = (
        "AI API key not configured. "
        "Please contact your administrator to set up the AI Assistant."
    )


class ProviderUnreachableError(ServiceUnavailableError):
    """LLM vendor could not be reached at all."""

    message = "AI provider unreachable"

    def __init__(self, provider: str, reason: str | None = None) -> None:
        super().__init__(
            message=(
                f"Network error: Unable to reach {provider} API. "
                "Please check your internet connection."
            ),
            detail=reason,
            provider=provider,
        )
        self.provider = provider
