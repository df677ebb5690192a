"""
unichat - Error Definitions

Error taxonomy for streaming sessions.

Every failure a session can hit maps onto one ErrorKind so the caller
(usually a UI layer) has a single place to branch: prompt for a key,
offer a retry, or show a generic message. Errors are never retried here.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import httpx


class ErrorKind(str, Enum):
    """Error classification."""
    # Detected before any network call
    MISSING_API_KEY = "missing_api_key"
    MISSING_MODEL = "missing_model"
    EMPTY_MESSAGES = "empty_messages"
    INVALID_BASE_URL = "invalid_base_url"
    UNKNOWN_PROVIDER = "unknown_provider"

    # Upstream HTTP status
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    SERVER_ERROR = "server_error"
    HTTP_ERROR = "http_error"

    # Transport / stream
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    MALFORMED_RESPONSE = "malformed_response"
    PROVIDER_ERROR = "provider_error"


@dataclass
class ErrorDetails:
    """Full error information."""
    kind: ErrorKind
    message: str
    provider: Optional[str] = None
    status_code: Optional[int] = None
    retry_after: Optional[int] = None
    partial_content: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
        }

        if self.provider:
            result["provider"] = self.provider
        if self.status_code is not None:
            result["status_code"] = self.status_code
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        if self.partial_content:
            result["partial_content"] = self.partial_content
        if self.details:
            result["details"] = self.details

        return {"error": result}


class UnichatException(Exception):
    """Base exception for all unichat errors."""

    def __init__(self, error: ErrorDetails):
        self.error = error
        super().__init__(error.message)

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    @property
    def message(self) -> str:
        return self.error.message

    @property
    def requires_api_key_prompt(self) -> bool:
        """True when the user has to enter or fix an API key."""
        return self.kind in {ErrorKind.MISSING_API_KEY, ErrorKind.UNAUTHORIZED}

    @property
    def retryable_by_user(self) -> bool:
        """True when sending the same message again later may succeed."""
        return self.kind in {
            ErrorKind.RATE_LIMITED,
            ErrorKind.SERVER_ERROR,
            ErrorKind.TIMEOUT,
            ErrorKind.NETWORK_ERROR,
        }


# ============================================================
# Validation errors (raised before any network call)
# ============================================================

class ValidationError(UnichatException):
    """Base class for request validation errors."""
    pass


class MissingApiKeyError(ValidationError):
    """No API key supplied."""

    def __init__(self, provider: Optional[str] = None):
        super().__init__(ErrorDetails(
            kind=ErrorKind.MISSING_API_KEY,
            message="API key is required",
            provider=provider,
        ))


class MissingModelError(ValidationError):
    """No model supplied."""

    def __init__(self, provider: Optional[str] = None):
        super().__init__(ErrorDetails(
            kind=ErrorKind.MISSING_MODEL,
            message="Model is required",
            provider=provider,
        ))


class EmptyMessagesError(ValidationError):
    """Empty message list."""

    def __init__(self, provider: Optional[str] = None):
        super().__init__(ErrorDetails(
            kind=ErrorKind.EMPTY_MESSAGES,
            message="Messages are required",
            provider=provider,
        ))


class InvalidBaseUrlError(ValidationError):
    """Base URL missing or not http(s)."""

    def __init__(self, base_url: Optional[str], provider: Optional[str] = None):
        super().__init__(ErrorDetails(
            kind=ErrorKind.INVALID_BASE_URL,
            message=f"Invalid base URL: {base_url!r}",
            provider=provider,
            details={"base_url": base_url},
        ))


class UnknownProviderError(ValidationError):
    """Provider id is neither built-in nor backed by a custom configuration."""

    def __init__(self, provider: str):
        super().__init__(ErrorDetails(
            kind=ErrorKind.UNKNOWN_PROVIDER,
            message=(
                f"Unknown provider: {provider}. "
                "Please check your provider configuration."
            ),
            provider=provider,
        ))


# ============================================================
# Upstream HTTP errors
# ============================================================

class UpstreamHTTPError(UnichatException):
    """Provider answered with a non-2xx status."""
    pass


class UnauthorizedError(UpstreamHTTPError):
    """401 / 403."""
    pass


class RateLimitedError(UpstreamHTTPError):
    """429."""
    pass


class NotFoundError(UpstreamHTTPError):
    """404 - usually a wrong model id or base URL."""
    pass


class ServerError(UpstreamHTTPError):
    """5xx."""
    pass


class HTTPStatusError(UpstreamHTTPError):
    """Any other non-2xx status."""
    pass


# ============================================================
# Transport / stream errors
# ============================================================

class StreamTimeoutError(UnichatException):
    """Transport-level timeout (connection phase)."""

    def __init__(self, provider: Optional[str] = None, message: str = ""):
        super().__init__(ErrorDetails(
            kind=ErrorKind.TIMEOUT,
            message=message or f"Request to the {_display(provider)} API timed out.",
            provider=provider,
        ))


class NetworkError(UnichatException):
    """Transport failure distinct from explicit cancellation."""

    def __init__(self, provider: Optional[str] = None, message: str = ""):
        super().__init__(ErrorDetails(
            kind=ErrorKind.NETWORK_ERROR,
            message=message or (
                f"Network error: Unable to connect to the {_display(provider)} API. "
                "Please check your internet connection."
            ),
            provider=provider,
        ))


class MalformedResponseError(UnichatException):
    """2xx response that is not a usable event stream."""

    def __init__(self, provider: Optional[str] = None, message: str = ""):
        super().__init__(ErrorDetails(
            kind=ErrorKind.MALFORMED_RESPONSE,
            message=message or (
                f"Invalid response from the {_display(provider)} API. Please try again."
            ),
            provider=provider,
        ))


class ProviderReportedError(UnichatException):
    """In-band error frame sent by the provider."""

    def __init__(
        self,
        provider: Optional[str],
        message: str,
        error_type: Optional[str] = None,
        partial_content: Optional[str] = None
    ):
        details = {"error_type": error_type} if error_type else {}
        super().__init__(ErrorDetails(
            kind=ErrorKind.PROVIDER_ERROR,
            message=message,
            provider=provider,
            partial_content=partial_content,
            details=details,
        ))


# ============================================================
# Factories
# ============================================================

_PROVIDER_DISPLAY_NAMES = {
    "openai": "OpenAI",
    "openrouter": "OpenRouter",
    "anthropic": "Anthropic",
    "gemini": "Gemini",
}


def _display(provider: Optional[str]) -> str:
    if not provider:
        return "provider"
    return _PROVIDER_DISPLAY_NAMES.get(provider, provider)


def extract_error_message(body: Any) -> Optional[str]:
    """
    Pull a human-readable message out of a provider error body.

    Handles {"error": {"message": ...}}, {"error": "..."} and
    Gemini's list-wrapped [{"error": {...}}].
    """
    if isinstance(body, list) and body:
        body = body[0]
    if not isinstance(body, Mapping):
        return None

    error = body.get("error")
    if isinstance(error, Mapping):
        message = error.get("message")
        return message if isinstance(message, str) and message else None
    if isinstance(error, str) and error:
        return error

    message = body.get("message")
    return message if isinstance(message, str) and message else None


def _parse_retry_after(headers: Mapping[str, str]) -> Optional[int]:
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        seconds = int(float(value))
    except (ValueError, OverflowError):
        return None
    return seconds if seconds >= 0 else None


def error_from_status(
    status_code: int,
    body: Any = None,
    headers: Optional[Mapping[str, str]] = None,
    provider: Optional[str] = None,
    reason: str = ""
) -> UpstreamHTTPError:
    """
    Map a non-2xx HTTP status to a typed error with a readable message.

    The provider's own message is preferred when the body carries one,
    except for 429 where a fixed wording with the wait time is used.
    """
    headers = headers or {}
    body_message = extract_error_message(body)

    if status_code == 429:
        retry_after = _parse_retry_after(headers)
        wait = f" Please wait {retry_after} seconds." if retry_after is not None else ""
        return RateLimitedError(ErrorDetails(
            kind=ErrorKind.RATE_LIMITED,
            message=f"Rate limit exceeded.{wait}",
            provider=provider,
            status_code=status_code,
            retry_after=retry_after,
        ))

    if status_code == 401:
        return UnauthorizedError(ErrorDetails(
            kind=ErrorKind.UNAUTHORIZED,
            message=body_message or "Invalid API key or unauthorized access.",
            provider=provider,
            status_code=status_code,
        ))

    if status_code == 403:
        return UnauthorizedError(ErrorDetails(
            kind=ErrorKind.UNAUTHORIZED,
            message=body_message or "Access forbidden. Check your API key permissions.",
            provider=provider,
            status_code=status_code,
        ))

    if status_code == 404:
        return NotFoundError(ErrorDetails(
            kind=ErrorKind.NOT_FOUND,
            message=body_message or "Model or endpoint not found.",
            provider=provider,
            status_code=status_code,
        ))

    if status_code >= 500:
        return ServerError(ErrorDetails(
            kind=ErrorKind.SERVER_ERROR,
            message=body_message or f"Server error ({status_code}). Please try again later.",
            provider=provider,
            status_code=status_code,
        ))

    return HTTPStatusError(ErrorDetails(
        kind=ErrorKind.HTTP_ERROR,
        message=body_message or f"HTTP {status_code}: {reason}".rstrip(": "),
        provider=provider,
        status_code=status_code,
    ))


def error_from_transport(
    error: Exception,
    provider: Optional[str] = None
) -> UnichatException:
    """Convert a transport exception raised by httpx into a unichat error."""
    if isinstance(error, UnichatException):
        return error

    if isinstance(error, httpx.TimeoutException):
        return StreamTimeoutError(provider)

    if isinstance(error, httpx.TransportError):
        return NetworkError(provider)

    message = str(error) or "An unexpected error occurred. Please try again."
    return NetworkError(provider, message=message)
