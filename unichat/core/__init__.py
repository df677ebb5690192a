"""
unichat Core Module

Contains the unified data models and the error taxonomy.
"""

from .models import (
    # Enums
    ProviderKind,
    Role,
    FinishReason,

    # Messages
    Message,
    ContentPart,
    TextContent,
    ImageContent,
    ImageUrl,
    Attachment,

    # Requests
    SamplingParams,
    StreamRequest,
    CustomProviderConfig,
    CancellationToken,

    # Model catalog
    ModelInfo,
    is_thinking_model,
    is_image_generation_model,
    modalities_for_model,
    reasoning_config_for_model,

    # Formatting / serialization
    format_file_size,
    format_message_with_attachments,
    message_to_dict,
    message_from_dict,
)

from .errors import (
    ErrorKind,
    ErrorDetails,
    UnichatException,

    # Validation
    ValidationError,
    MissingApiKeyError,
    MissingModelError,
    EmptyMessagesError,
    InvalidBaseUrlError,
    UnknownProviderError,

    # Upstream
    UpstreamHTTPError,
    UnauthorizedError,
    RateLimitedError,
    NotFoundError,
    ServerError,
    HTTPStatusError,

    # Transport / stream
    StreamTimeoutError,
    NetworkError,
    MalformedResponseError,
    ProviderReportedError,

    # Factories
    error_from_status,
    error_from_transport,
)

__all__ = [
    "ProviderKind",
    "Role",
    "FinishReason",
    "Message",
    "ContentPart",
    "TextContent",
    "ImageContent",
    "ImageUrl",
    "Attachment",
    "SamplingParams",
    "StreamRequest",
    "CustomProviderConfig",
    "CancellationToken",
    "ModelInfo",
    "is_thinking_model",
    "is_image_generation_model",
    "modalities_for_model",
    "reasoning_config_for_model",
    "format_file_size",
    "format_message_with_attachments",
    "message_to_dict",
    "message_from_dict",
    "ErrorKind",
    "ErrorDetails",
    "UnichatException",
    "ValidationError",
    "MissingApiKeyError",
    "MissingModelError",
    "EmptyMessagesError",
    "InvalidBaseUrlError",
    "UnknownProviderError",
    "UpstreamHTTPError",
    "UnauthorizedError",
    "RateLimitedError",
    "NotFoundError",
    "ServerError",
    "HTTPStatusError",
    "StreamTimeoutError",
    "NetworkError",
    "MalformedResponseError",
    "ProviderReportedError",
    "error_from_status",
    "error_from_transport",
]
