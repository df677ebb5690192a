"""
unichat - Unified streaming client for LLM HTTP APIs

One event stream for OpenAI-compatible, Anthropic and Gemini providers:
content, reasoning and generated-image deltas followed by exactly one
completion or error.
"""

__version__ = "1.0.0"

from .core import (
    CancellationToken,
    CustomProviderConfig,
    ErrorKind,
    FinishReason,
    Message,
    SamplingParams,
    StreamRequest,
    UnichatException,
)
from .streaming import (
    Completion,
    ContentDelta,
    ImageDelta,
    NormalizedEvent,
    ReasoningComplete,
    ReasoningDelta,
    StreamErrorEvent,
)
from .streaming.session import StreamCallbacks, StreamSession, validate_request
from .routing import Route, Router, normalize_base_url
from .client import ChatClient, ConnectionTestResult

__all__ = [
    "__version__",
    "CancellationToken",
    "CustomProviderConfig",
    "ErrorKind",
    "FinishReason",
    "Message",
    "SamplingParams",
    "StreamRequest",
    "UnichatException",
    "Completion",
    "ContentDelta",
    "ImageDelta",
    "NormalizedEvent",
    "ReasoningComplete",
    "ReasoningDelta",
    "StreamErrorEvent",
    "StreamCallbacks",
    "StreamSession",
    "validate_request",
    "Route",
    "Router",
    "normalize_base_url",
    "ChatClient",
    "ConnectionTestResult",
]
