"""
unichat Streaming Module

- SSE frame decoding across arbitrary chunk boundaries
- Normalized stream events
- Per-session state machine

The session controller lives in ``unichat.streaming.session``; it depends
on the router and adapters, which in turn import this package.
"""

from .decoder import (
    DONE_SENTINEL,
    SSEFrameDecoder,
    parse_frame,
)
from .events import (
    StreamEventType,
    NormalizedEvent,
    ContentDelta,
    ReasoningDelta,
    ReasoningComplete,
    ImageDelta,
    Completion,
    StreamErrorEvent,
    is_terminal,
    format_image_marker,
    extract_image_markers,
    strip_image_markers,
)
from .state import SessionState, StreamPhase

__all__ = [
    # Decoder
    "DONE_SENTINEL",
    "SSEFrameDecoder",
    "parse_frame",
    # Events
    "StreamEventType",
    "NormalizedEvent",
    "ContentDelta",
    "ReasoningDelta",
    "ReasoningComplete",
    "ImageDelta",
    "Completion",
    "StreamErrorEvent",
    "is_terminal",
    "format_image_marker",
    "extract_image_markers",
    "strip_image_markers",
    # State
    "SessionState",
    "StreamPhase",
]
