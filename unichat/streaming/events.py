"""
unichat - Normalized Stream Events

Every provider's wire format is reduced to the same small set of events.
A session yields zero or more deltas followed by exactly one terminal
event: a Completion or a fatal StreamErrorEvent.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ..core.errors import UnichatException
from ..core.models import FinishReason


class StreamEventType(str, Enum):
    """Types of streaming events."""
    CONTENT_DELTA = "content_delta"
    REASONING_DELTA = "reasoning_delta"
    REASONING_COMPLETE = "reasoning_complete"
    IMAGE_DELTA = "image_delta"
    COMPLETION = "completion"
    ERROR = "error"


# ============================================================
# Image markers
# ============================================================

IMAGE_MARKER_PREFIX = "[GENERATED_IMAGE:"
IMAGE_MARKER_SUFFIX = ":END_IMAGE]"

_IMAGE_MARKER_RE = re.compile(r"\[GENERATED_IMAGE:(.+?):END_IMAGE\]")
_PADDED_MARKER_RE = re.compile(r"\n?\[GENERATED_IMAGE:.+?:END_IMAGE\]\n?")


def format_image_marker(url: str) -> str:
    """Inline marker for a generated image, padded with newlines."""
    return f"\n{IMAGE_MARKER_PREFIX}{url}{IMAGE_MARKER_SUFFIX}\n"


def extract_image_markers(text: str) -> List[str]:
    """URLs of all generated-image markers in ``text``, in order."""
    return _IMAGE_MARKER_RE.findall(text)


def strip_image_markers(text: str) -> str:
    """Remove generated-image markers (and their padding newlines)."""
    return _PADDED_MARKER_RE.sub("", text)


# ============================================================
# Events
# ============================================================

@dataclass(frozen=True)
class ContentDelta:
    """Incremental answer text and the full answer so far."""
    text: str
    accumulated_text: str
    type: StreamEventType = field(default=StreamEventType.CONTENT_DELTA, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "text": self.text,
            "accumulated_text": self.accumulated_text,
        }


@dataclass(frozen=True)
class ReasoningDelta:
    """Incremental reasoning text and the full reasoning so far."""
    text: str
    accumulated_reasoning: str
    type: StreamEventType = field(default=StreamEventType.REASONING_DELTA, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "text": self.text,
            "accumulated_reasoning": self.accumulated_reasoning,
        }


@dataclass(frozen=True)
class ReasoningComplete:
    """Reasoning finished; emitted at most once per session."""
    type: StreamEventType = field(default=StreamEventType.REASONING_COMPLETE, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value}


@dataclass(frozen=True)
class ImageDelta:
    """
    A generated image.

    ``text`` is the inline marker that was appended to the content buffer,
    so renderers that only watch content still see the image.
    """
    url: str
    text: str
    accumulated_text: str
    type: StreamEventType = field(default=StreamEventType.IMAGE_DELTA, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "url": self.url,
            "text": self.text,
            "accumulated_text": self.accumulated_text,
        }


@dataclass(frozen=True)
class Completion:
    """Terminal event for a successful or cancelled session."""
    final_text: str
    finish_reason: Optional[FinishReason] = None
    cancelled: bool = False
    type: StreamEventType = field(default=StreamEventType.COMPLETION, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "final_text": self.final_text,
            "finish_reason": self.finish_reason.value if self.finish_reason else None,
            "cancelled": self.cancelled,
        }


@dataclass(frozen=True)
class StreamErrorEvent:
    """
    An error during the session.

    Fatal errors are terminal. Non-fatal ones (in-band provider warnings)
    leave the stream running.
    """
    error: UnichatException
    is_fatal: bool = True
    partial_content: str = ""
    type: StreamEventType = field(default=StreamEventType.ERROR, init=False)

    def to_dict(self) -> Dict[str, Any]:
        result = self.error.error.to_dict()
        result["type"] = self.type.value
        result["is_fatal"] = self.is_fatal
        if self.partial_content:
            result["partial_content"] = self.partial_content
        return result


NormalizedEvent = Union[
    ContentDelta,
    ReasoningDelta,
    ReasoningComplete,
    ImageDelta,
    Completion,
    StreamErrorEvent,
]


def is_terminal(event: NormalizedEvent) -> bool:
    """True for the event that ends a session."""
    if isinstance(event, Completion):
        return True
    return isinstance(event, StreamErrorEvent) and event.is_fatal
