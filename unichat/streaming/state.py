"""
unichat - Session State

Mutable per-session state shared by the session controller and the
provider adapter of one stream. Every mutation goes through a method that
returns the events it produced, so ordering rules live in one place:

- ReasoningComplete is emitted at most once, before the first content
  that follows reasoning, or at session end if reasoning was never closed.
- Exactly one terminal event (Completion or fatal error) is produced.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..core.errors import UnichatException
from ..core.models import FinishReason
from .events import (
    Completion,
    ContentDelta,
    ImageDelta,
    NormalizedEvent,
    ReasoningComplete,
    ReasoningDelta,
    StreamErrorEvent,
    format_image_marker,
)


class StreamPhase(str, Enum):
    """Session lifecycle."""
    IDLE = "idle"
    REASONING_OPEN = "reasoning_open"
    CONTENT_OPEN = "content_open"
    DONE = "done"
    ERRORED = "errored"


@dataclass
class SessionState:
    """Buffers and flags for one streaming session."""
    provider: str = ""
    model: str = ""

    content: str = ""
    reasoning: str = ""
    reasoning_closed: bool = False
    completion_fired: bool = False

    # Anthropic: type of the currently open content block ("thinking" / "text")
    current_block_type: Optional[str] = None

    finish_reason: Optional[FinishReason] = None
    phase: StreamPhase = StreamPhase.IDLE

    # Set by adapters when the provider signals end of stream in-band
    stream_ended: bool = False

    started_at: float = field(default_factory=time.monotonic)
    first_token_at: Optional[float] = None

    @property
    def is_finished(self) -> bool:
        return self.completion_fired

    @property
    def time_to_first_token(self) -> Optional[float]:
        if self.first_token_at is None:
            return None
        return self.first_token_at - self.started_at

    def _mark_first_token(self):
        if self.first_token_at is None:
            self.first_token_at = time.monotonic()

    # ============================================================
    # Deltas
    # ============================================================

    def append_reasoning(self, text: str) -> List[NormalizedEvent]:
        """Add reasoning text."""
        if not text or self.completion_fired:
            return []

        self._mark_first_token()
        self.reasoning += text
        if self.phase == StreamPhase.IDLE:
            self.phase = StreamPhase.REASONING_OPEN
        return [ReasoningDelta(text=text, accumulated_reasoning=self.reasoning)]

    def close_reasoning(self) -> List[NormalizedEvent]:
        """Emit ReasoningComplete if reasoning accumulated and is still open."""
        if not self.reasoning or self.reasoning_closed or self.completion_fired:
            return []
        self.reasoning_closed = True
        return [ReasoningComplete()]

    def _open_content(self) -> List[NormalizedEvent]:
        events = self.close_reasoning()
        if self.phase in (StreamPhase.IDLE, StreamPhase.REASONING_OPEN):
            self.phase = StreamPhase.CONTENT_OPEN
        return events

    def append_content(self, text: str) -> List[NormalizedEvent]:
        """Add answer text, closing reasoning first if needed."""
        if not text or self.completion_fired:
            return []

        self._mark_first_token()
        events = self._open_content()
        self.content += text
        events.append(ContentDelta(text=text, accumulated_text=self.content))
        return events

    def append_image(self, url: str) -> List[NormalizedEvent]:
        """Add a generated image as an inline marker in the content."""
        if not url or self.completion_fired:
            return []

        self._mark_first_token()
        events = self._open_content()
        marker = format_image_marker(url)
        self.content += marker
        events.append(ImageDelta(url=url, text=marker, accumulated_text=self.content))
        return events

    def set_finish_reason(self, reason: Optional[FinishReason]):
        if reason is not None:
            self.finish_reason = reason

    # ============================================================
    # Terminal transitions
    # ============================================================

    def complete(self) -> List[NormalizedEvent]:
        """Normal end of stream."""
        if self.completion_fired:
            return []

        events = self.close_reasoning()
        self.completion_fired = True
        self.phase = StreamPhase.DONE
        events.append(Completion(
            final_text=self.content,
            finish_reason=self.finish_reason,
        ))
        return events

    def cancel(self) -> List[NormalizedEvent]:
        """
        Cooperative cancellation.

        Open reasoning gets a final empty delta carrying the full reasoning
        text plus ReasoningComplete, so consumers always see a closed
        reasoning section.
        """
        if self.completion_fired:
            return []

        events: List[NormalizedEvent] = []
        if self.reasoning and not self.reasoning_closed:
            events.append(ReasoningDelta(text="", accumulated_reasoning=self.reasoning))
            events.extend(self.close_reasoning())

        self.completion_fired = True
        self.phase = StreamPhase.DONE
        events.append(Completion(
            final_text=self.content,
            finish_reason=FinishReason.CANCELLED,
            cancelled=True,
        ))
        return events

    def fail(self, error: UnichatException) -> List[NormalizedEvent]:
        """Fatal error; the error event is terminal and carries partial content."""
        if self.completion_fired:
            return []

        events = self.close_reasoning()
        self.completion_fired = True
        self.phase = StreamPhase.ERRORED
        if self.content and not error.error.partial_content:
            error.error.partial_content = self.content
        events.append(StreamErrorEvent(
            error=error,
            is_fatal=True,
            partial_content=self.content,
        ))
        return events

    def warn(self, error: UnichatException) -> List[NormalizedEvent]:
        """Non-fatal provider error; the stream keeps going."""
        if self.completion_fired:
            return []
        return [StreamErrorEvent(error=error, is_fatal=False, partial_content=self.content)]
