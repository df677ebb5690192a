"""
unichat - Provider Adapter Base

Abstract base class for provider adapters.
Each wire-protocol family (OpenAI-compatible, Anthropic, Gemini) implements
this interface.

The adapter is responsible for:
1. Converting the unified StreamRequest into the provider's request body
2. Converting each decoded SSE frame into normalized events
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

from ..core.models import (
    FinishReason,
    ImageContent,
    Message,
    ProviderKind,
    Role,
    StreamRequest,
    TextContent,
)
from ..streaming.events import NormalizedEvent
from ..streaming.state import SessionState

if TYPE_CHECKING:
    from ..routing.router import Route


def as_dict(value: Any) -> Dict[str, Any]:
    """``value`` if it is a JSON object, else an empty dict."""
    return value if isinstance(value, dict) else {}


@dataclass
class PreparedRequest:
    """A provider request ready to be sent."""
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    json: Dict[str, Any] = field(default_factory=dict)
    params: Dict[str, str] = field(default_factory=dict)


class BaseAdapter(ABC):
    """
    Abstract base class for provider adapters.

    Adapters hold no per-session data: everything a stream accumulates
    lives in the SessionState passed to normalize(), so one adapter
    instance serves any number of concurrent sessions.
    """

    kind: ProviderKind
    name: str = ""

    # Sampling defaults applied when the request leaves a value unset
    DEFAULT_TEMPERATURE: float = 0.7

    @abstractmethod
    def build_request(self, request: StreamRequest, route: "Route") -> PreparedRequest:
        """
        Build the streaming HTTP request.

        Args:
            request: Unified stream request
            route: Resolved endpoint and auth configuration

        Returns:
            URL, headers, query parameters and JSON body
        """
        pass

    @abstractmethod
    def normalize(self, frame: Dict[str, Any], state: SessionState) -> List[NormalizedEvent]:
        """
        Convert one parsed SSE frame into normalized events.

        Mutates ``state`` (buffers, finish reason, open block) and returns
        the events produced, in order.
        """
        pass

    def is_terminal_payload(self, payload: str) -> bool:
        """Whether a raw data payload ends the frame stream."""
        return False

    def map_finish_reason(self, reason: Optional[str]) -> Optional[FinishReason]:
        """Map a provider finish reason onto FinishReason."""
        if not reason or not isinstance(reason, str):
            return None
        mapped = self.FINISH_REASONS.get(reason)
        return mapped if mapped is not None else FinishReason.OTHER

    FINISH_REASONS: Mapping[str, FinishReason] = {}

    # ============================================================
    # Helper methods for subclasses
    # ============================================================

    def _stream_headers(self, route: "Route", api_key: str) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        headers.update(route.auth_headers(api_key))
        return headers

    def _temperature(self, request: StreamRequest) -> float:
        if request.sampling.temperature is not None:
            return request.sampling.temperature
        return self.DEFAULT_TEMPERATURE

    @staticmethod
    def _split_system(messages: List[Message]) -> Tuple[Optional[str], List[Message]]:
        """
        Separate system messages from the conversation.

        Several system messages are joined with blank lines.
        """
        system_parts = []
        rest = []
        for msg in messages:
            if msg.role == Role.SYSTEM:
                text = msg.text()
                if text:
                    system_parts.append(text)
            else:
                rest.append(msg)
        system = "\n\n".join(system_parts) if system_parts else None
        return system, rest

    @staticmethod
    def _parse_data_url(url: str) -> Optional[Tuple[str, str]]:
        """Split ``data:<mime>;base64,<data>`` into (mime, data)."""
        if not url.startswith("data:") or "," not in url:
            return None
        header, data = url.split(",", 1)
        media_type = header[len("data:"):].split(";")[0] or "application/octet-stream"
        return media_type, data

    @staticmethod
    def _iter_parts(msg: Message):
        if isinstance(msg.content, str):
            yield TextContent(text=msg.content)
            return
        for part in msg.content:
            if isinstance(part, (TextContent, ImageContent)):
                yield part
