"""
unichat - Anthropic Adapter

Adapter for Anthropic's Messages API (Claude) streaming format.
"""

from typing import Any, Dict, List

from .base import BaseAdapter, PreparedRequest, as_dict
from ..core.errors import ProviderReportedError, extract_error_message
from ..core.models import (
    FinishReason,
    ImageContent,
    Message,
    ProviderKind,
    StreamRequest,
    TextContent,
)
from ..observability.logging import get_logger
from ..streaming.events import NormalizedEvent
from ..streaming.state import SessionState


logger = get_logger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicAdapter(BaseAdapter):
    """
    Adapter for Anthropic streaming.

    Anthropic streams typed events. Text deltas inside a ``thinking`` content
    block are reasoning; everywhere else they are answer content.
    """

    kind = ProviderKind.ANTHROPIC
    name = "anthropic"

    DEFAULT_TEMPERATURE = 1.0
    DEFAULT_MAX_TOKENS = 8192  # Anthropic requires max_tokens

    FINISH_REASONS = {
        "end_turn": FinishReason.STOP,
        "stop_sequence": FinishReason.STOP,
        "max_tokens": FinishReason.LENGTH,
        "tool_use": FinishReason.TOOL_CALLS,
        "refusal": FinishReason.CONTENT_FILTER,
    }

    # Events that carry nothing the stream consumer needs
    _STRUCTURAL_EVENTS = {"message_start", "message_stop", "ping"}

    def build_request(self, request: StreamRequest, route) -> PreparedRequest:
        sampling = request.sampling

        # Extract system message (Anthropic handles it separately)
        system_content, messages = self._split_system(request.messages)

        payload: Dict[str, Any] = {
            "model": request.model,
            "max_tokens": sampling.max_tokens or self.DEFAULT_MAX_TOKENS,
            "messages": self._convert_messages(messages),
            "stream": True,
            "temperature": self._temperature(request),
        }

        if sampling.top_p is not None:
            payload["top_p"] = sampling.top_p
        if sampling.top_k is not None:
            payload["top_k"] = sampling.top_k

        if system_content:
            payload["system"] = system_content

        headers = self._stream_headers(route, request.api_key)
        headers["anthropic-version"] = ANTHROPIC_VERSION

        return PreparedRequest(
            url=f"{route.base_url}/messages",
            headers=headers,
            json=payload,
            params=route.query_params(request.api_key),
        )

    def _convert_messages(self, messages: List[Message]) -> List[Dict[str, Any]]:
        """Convert unified messages to Anthropic format."""
        result = []

        for msg in messages:
            anthropic_msg: Dict[str, Any] = {"role": msg.role.value}

            if isinstance(msg.content, str):
                anthropic_msg["content"] = msg.content
            else:
                # Multimodal content - Anthropic uses different format
                blocks = []
                for part in self._iter_parts(msg):
                    if isinstance(part, TextContent):
                        blocks.append({"type": "text", "text": part.text})
                    elif isinstance(part, ImageContent):
                        blocks.append(self._image_block(part.image_url.url))
                anthropic_msg["content"] = blocks

            result.append(anthropic_msg)

        return result

    def _image_block(self, url: str) -> Dict[str, Any]:
        parsed = self._parse_data_url(url)
        if parsed is not None:
            media_type, data = parsed
            return {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": media_type,
                    "data": data,
                },
            }
        return {
            "type": "image",
            "source": {"type": "url", "url": url},
        }

    def normalize(self, frame: Dict[str, Any], state: SessionState) -> List[NormalizedEvent]:
        event_type = frame.get("type")

        if event_type == "content_block_start":
            block = as_dict(frame.get("content_block"))
            state.current_block_type = block.get("type")
            return []

        if event_type == "content_block_delta":
            return self._block_delta(as_dict(frame.get("delta")), state)

        if event_type == "content_block_stop":
            closing = state.current_block_type
            state.current_block_type = None
            if closing == "thinking":
                return state.close_reasoning()
            return []

        if event_type == "message_delta":
            delta = as_dict(frame.get("delta"))
            state.set_finish_reason(self.map_finish_reason(delta.get("stop_reason")))
            return []

        if event_type == "error":
            return self._fatal_error(frame, state)

        if event_type not in self._STRUCTURAL_EVENTS:
            logger.debug("Ignoring unknown Anthropic event", event_type=event_type)
        return []

    def _block_delta(self, delta: Dict[str, Any], state: SessionState) -> List[NormalizedEvent]:
        delta_type = delta.get("type")

        if delta_type == "thinking_delta":
            thinking = delta.get("thinking")
            return state.append_reasoning(thinking if isinstance(thinking, str) else "")

        if delta_type == "text_delta":
            text = delta.get("text")
            if not isinstance(text, str):
                return []
            if state.current_block_type == "thinking":
                return state.append_reasoning(text)
            return state.append_content(text)

        # signature_delta, input_json_delta
        return []

    def _fatal_error(self, frame: Dict[str, Any], state: SessionState) -> List[NormalizedEvent]:
        error = as_dict(frame.get("error"))
        message = extract_error_message(frame) or "Anthropic API reported an error"
        logger.error(
            "Anthropic stream error",
            provider=state.provider,
            error_type=error.get("type"),
            error_message=message,
        )
        state.stream_ended = True
        return state.fail(ProviderReportedError(
            state.provider,
            message,
            error_type=error.get("type"),
            partial_content=state.content or None,
        ))
