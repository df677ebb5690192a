"""
unichat - OpenAI-compatible Adapter

Adapter for the OpenAI chat completions wire format, shared by OpenAI,
OpenRouter and user-configured compatible endpoints.
"""

from typing import Any, Dict, List, Optional

from .base import BaseAdapter, PreparedRequest, as_dict
from ..core.errors import ProviderReportedError, extract_error_message
from ..core.models import FinishReason, ProviderKind, StreamRequest, message_to_dict
from ..observability.logging import get_logger
from ..streaming.decoder import DONE_SENTINEL
from ..streaming.events import NormalizedEvent
from ..streaming.state import SessionState


logger = get_logger(__name__)


class OpenAIAdapter(BaseAdapter):
    """
    Adapter for OpenAI-compatible streaming.

    Handles:
    - Content deltas (string or list of parts)
    - Reasoning tokens (``delta.reasoning`` or ``delta.reasoning_details``)
    - Generated images (``delta.images`` / ``message.images``)
    - The ``[DONE]`` terminator
    """

    kind = ProviderKind.OPENAI_COMPATIBLE
    name = "openai_compatible"

    DEFAULT_TEMPERATURE = 0.7

    FINISH_REASONS = {
        "stop": FinishReason.STOP,
        "length": FinishReason.LENGTH,
        "content_filter": FinishReason.CONTENT_FILTER,
        "tool_calls": FinishReason.TOOL_CALLS,
        "function_call": FinishReason.TOOL_CALLS,
    }

    def build_request(self, request: StreamRequest, route) -> PreparedRequest:
        sampling = request.sampling
        payload: Dict[str, Any] = {
            "model": request.model,
            "messages": [message_to_dict(msg) for msg in request.messages],
            "stream": True,
            "temperature": self._temperature(request),
        }

        if sampling.max_tokens is not None:
            payload["max_tokens"] = sampling.max_tokens
        if sampling.top_p is not None:
            payload["top_p"] = sampling.top_p
        if sampling.frequency_penalty is not None:
            payload["frequency_penalty"] = sampling.frequency_penalty
        if sampling.presence_penalty is not None:
            payload["presence_penalty"] = sampling.presence_penalty

        # Image-generation and thinking models
        if request.modalities:
            payload["modalities"] = list(request.modalities)
        if request.reasoning:
            payload["reasoning"] = dict(request.reasoning)

        return PreparedRequest(
            url=f"{route.base_url}/chat/completions",
            headers=self._stream_headers(route, request.api_key),
            json=payload,
            params=route.query_params(request.api_key),
        )

    def is_terminal_payload(self, payload: str) -> bool:
        return payload.strip() == DONE_SENTINEL

    def normalize(self, frame: Dict[str, Any], state: SessionState) -> List[NormalizedEvent]:
        if frame.get("error"):
            return self._in_band_error(frame, state)

        choices = frame.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return []

        choice = choices[0]
        delta = as_dict(choice.get("delta"))
        message = as_dict(choice.get("message"))
        events: List[NormalizedEvent] = []

        # Reasoning before content within one frame
        events.extend(state.append_reasoning(self._extract_reasoning(delta)))

        # Non-streamed bodies carry the whole answer in message.content
        content = delta.get("content") if "delta" in choice else message.get("content")
        if isinstance(content, str):
            events.extend(state.append_content(content))
        elif isinstance(content, list):
            for part in content:
                if not isinstance(part, dict):
                    continue
                if part.get("type") == "image_url":
                    events.extend(state.append_image(self._image_url(part)))
                elif isinstance(part.get("text"), str):
                    events.extend(state.append_content(part["text"]))

        for source in (delta, message):
            images = source.get("images")
            if isinstance(images, list):
                for image in images:
                    events.extend(state.append_image(self._image_url(image)))

        state.set_finish_reason(self.map_finish_reason(choice.get("finish_reason")))
        return events

    def _extract_reasoning(self, delta: Dict[str, Any]) -> str:
        """Reasoning text from ``delta.reasoning``, else ``reasoning_details``."""
        reasoning = delta.get("reasoning")
        if isinstance(reasoning, str) and reasoning:
            return reasoning

        details = delta.get("reasoning_details")
        if not isinstance(details, list):
            return ""
        return "".join(
            item["text"]
            for item in details
            if isinstance(item, dict)
            and item.get("type") == "reasoning.text"
            and isinstance(item.get("text"), str)
        )

    @staticmethod
    def _image_url(image: Any) -> Optional[str]:
        """URL from ``{"image_url": {"url": ...}}`` or ``{"url": ...}``."""
        if not isinstance(image, dict):
            return None
        image_url = image.get("image_url")
        if isinstance(image_url, dict) and image_url.get("url"):
            return image_url["url"]
        if isinstance(image_url, str) and image_url:
            return image_url
        url = image.get("url")
        return url if isinstance(url, str) and url else None

    def _in_band_error(self, frame: Dict[str, Any], state: SessionState) -> List[NormalizedEvent]:
        error = frame.get("error")
        error_type = error.get("type") or error.get("code") if isinstance(error, dict) else None
        message = extract_error_message(frame) or "Provider reported an error"
        logger.warning(
            "Provider reported an in-band error",
            provider=state.provider,
            error_message=message,
        )
        return state.warn(ProviderReportedError(
            state.provider,
            message,
            error_type=str(error_type) if error_type else None,
        ))
