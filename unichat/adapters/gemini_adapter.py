"""
unichat - Gemini Adapter

Adapter for Google's Generative Language API (Gemini) SSE streaming.
"""

from typing import Any, Dict, List

from .base import BaseAdapter, PreparedRequest, as_dict
from ..core.errors import ProviderReportedError, extract_error_message
from ..core.models import (
    FinishReason,
    ImageContent,
    Message,
    ProviderKind,
    Role,
    StreamRequest,
    TextContent,
)
from ..observability.logging import get_logger
from ..streaming.events import NormalizedEvent
from ..streaming.state import SessionState


logger = get_logger(__name__)


class GeminiAdapter(BaseAdapter):
    """
    Adapter for Gemini streaming.

    Gemini has no system role: system text is folded into the first user
    message. Roles map ``assistant -> model`` and everything else to ``user``.
    """

    kind = ProviderKind.GEMINI
    name = "gemini"

    DEFAULT_TEMPERATURE = 0.7
    DEFAULT_MAX_OUTPUT_TOKENS = 8192

    FINISH_REASONS = {
        "STOP": FinishReason.STOP,
        "MAX_TOKENS": FinishReason.LENGTH,
        "SAFETY": FinishReason.CONTENT_FILTER,
        "RECITATION": FinishReason.CONTENT_FILTER,
        "BLOCKLIST": FinishReason.CONTENT_FILTER,
        "PROHIBITED_CONTENT": FinishReason.CONTENT_FILTER,
        "SPII": FinishReason.CONTENT_FILTER,
    }

    def build_request(self, request: StreamRequest, route) -> PreparedRequest:
        sampling = request.sampling

        generation_config: Dict[str, Any] = {
            "temperature": self._temperature(request),
            "maxOutputTokens": sampling.max_tokens or self.DEFAULT_MAX_OUTPUT_TOKENS,
        }
        if sampling.top_p is not None:
            generation_config["topP"] = sampling.top_p
        if sampling.top_k is not None:
            generation_config["topK"] = sampling.top_k

        payload = {
            "contents": self._convert_messages(request.messages),
            "generationConfig": generation_config,
        }

        params = route.query_params(request.api_key)
        params["alt"] = "sse"

        return PreparedRequest(
            url=f"{route.base_url}/{self._model_path(request.model)}:streamGenerateContent",
            headers=self._stream_headers(route, request.api_key),
            json=payload,
            params=params,
        )

    @staticmethod
    def _model_path(model: str) -> str:
        return model if model.startswith("models/") else f"models/{model}"

    def _convert_messages(self, messages: List[Message]) -> List[Dict[str, Any]]:
        """Convert unified messages to Gemini ``contents``."""
        system_text, conversation = self._split_system(messages)

        contents = []
        for msg in conversation:
            role = "model" if msg.role == Role.ASSISTANT else "user"
            parts = []
            for part in self._iter_parts(msg):
                if isinstance(part, TextContent):
                    parts.append({"text": part.text})
                elif isinstance(part, ImageContent):
                    parts.append(self._image_part(part.image_url.url))
            if parts:
                contents.append({"role": role, "parts": parts})

        if system_text:
            self._fold_system(contents, system_text)

        return contents

    @staticmethod
    def _fold_system(contents: List[Dict[str, Any]], system_text: str):
        """Prepend system text to the first user message's text."""
        for content in contents:
            if content["role"] != "user":
                continue
            for part in content["parts"]:
                if "text" in part:
                    part["text"] = f"{system_text}\n\n{part['text']}"
                    return
            content["parts"].insert(0, {"text": system_text})
            return
        contents.insert(0, {"role": "user", "parts": [{"text": system_text}]})

    def _image_part(self, url: str) -> Dict[str, Any]:
        parsed = self._parse_data_url(url)
        if parsed is not None:
            media_type, data = parsed
            return {"inlineData": {"mimeType": media_type, "data": data}}
        return {"fileData": {"fileUri": url, "mimeType": "image/jpeg"}}

    def normalize(self, frame: Dict[str, Any], state: SessionState) -> List[NormalizedEvent]:
        events: List[NormalizedEvent] = []

        candidates = frame.get("candidates")
        if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict):
            candidate = candidates[0]
            parts = as_dict(candidate.get("content")).get("parts")
            if isinstance(parts, list):
                for part in parts:
                    if isinstance(part, dict):
                        events.extend(self._part_events(part, state))

            finish_reason = candidate.get("finishReason")
            if finish_reason:
                if finish_reason != "STOP":
                    logger.warning(
                        "Gemini finished with non-STOP reason",
                        provider=state.provider,
                        finish_reason=finish_reason,
                    )
                state.set_finish_reason(self.map_finish_reason(finish_reason))

        if frame.get("error"):
            message = extract_error_message(frame) or "Unknown error from Gemini"
            error = frame["error"]
            logger.warning(
                "Gemini reported an in-band error",
                provider=state.provider,
                error_message=message,
            )
            events.extend(state.warn(ProviderReportedError(
                state.provider,
                message,
                error_type=error.get("status") if isinstance(error, dict) else None,
            )))

        return events

    @staticmethod
    def _part_events(part: Dict[str, Any], state: SessionState) -> List[NormalizedEvent]:
        thought = part.get("thought")
        text = part.get("text")

        # Older responses carry the thought text directly in "thought"
        if isinstance(thought, str):
            return state.append_reasoning(thought)

        if thought is True:
            return state.append_reasoning(text if isinstance(text, str) else "")

        if isinstance(text, str):
            return state.append_content(text)

        return []
