"""
unichat - Core Data Models

Unified request/message models shared by every provider adapter.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence, Union


# ============================================================
# Enums
# ============================================================

class ProviderKind(str, Enum):
    """Wire-protocol families understood by the streaming core."""
    OPENAI_COMPATIBLE = "openai_compatible"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"


class Role(str, Enum):
    """Message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class FinishReason(str, Enum):
    """Why the upstream model stopped producing output."""
    STOP = "stop"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"
    TOOL_CALLS = "tool_calls"
    CANCELLED = "cancelled"
    OTHER = "other"


# ============================================================
# Content Parts (for multimodal)
# ============================================================

@dataclass
class ImageUrl:
    """Image reference, either an https URL or a data: URL."""
    url: str
    detail: Literal["low", "high", "auto"] = "auto"


@dataclass
class TextContent:
    """Text content part."""
    type: Literal["text"] = "text"
    text: str = ""


@dataclass
class ImageContent:
    """Image content part."""
    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl = field(default_factory=lambda: ImageUrl(""))


ContentPart = Union[TextContent, ImageContent]


# ============================================================
# Messages
# ============================================================

@dataclass
class Message:
    """
    Unified message format.

    Content is either plain text or an ordered list of content parts
    (text + images).
    """
    role: Role
    content: Union[str, List[ContentPart]] = ""

    @classmethod
    def system(cls, content: str) -> Message:
        """Create a system message."""
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: Union[str, List[ContentPart]]) -> Message:
        """Create a user message."""
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> Message:
        """Create an assistant message."""
        return cls(role=Role.ASSISTANT, content=content)

    def text(self) -> str:
        """Concatenated text of the message, ignoring image parts."""
        if isinstance(self.content, str):
            return self.content
        return "".join(
            part.text for part in self.content if isinstance(part, TextContent)
        )


# ============================================================
# Request Models
# ============================================================

@dataclass
class SamplingParams:
    """Optional sampling parameters. None means "use the provider default"."""
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None


@dataclass
class CustomProviderConfig:
    """
    User-supplied OpenAI-compatible endpoint.

    auth_header_value is a template; "{key}" is replaced by the API key.
    """
    base_url: str
    auth_header_name: str = "Authorization"
    auth_header_value: str = "Bearer {key}"
    name: Optional[str] = None


class CancellationToken:
    """
    Cooperative cancellation handle shared 1:1 with a stream session.

    Cancelling is idempotent and may happen from any task on the same loop.
    Tokens can be created outside a running loop; the event behind wait()
    is created on first use inside the loop that waits on it.
    """

    def __init__(self):
        self._cancelled = False
        self._event: Optional[asyncio.Event] = None

    def cancel(self) -> None:
        self._cancelled = True
        if self._event is not None:
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    async def wait(self) -> None:
        if self._cancelled:
            return
        if self._event is None:
            self._event = asyncio.Event()
        await self._event.wait()


@dataclass
class StreamRequest:
    """Everything needed to start one streaming session."""
    provider_id: str
    model: str
    messages: List[Message]
    api_key: str
    base_url: Optional[str] = None
    sampling: SamplingParams = field(default_factory=SamplingParams)
    modalities: Optional[List[str]] = None
    reasoning: Optional[Dict[str, Any]] = None
    custom_config: Optional[CustomProviderConfig] = None
    cancel_token: CancellationToken = field(default_factory=CancellationToken)


# ============================================================
# Model catalog helpers
# ============================================================

@dataclass
class ModelInfo:
    """Catalog entry as fetched from a provider's model list."""
    id: str
    name: str = ""
    supports_reasoning: bool = False
    output_modalities: List[str] = field(default_factory=lambda: ["text"])


def _find_model(model_id: str, catalog: Sequence[ModelInfo]) -> Optional[ModelInfo]:
    for model in catalog:
        if model.id == model_id:
            return model
    return None


def is_thinking_model(model_id: str, catalog: Sequence[ModelInfo] = ()) -> bool:
    """
    Whether the model streams reasoning tokens.

    Only catalog metadata counts; unknown models are assumed not to reason.
    """
    if not model_id:
        return False
    model = _find_model(model_id, catalog)
    return bool(model and model.supports_reasoning)


def is_image_generation_model(model_id: str, catalog: Sequence[ModelInfo] = ()) -> bool:
    if not model_id:
        return False
    model = _find_model(model_id, catalog)
    return bool(model and "image" in model.output_modalities)


def modalities_for_model(
    model_id: str,
    catalog: Sequence[ModelInfo] = ()
) -> Optional[List[str]]:
    """Modalities to request, or None when the model only emits text."""
    if is_image_generation_model(model_id, catalog):
        return ["image", "text"]
    return None


def reasoning_config_for_model(
    model_id: str,
    catalog: Sequence[ModelInfo] = ()
) -> Optional[Dict[str, Any]]:
    """Reasoning directive for thinking models."""
    if is_thinking_model(model_id, catalog):
        return {"effort": "high"}
    return None


# ============================================================
# Message formatting
# ============================================================

def format_file_size(size: int) -> str:
    """Human-readable file size (e.g. "1.5 MB")."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


@dataclass
class Attachment:
    """A file attached to a user message."""
    name: str
    mime_type: str
    size: int
    data: str  # data: URL for images
    is_image: bool = False


def format_message_with_attachments(
    message: Message,
    attachments: Optional[Sequence[Attachment]] = None
) -> Message:
    """
    Convert a message with attachments into multimodal form.

    Text comes first, then one part per attachment. Non-image files are
    described in a text part since no provider accepts them inline.
    """
    if not attachments:
        return message

    parts: List[ContentPart] = []
    text = message.text()
    if text.strip():
        parts.append(TextContent(text=text))

    for attachment in attachments:
        if attachment.is_image:
            parts.append(ImageContent(image_url=ImageUrl(url=attachment.data)))
        else:
            parts.append(TextContent(
                text=(
                    f"[Attached file: {attachment.name} "
                    f"({attachment.mime_type}, {format_file_size(attachment.size)})]"
                )
            ))

    return Message(role=message.role, content=parts)


# ============================================================
# Serialization
# ============================================================

def content_to_openai(content: Union[str, List[ContentPart]]) -> Union[str, List[Dict[str, Any]]]:
    """Serialize message content in the OpenAI chat format."""
    if isinstance(content, str):
        return content

    result: List[Dict[str, Any]] = []
    for part in content:
        if isinstance(part, TextContent):
            result.append({"type": "text", "text": part.text})
        elif isinstance(part, ImageContent):
            result.append({
                "type": "image_url",
                "image_url": {
                    "url": part.image_url.url,
                    "detail": part.image_url.detail
                }
            })
    return result


def message_to_dict(msg: Message) -> Dict[str, Any]:
    """Convert a message to an OpenAI-format dictionary."""
    return {"role": msg.role.value, "content": content_to_openai(msg.content)}


def message_from_dict(data: Mapping[str, Any]) -> Message:
    """Parse an OpenAI-format message dictionary."""
    content = data.get("content") or ""
    if isinstance(content, list):
        parts: List[ContentPart] = []
        for item in content:
            if item.get("type") == "image_url":
                image_url = item.get("image_url") or {}
                parts.append(ImageContent(image_url=ImageUrl(
                    url=image_url.get("url", ""),
                    detail=image_url.get("detail", "auto")
                )))
            else:
                parts.append(TextContent(text=item.get("text", "")))
        content = parts
    return Message(role=Role(data.get("role", "user")), content=content)
