"""
unichat - API Request/Response Models

Pydantic models for the relay server. These are the external-facing
models that HTTP clients interact with; they convert into the internal
dataclasses in unichat.core.models.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..core.models import (
    CustomProviderConfig,
    ImageContent,
    ImageUrl as InternalImageUrl,
    Message,
    Role,
    SamplingParams,
    StreamRequest,
    TextContent,
)


# ============================================================
# Enums
# ============================================================

class RoleEnum(str, Enum):
    """Message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


# ============================================================
# Content Parts (for multimodal messages)
# ============================================================

class TextContentPart(BaseModel):
    """Text content part."""
    type: Literal["text"] = "text"
    text: str


class ImageUrl(BaseModel):
    """Image URL reference."""
    url: str
    detail: Literal["auto", "low", "high"] = "auto"


class ImageContentPart(BaseModel):
    """Image content part."""
    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl


ContentPart = Union[TextContentPart, ImageContentPart]


# ============================================================
# Message Models
# ============================================================

class MessageInput(BaseModel):
    """Input message: plain text or text + image parts."""
    role: RoleEnum
    content: Union[str, List[ContentPart]] = ""

    def to_internal(self) -> Message:
        """Convert API message to internal format."""
        if isinstance(self.content, str):
            content: Union[str, list] = self.content
        else:
            content = []
            for part in self.content:
                if isinstance(part, TextContentPart):
                    content.append(TextContent(text=part.text))
                else:
                    content.append(ImageContent(image_url=InternalImageUrl(
                        url=part.image_url.url,
                        detail=part.image_url.detail,
                    )))
        return Message(role=Role(self.role.value), content=content)


class CustomProviderInput(BaseModel):
    """OpenAI-compatible endpoint supplied by the caller."""
    base_url: str = Field(..., min_length=1)
    auth_header_name: str = "Authorization"
    auth_header_value: str = "Bearer {key}"
    name: Optional[str] = None

    def to_internal(self) -> CustomProviderConfig:
        return CustomProviderConfig(
            base_url=self.base_url,
            auth_header_name=self.auth_header_name,
            auth_header_value=self.auth_header_value,
            name=self.name,
        )


# ============================================================
# Request Models
# ============================================================

class StreamChatRequest(BaseModel):
    """
    Streaming chat request.

    Missing API keys fall back to the server's environment. Validation of
    key, model and messages happens in the session so failures arrive as
    error events like every other stream failure.
    """
    provider: str = Field(..., min_length=1)
    model: str = ""
    messages: List[MessageInput] = Field(default_factory=list)
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    custom_provider: Optional[CustomProviderInput] = None

    # Sampling
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    max_tokens: Optional[int] = Field(default=None, ge=1)
    top_p: Optional[float] = Field(default=None, ge=0, le=1)
    top_k: Optional[int] = Field(default=None, ge=1)
    frequency_penalty: Optional[float] = Field(default=None, ge=-2, le=2)
    presence_penalty: Optional[float] = Field(default=None, ge=-2, le=2)

    # Image-generation / thinking models
    modalities: Optional[List[str]] = None
    reasoning: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "provider": "openai",
                "model": "gpt-4o-mini",
                "messages": [{"role": "user", "content": "Hello!"}],
                "temperature": 0.7,
            }
        }
    )

    def to_internal(self, api_key: str) -> StreamRequest:
        return StreamRequest(
            provider_id=self.provider,
            model=self.model,
            messages=[m.to_internal() for m in self.messages],
            api_key=api_key,
            base_url=self.base_url,
            sampling=SamplingParams(
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                top_p=self.top_p,
                top_k=self.top_k,
                frequency_penalty=self.frequency_penalty,
                presence_penalty=self.presence_penalty,
            ),
            modalities=self.modalities,
            reasoning=self.reasoning,
            custom_config=self.custom_provider.to_internal() if self.custom_provider else None,
        )


class ProviderTestRequest(BaseModel):
    """Connection test request."""
    api_key: Optional[str] = None
    model: Optional[str] = None
    custom_provider: Optional[CustomProviderInput] = None


# ============================================================
# Response Models
# ============================================================

class ProviderTestResponse(BaseModel):
    """Connection test result."""
    success: bool
    error: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: Literal["healthy"] = "healthy"
    version: str
    providers: List[str]
