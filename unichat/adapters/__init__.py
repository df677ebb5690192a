"""
unichat Provider Adapters

One adapter per wire-protocol family.
"""

from .base import BaseAdapter, PreparedRequest
from .openai_adapter import OpenAIAdapter
from .anthropic_adapter import AnthropicAdapter
from .gemini_adapter import GeminiAdapter

__all__ = [
    "BaseAdapter",
    "PreparedRequest",
    "OpenAIAdapter",
    "AnthropicAdapter",
    "GeminiAdapter",
]
