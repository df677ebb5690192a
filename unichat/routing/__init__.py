"""
unichat Routing Module

Provider resolution: built-in providers and custom OpenAI-compatible endpoints.
"""

from .router import (
    BUILTIN_PROVIDERS,
    ProviderConfig,
    Route,
    Router,
    normalize_base_url,
    validate_base_url,
)

__all__ = [
    "BUILTIN_PROVIDERS",
    "ProviderConfig",
    "Route",
    "Router",
    "normalize_base_url",
    "validate_base_url",
]
