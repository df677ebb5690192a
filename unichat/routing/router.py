"""
unichat - Router

Resolves a provider identifier (or a custom endpoint configuration) into
the adapter, base URL and authentication scheme a session should use.

Built-in providers have fixed endpoints. Any other identifier backed by a
CustomProviderConfig is treated as OpenAI-compatible, the shape most
self-hosted servers and gateways speak.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Mapping, Optional
from urllib.parse import urlsplit

from ..adapters.anthropic_adapter import AnthropicAdapter
from ..adapters.base import BaseAdapter
from ..adapters.gemini_adapter import GeminiAdapter
from ..adapters.openai_adapter import OpenAIAdapter
from ..core.errors import InvalidBaseUrlError, UnknownProviderError
from ..core.models import CustomProviderConfig, ProviderKind
from ..observability.logging import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class ProviderConfig:
    """Static endpoint and auth configuration for a provider."""
    id: str
    name: str
    kind: ProviderKind
    base_url: str
    auth_header_name: Optional[str] = "Authorization"
    auth_header_value: Optional[str] = "Bearer {key}"
    api_key_query_param: Optional[str] = None
    extra_headers: Mapping[str, str] = field(default_factory=dict)


BUILTIN_PROVIDERS: Dict[str, ProviderConfig] = {
    "openai": ProviderConfig(
        id="openai",
        name="OpenAI",
        kind=ProviderKind.OPENAI_COMPATIBLE,
        base_url="https://api.openai.com/v1",
    ),
    "openrouter": ProviderConfig(
        id="openrouter",
        name="OpenRouter",
        kind=ProviderKind.OPENAI_COMPATIBLE,
        base_url="https://openrouter.ai/api/v1",
        extra_headers={"X-Title": "unichat"},
    ),
    "anthropic": ProviderConfig(
        id="anthropic",
        name="Anthropic",
        kind=ProviderKind.ANTHROPIC,
        base_url="https://api.anthropic.com/v1",
        auth_header_name="x-api-key",
        auth_header_value="{key}",
    ),
    "gemini": ProviderConfig(
        id="gemini",
        name="Google Gemini",
        kind=ProviderKind.GEMINI,
        base_url="https://generativelanguage.googleapis.com/v1beta",
        # Uses query param instead
        auth_header_name=None,
        auth_header_value=None,
        api_key_query_param="key",
    ),
}


def normalize_base_url(url: str) -> str:
    """
    Clean up a user-entered base URL.

    Strips whitespace, trailing slashes and an accidentally included
    ``/chat/completions`` suffix.
    """
    url = (url or "").strip().rstrip("/")
    suffix = "/chat/completions"
    if url.endswith(suffix):
        url = url[:-len(suffix)].rstrip("/")
    return url


def validate_base_url(url: str, provider: Optional[str] = None) -> str:
    """Normalize a base URL and require an http(s) scheme and host."""
    normalized = normalize_base_url(url)
    parts = urlsplit(normalized)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise InvalidBaseUrlError(url, provider)
    return normalized


@dataclass(frozen=True)
class Route:
    """Everything a session needs to talk to one provider."""
    provider_id: str
    kind: ProviderKind
    adapter: BaseAdapter
    base_url: str
    display_name: str = ""
    auth_header_name: Optional[str] = "Authorization"
    auth_header_value: Optional[str] = "Bearer {key}"
    api_key_query_param: Optional[str] = None
    extra_headers: Mapping[str, str] = field(default_factory=dict)

    def auth_headers(self, api_key: str) -> Dict[str, str]:
        headers = dict(self.extra_headers)
        if self.auth_header_name and self.auth_header_value:
            headers[self.auth_header_name] = self.auth_header_value.replace("{key}", api_key)
        return headers

    def query_params(self, api_key: str) -> Dict[str, str]:
        if self.api_key_query_param:
            return {self.api_key_query_param: api_key}
        return {}

    def with_base_url(self, base_url: str) -> "Route":
        """Same route against another endpoint."""
        return replace(self, base_url=validate_base_url(base_url, self.provider_id))


class Router:
    """
    Maps provider identifiers to routes.

    Adapters are stateless, so one instance per protocol family is shared
    by every route.
    """

    def __init__(
        self,
        adapters: Optional[Dict[ProviderKind, BaseAdapter]] = None,
        providers: Optional[Dict[str, ProviderConfig]] = None,
    ):
        """
        Initialize router.

        Args:
            adapters: Adapter per protocol family (defaults to the built-in adapters)
            providers: Known providers (defaults to BUILTIN_PROVIDERS)
        """
        self.adapters: Dict[ProviderKind, BaseAdapter] = adapters or {
            ProviderKind.OPENAI_COMPATIBLE: OpenAIAdapter(),
            ProviderKind.ANTHROPIC: AnthropicAdapter(),
            ProviderKind.GEMINI: GeminiAdapter(),
        }
        self.providers: Dict[str, ProviderConfig] = dict(
            BUILTIN_PROVIDERS if providers is None else providers
        )

    @property
    def provider_ids(self) -> List[str]:
        return sorted(self.providers)

    def register_provider(self, config: ProviderConfig):
        """Add or replace a named provider."""
        self.providers[config.id] = replace(config, base_url=validate_base_url(config.base_url, config.id))

    def route(
        self,
        provider_id: str,
        custom_config: Optional[CustomProviderConfig] = None,
    ) -> Route:
        """
        Resolve a provider.

        Raises:
            UnknownProviderError: not a known provider and no custom config
            InvalidBaseUrlError: custom config with an unusable base URL
        """
        config = self.providers.get(provider_id)
        if config is not None:
            return Route(
                provider_id=config.id,
                kind=config.kind,
                adapter=self.adapters[config.kind],
                base_url=config.base_url,
                display_name=config.name,
                auth_header_name=config.auth_header_name,
                auth_header_value=config.auth_header_value,
                api_key_query_param=config.api_key_query_param,
                extra_headers=config.extra_headers,
            )

        if custom_config is not None:
            base_url = validate_base_url(custom_config.base_url, provider_id)
            logger.debug(
                "Routing custom provider as OpenAI-compatible",
                provider=provider_id,
                base_url=base_url,
            )
            return Route(
                provider_id=provider_id,
                kind=ProviderKind.OPENAI_COMPATIBLE,
                adapter=self.adapters[ProviderKind.OPENAI_COMPATIBLE],
                base_url=base_url,
                display_name=custom_config.name or provider_id,
                auth_header_name=custom_config.auth_header_name,
                auth_header_value=custom_config.auth_header_value,
            )

        raise UnknownProviderError(provider_id)
