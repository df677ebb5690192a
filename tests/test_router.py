"""
unichat - Router Tests

Verifies:
- Built-in providers resolve to fixed endpoints and auth schemes
- Custom configurations route as OpenAI-compatible
- Base URL normalization and validation
"""

import pytest

from unichat.adapters import AnthropicAdapter, GeminiAdapter, OpenAIAdapter
from unichat.core.errors import ErrorKind, InvalidBaseUrlError, UnknownProviderError
from unichat.core.models import CustomProviderConfig, ProviderKind
from unichat.routing import (
    BUILTIN_PROVIDERS,
    ProviderConfig,
    Router,
    normalize_base_url,
    validate_base_url,
)


@pytest.fixture
def router():
    return Router()


class TestBuiltinRoutes:
    """Built-in provider resolution."""

    @pytest.mark.parametrize("provider_id,kind,adapter_type,base_url", [
        ("openai", ProviderKind.OPENAI_COMPATIBLE, OpenAIAdapter, "https://api.openai.com/v1"),
        ("openrouter", ProviderKind.OPENAI_COMPATIBLE, OpenAIAdapter, "https://openrouter.ai/api/v1"),
        ("anthropic", ProviderKind.ANTHROPIC, AnthropicAdapter, "https://api.anthropic.com/v1"),
        ("gemini", ProviderKind.GEMINI, GeminiAdapter, "https://generativelanguage.googleapis.com/v1beta"),
    ])
    def test_builtin(self, router, provider_id, kind, adapter_type, base_url):
        route = router.route(provider_id)

        assert route.provider_id == provider_id
        assert route.kind == kind
        assert isinstance(route.adapter, adapter_type)
        assert route.base_url == base_url

    def test_auth_schemes(self, router):
        assert router.route("openai").auth_headers("k") == {"Authorization": "Bearer k"}
        assert router.route("anthropic").auth_headers("k") == {"x-api-key": "k"}
        assert router.route("gemini").auth_headers("k") == {}
        assert router.route("gemini").query_params("k") == {"key": "k"}
        assert router.route("openrouter").auth_headers("k") == {
            "X-Title": "unichat",
            "Authorization": "Bearer k",
        }

    def test_builtin_wins_over_custom_config(self, router):
        route = router.route("openai", CustomProviderConfig(base_url="http://elsewhere"))
        assert route.base_url == "https://api.openai.com/v1"

    def test_adapters_shared_between_routes(self, router):
        assert router.route("openai").adapter is router.route("openrouter").adapter

    def test_provider_ids(self, router):
        assert router.provider_ids == sorted(BUILTIN_PROVIDERS)


class TestCustomRoutes:
    """Custom OpenAI-compatible endpoints."""

    def test_custom_config(self, router):
        route = router.route("lmstudio", CustomProviderConfig(
            base_url=" http://localhost:1234/v1/ ",
            name="LM Studio",
        ))

        assert route.kind == ProviderKind.OPENAI_COMPATIBLE
        assert route.base_url == "http://localhost:1234/v1"
        assert route.display_name == "LM Studio"
        assert route.auth_headers("k") == {"Authorization": "Bearer k"}

    def test_custom_auth_template(self, router):
        route = router.route("gw", CustomProviderConfig(
            base_url="https://gw.example.com",
            auth_header_name="api-key",
            auth_header_value="{key}",
        ))
        assert route.auth_headers("secret") == {"api-key": "secret"}

    def test_unknown_without_config(self, router):
        with pytest.raises(UnknownProviderError) as exc_info:
            router.route("mystery")
        assert exc_info.value.kind == ErrorKind.UNKNOWN_PROVIDER
        assert exc_info.value.error.provider == "mystery"

    @pytest.mark.parametrize("base_url", ["", "   ", "localhost:8080", "ftp://host/v1", "http://"])
    def test_invalid_base_url(self, router, base_url):
        with pytest.raises(InvalidBaseUrlError):
            router.route("custom", CustomProviderConfig(base_url=base_url))

    def test_register_provider(self, router):
        router.register_provider(ProviderConfig(
            id="groq",
            name="Groq",
            kind=ProviderKind.OPENAI_COMPATIBLE,
            base_url="https://api.groq.com/openai/v1/",
        ))

        route = router.route("groq")
        assert route.base_url == "https://api.groq.com/openai/v1"
        assert "groq" in router.provider_ids

    def test_with_base_url(self, router):
        route = router.route("anthropic").with_base_url("https://proxy.example.com/v1/")
        assert route.base_url == "https://proxy.example.com/v1"
        assert route.auth_headers("k") == {"x-api-key": "k"}


class TestBaseUrlHelpers:
    """normalize_base_url / validate_base_url."""

    @pytest.mark.parametrize("raw,expected", [
        ("https://api.example.com/v1", "https://api.example.com/v1"),
        ("https://api.example.com/v1/", "https://api.example.com/v1"),
        ("https://api.example.com/v1/chat/completions", "https://api.example.com/v1"),
        ("  https://api.example.com/v1/chat/completions/  ", "https://api.example.com/v1"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_base_url(raw) == expected

    def test_validate_returns_normalized(self):
        assert validate_base_url("http://127.0.0.1:8000/") == "http://127.0.0.1:8000"
