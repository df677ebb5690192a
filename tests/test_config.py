"""
unichat - Configuration Tests
"""

import pytest

from unichat.config import ClientSettings, get_env_api_key


class TestClientSettings:
    """Environment-driven settings."""

    def test_defaults(self):
        settings = ClientSettings.from_env({})

        assert settings.connect_timeout == 30.0
        assert settings.test_timeout == 10.0
        assert settings.log_level == "INFO"
        assert settings.log_format == "json"
        assert settings.otlp_endpoint is None

    def test_overrides(self):
        settings = ClientSettings.from_env({
            "UNICHAT_CONNECT_TIMEOUT": "5",
            "UNICHAT_TEST_TIMEOUT": "2.5",
            "UNICHAT_USER_AGENT": "my-app/2.0",
            "LOG_LEVEL": "debug",
            "LOG_FORMAT": "TEXT",
            "OTEL_EXPORTER_OTLP_ENDPOINT": "http://collector:4317",
        })

        assert settings.connect_timeout == 5.0
        assert settings.test_timeout == 2.5
        assert settings.user_agent == "my-app/2.0"
        assert settings.log_level == "DEBUG"
        assert settings.log_format == "text"
        assert settings.otlp_endpoint == "http://collector:4317"

    @pytest.mark.parametrize("value", ["abc", "0", "-3"])
    def test_invalid_timeout(self, value):
        with pytest.raises(ValueError):
            ClientSettings.from_env({"UNICHAT_CONNECT_TIMEOUT": value})

    def test_read_phase_unbounded(self):
        timeout = ClientSettings(connect_timeout=7).build_timeout()

        assert timeout.connect == 7
        assert timeout.read is None


class TestEnvApiKey:
    """Provider key lookup."""

    def test_known_provider(self):
        assert get_env_api_key("openai", {"OPENAI_API_KEY": " sk-env "}) == "sk-env"

    def test_gemini_falls_back_to_google_key(self):
        assert get_env_api_key("gemini", {"GOOGLE_API_KEY": "g"}) == "g"
        assert get_env_api_key("gemini", {"GEMINI_API_KEY": "a", "GOOGLE_API_KEY": "g"}) == "a"

    def test_case_insensitive_provider(self):
        assert get_env_api_key("Anthropic", {"ANTHROPIC_API_KEY": "k"}) == "k"

    def test_missing(self):
        assert get_env_api_key("openai", {}) is None
        assert get_env_api_key("custom-endpoint", {"OPENAI_API_KEY": "x"}) is None
