"""
unichat - Configuration

Environment-driven client settings and provider API key lookup.
"""

import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

import httpx


# Environment variables holding provider API keys, in lookup order
PROVIDER_KEY_ENV_VARS: Dict[str, tuple] = {
    "openai": ("OPENAI_API_KEY",),
    "openrouter": ("OPENROUTER_API_KEY",),
    "anthropic": ("ANTHROPIC_API_KEY",),
    "gemini": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
}


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass
class ClientSettings:
    """
    Transport settings for streaming sessions.

    Only the connection phase is bounded. Once the response starts
    streaming there is no read timeout: long reasoning pauses are normal.
    """
    connect_timeout: float = 30.0
    write_timeout: float = 30.0
    pool_timeout: float = 10.0
    test_timeout: float = 10.0
    user_agent: str = "unichat/1.0.0"
    log_level: str = "INFO"
    log_format: str = "json"
    otlp_endpoint: Optional[str] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ClientSettings":
        """Build settings from environment variables."""
        env = os.environ if env is None else env
        defaults = cls()
        return cls(
            connect_timeout=_float_env(env, "UNICHAT_CONNECT_TIMEOUT", defaults.connect_timeout),
            write_timeout=_float_env(env, "UNICHAT_WRITE_TIMEOUT", defaults.write_timeout),
            pool_timeout=_float_env(env, "UNICHAT_POOL_TIMEOUT", defaults.pool_timeout),
            test_timeout=_float_env(env, "UNICHAT_TEST_TIMEOUT", defaults.test_timeout),
            user_agent=env.get("UNICHAT_USER_AGENT", "").strip() or defaults.user_agent,
            log_level=env.get("LOG_LEVEL", defaults.log_level).strip().upper() or defaults.log_level,
            log_format=env.get("LOG_FORMAT", defaults.log_format).strip().lower() or defaults.log_format,
            otlp_endpoint=env.get("OTEL_EXPORTER_OTLP_ENDPOINT") or None,
        )

    def build_timeout(self) -> httpx.Timeout:
        """httpx timeout with an unbounded read phase."""
        return httpx.Timeout(
            connect=self.connect_timeout,
            read=None,
            write=self.write_timeout,
            pool=self.pool_timeout,
        )


def get_env_api_key(
    provider_id: str,
    env: Optional[Mapping[str, str]] = None
) -> Optional[str]:
    """
    Get a provider API key from the environment.

    Returns None for providers without a known variable (custom endpoints).
    """
    env = os.environ if env is None else env
    for name in PROVIDER_KEY_ENV_VARS.get(provider_id.lower(), ()):
        value = env.get(name, "").strip()
        if value:
            return value
    return None
