"""
unichat - API Dependencies

Shared dependencies for FastAPI routes.
"""

from typing import Optional

from fastapi import HTTPException

from ..client import ChatClient
from ..config import get_env_api_key


# Global client getter (set by server lifespan)
# This function is set by server.py to avoid circular imports
_client_getter = None


def set_client_getter(getter):
    """Set the function that returns the chat client."""
    global _client_getter
    _client_getter = getter


def get_chat_client() -> ChatClient:
    """
    Get the chat client.

    Dependency that provides the process-wide ChatClient.
    """
    client = _client_getter() if _client_getter is not None else None
    if client is None:
        raise HTTPException(
            status_code=503,
            detail="Chat client not initialized. Server may be starting up.",
            headers={"Retry-After": "5"},
        )
    return client


def resolve_api_key(provider_id: str, api_key: Optional[str]) -> str:
    """Key from the request body, else from the server environment."""
    if api_key and api_key.strip():
        return api_key.strip()
    return get_env_api_key(provider_id) or ""
