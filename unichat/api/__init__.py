"""
unichat API Module

HTTP relay for the streaming client:
- POST /v1/chat/stream
- POST /v1/providers/{provider_id}/test
"""

from .routes import chat_router

__all__ = ["chat_router"]
