"""
unichat API Routes
"""

from .chat import router as chat_router

__all__ = ["chat_router"]
