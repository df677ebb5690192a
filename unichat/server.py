"""
unichat - Relay Server

FastAPI app exposing the streaming client over HTTP, for front-ends that
cannot talk to provider APIs directly.

Features:
- SSE relay of normalized events (POST /v1/chat/stream)
- Provider connection tests
- Health and Prometheus metrics endpoints
- Structured logging and optional OpenTelemetry export
"""

import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api import chat_router
from .api import dependencies as api_deps
from .api.models import HealthResponse
from .client import ChatClient
from .config import ClientSettings
from .observability import get_logger, metrics_endpoint, setup_logging, setup_tracing


# ============================================================
# Global state
# ============================================================

client_instance: Optional[ChatClient] = None


# ============================================================
# Lifespan management
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    global client_instance

    settings = ClientSettings.from_env()

    # Initialize observability first (for logging during startup)
    setup_logging(level=settings.log_level, json_output=settings.log_format == "json")
    tracing = setup_tracing(
        service_name="unichat",
        service_version=__version__,
        otlp_endpoint=settings.otlp_endpoint,
    )

    logger = get_logger("unichat.server")

    client_instance = ChatClient(settings=settings)
    logger.info(
        "unichat relay ready",
        version=__version__,
        providers=client_instance.router.provider_ids,
    )

    yield

    await client_instance.aclose()
    client_instance = None
    tracing.shutdown()
    logger.info("unichat relay stopped")


# ============================================================
# FastAPI App
# ============================================================

app = FastAPI(
    title="unichat",
    description="Unified streaming relay for OpenAI-compatible, Anthropic and Gemini chat APIs",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat_router)


def get_client_instance() -> Optional[ChatClient]:
    return client_instance


# Store in dependencies module for routes to access
api_deps.set_client_getter(get_client_instance)


# ============================================================
# Core Endpoints (not in routes)
# ============================================================

@app.get("/health", response_model=HealthResponse)
async def health_check(client: ChatClient = Depends(api_deps.get_chat_client)) -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(version=__version__, providers=client.router.provider_ids)


@app.get("/metrics")
async def prometheus_metrics():
    """
    Prometheus metrics endpoint.

    Exposes all collected metrics in Prometheus text format.
    """
    return metrics_endpoint()


# ============================================================
# Error handlers
# ============================================================

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle standard HTTP exceptions in the unichat error shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "kind": "http_error",
                "message": str(exc.detail),
            }
        },
        headers=exc.headers,
    )


# ============================================================
# Run server
# ============================================================

def main():
    """Console entry point: ``unichat-server``."""
    import uvicorn

    uvicorn.run(
        "unichat.server:app",
        host=os.getenv("UNICHAT_HOST", "0.0.0.0"),
        port=int(os.getenv("UNICHAT_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
