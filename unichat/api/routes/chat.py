"""
unichat - Chat Streaming API

Relays normalized session events to HTTP clients as server-sent events.
Every event is one ``data:`` line holding its JSON form; the stream ends
with ``data: [DONE]``.
"""

import asyncio
import contextlib
import json
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from ...client import ChatClient
from ...core.models import CancellationToken
from ...observability.logging import get_logger
from ...streaming.decoder import DONE_SENTINEL
from ..dependencies import get_chat_client, resolve_api_key
from ..models import ProviderTestRequest, ProviderTestResponse, StreamChatRequest


router = APIRouter(prefix="/v1", tags=["chat"])
logger = get_logger(__name__)

# How often a streaming response checks whether its client went away
DISCONNECT_POLL_INTERVAL = 0.5


def format_sse(data: str) -> str:
    return f"data: {data}\n\n"


async def watch_disconnect(request: Request, token: CancellationToken):
    """Cancel ``token`` once the HTTP client disconnects."""
    while not token.is_cancelled:
        if await request.is_disconnected():
            logger.info("Client disconnected, cancelling stream")
            token.cancel()
            return
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)


@router.post("/chat/stream")
async def stream_chat(
    request: Request,
    body: StreamChatRequest,
    client: ChatClient = Depends(get_chat_client),
) -> StreamingResponse:
    """
    Stream a chat completion.

    Failures (bad key, unknown provider, upstream errors) are delivered
    in-band as ``error`` events rather than HTTP error statuses, because
    the response has already started by the time most of them happen.
    """
    stream_request = body.to_internal(resolve_api_key(body.provider, body.api_key))

    async def generate() -> AsyncIterator[str]:
        watcher = asyncio.create_task(watch_disconnect(request, stream_request.cancel_token))
        events = client.stream(stream_request)
        try:
            async for event in events:
                yield format_sse(json.dumps(event.to_dict()))
            yield format_sse(DONE_SENTINEL)
        finally:
            watcher.cancel()
            await events.aclose()
            with contextlib.suppress(asyncio.CancelledError):
                await watcher

    return StreamingResponse(
        generate(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/providers/{provider_id}/test", response_model=ProviderTestResponse)
async def test_provider(
    provider_id: str,
    body: ProviderTestRequest,
    client: ChatClient = Depends(get_chat_client),
) -> ProviderTestResponse:
    """Check that a provider accepts the given (or server-configured) key."""
    result = await client.test_connection(
        provider_id,
        resolve_api_key(provider_id, body.api_key),
        custom_config=body.custom_provider.to_internal() if body.custom_provider else None,
        model=body.model,
    )
    return ProviderTestResponse(success=result.success, error=result.error)
