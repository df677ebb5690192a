"""
unichat - Pytest Configuration

Configures:
- Integration test markers (skip by default)
- Fake provider transports built on httpx.MockTransport
- Isolated metrics registries
"""

import asyncio
import json
import os
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

import httpx
import pytest
from prometheus_client import CollectorRegistry

from unichat.core.models import Message, StreamRequest
from unichat.observability.metrics import MetricsCollector


# ============================================================
# Environment Configuration
# ============================================================

def _is_truthy(value: Optional[str]) -> bool:
    """Check if environment variable is truthy."""
    if value is None:
        return False
    return value.lower() in ("1", "true", "yes", "on")


RUN_INTEGRATION = _is_truthy(os.getenv("RUN_INTEGRATION"))


# ============================================================
# Pytest Markers
# ============================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (requires RUN_INTEGRATION=1)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless RUN_INTEGRATION=1."""
    skip_integration = pytest.mark.skip(
        reason="Integration test - set RUN_INTEGRATION=1 to run"
    )
    for item in items:
        if "integration" in item.keywords and not RUN_INTEGRATION:
            item.add_marker(skip_integration)


# ============================================================
# SSE helpers
# ============================================================

def sse_body(*frames: Union[str, Dict[str, Any]], event_names: Optional[List[str]] = None) -> bytes:
    """
    Build an SSE body. Dict frames are JSON-encoded, strings sent verbatim.

    event_names, when given, prefixes each frame with an ``event:`` line
    (Anthropic style).
    """
    lines = []
    for index, frame in enumerate(frames):
        if event_names:
            lines.append(f"event: {event_names[index]}\n")
        payload = frame if isinstance(frame, str) else json.dumps(frame)
        lines.append(f"data: {payload}\n\n")
    return "".join(lines).encode("utf-8")


def split_bytes(data: bytes, size: int) -> List[bytes]:
    """Split ``data`` into chunks of ``size`` bytes."""
    return [data[i:i + size] for i in range(0, len(data), size)]


class ChunkedStream(httpx.AsyncByteStream):
    """
    Response body delivered chunk by chunk.

    With ``stall`` set, the body never ends after the last chunk, like an
    upstream that stops sending mid-stream.
    """

    def __init__(self, chunks: Iterable[bytes], stall: bool = False):
        self.chunks = list(chunks)
        self.stall = stall
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            await asyncio.sleep(0)
            yield chunk
        if self.stall:
            await asyncio.Event().wait()

    async def aclose(self):
        self.closed = True


class FakeProvider:
    """
    Records requests and answers each with a canned response.

    Usage:
        provider = FakeProvider.sse(sse_body({"choices": [...]}, "[DONE]"))
        async with provider.client() as client:
            ...
        provider.requests[0].url
    """

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]):
        self.responder = responder
        self.requests: List[httpx.Request] = []

    @classmethod
    def sse(cls, body: bytes, chunk_size: Optional[int] = None, stall: bool = False) -> "FakeProvider":
        chunks = split_bytes(body, chunk_size) if chunk_size else [body]

        def respond(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers={"content-type": "text/event-stream"},
                stream=ChunkedStream(chunks, stall=stall),
            )
        return cls(respond)

    @classmethod
    def status(
        cls,
        status_code: int,
        json_body: Any = None,
        text: str = "",
        headers: Optional[Dict[str, str]] = None,
    ) -> "FakeProvider":
        def respond(request: httpx.Request) -> httpx.Response:
            if json_body is not None:
                return httpx.Response(status_code, json=json_body, headers=headers)
            return httpx.Response(status_code, text=text, headers=headers)
        return cls(respond)

    @classmethod
    def failing(cls, error: Exception) -> "FakeProvider":
        def respond(request: httpx.Request) -> httpx.Response:
            raise error
        return cls(respond)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    @property
    def last_json(self) -> Dict[str, Any]:
        return json.loads(self.requests[-1].content)


# ============================================================
# Fixtures
# ============================================================

@pytest.fixture
def metrics():
    """Metrics collector on a private registry."""
    return MetricsCollector(CollectorRegistry())


@pytest.fixture
def make_request():
    """Factory for StreamRequest with sensible defaults."""
    def _make(provider_id: str = "openai", model: str = "gpt-4o", **kwargs) -> StreamRequest:
        kwargs.setdefault("messages", [Message.user("Hello")])
        kwargs.setdefault("api_key", "sk-test")
        return StreamRequest(provider_id=provider_id, model=model, **kwargs)
    return _make


@pytest.fixture
def openai_frames():
    """Minimal OpenAI-compatible stream: "Hi there"."""
    return [
        {"choices": [{"delta": {"content": "Hi"}}]},
        {"choices": [{"delta": {"content": " there"}, "finish_reason": "stop"}]},
        "[DONE]",
    ]


@pytest.fixture
def anthropic_thinking_frames():
    """Anthropic stream with a thinking block followed by a text block."""
    return [
        {"type": "message_start", "message": {"id": "msg_1"}},
        {"type": "content_block_start", "index": 0, "content_block": {"type": "thinking"}},
        {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Let me think"}},
        {"type": "content_block_stop", "index": 0},
        {"type": "content_block_start", "index": 1, "content_block": {"type": "text"}},
        {"type": "content_block_delta", "index": 1, "delta": {"type": "text_delta", "text": "Answer"}},
        {"type": "content_block_stop", "index": 1},
        {"type": "message_delta", "delta": {"stop_reason": "end_turn"}},
        {"type": "message_stop"},
    ]
