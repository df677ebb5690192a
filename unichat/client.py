"""
unichat - Chat Client

High-level entry point: owns the HTTP connection pool, the router and the
metrics collector, and hands out one StreamSession per request.

Example:
    >>> async with ChatClient() as client:
    ...     request = StreamRequest(
    ...         provider_id="openai",
    ...         model="gpt-4o-mini",
    ...         messages=[Message.user("Hello!")],
    ...         api_key="sk-...",
    ...     )
    ...     async for event in client.stream(request):
    ...         print(event)
"""

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator, Dict, Optional

import httpx

from .config import ClientSettings
from .core.models import CustomProviderConfig, Message, StreamRequest
from .observability.logging import get_logger
from .observability.metrics import MetricsCollector, get_metrics
from .routing.router import Router
from .streaming.events import Completion, ContentDelta, ImageDelta, NormalizedEvent, StreamErrorEvent
from .streaming.session import StreamCallbacks, StreamSession


logger = get_logger(__name__)


# Cheap models used to probe a provider
TEST_MODELS: Dict[str, str] = {
    "openai": "gpt-4o-mini",
    "openrouter": "openai/gpt-4o-mini",
    "anthropic": "claude-3-5-haiku-latest",
    "gemini": "gemini-1.5-flash",
}
DEFAULT_TEST_MODEL = "gpt-3.5-turbo"


@dataclass
class ConnectionTestResult:
    """Outcome of ChatClient.test_connection()."""
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        result: Dict[str, object] = {"success": self.success}
        if self.error:
            result["error"] = self.error
        return result


class ChatClient:
    """
    Unified async streaming client.

    Args:
        settings: Transport settings. Defaults to ClientSettings.from_env().
        http_client: Existing httpx.AsyncClient to use. Not closed by aclose().
        router: Provider router. Defaults to the built-in providers.
        metrics: Metrics collector. Defaults to the process-wide collector.
    """

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        router: Optional[Router] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.settings = settings or ClientSettings.from_env()
        self.router = router or Router()
        self.metrics = metrics or get_metrics()
        self._client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.settings.build_timeout(),
                headers={"User-Agent": self.settings.user_agent},
            )
            self._owns_client = True
        return self._client

    def session(self, request: StreamRequest) -> StreamSession:
        """Create a session for ``request`` without starting it."""
        return StreamSession(
            request,
            self._get_client(),
            router=self.router,
            metrics=self.metrics,
        )

    async def stream(self, request: StreamRequest) -> AsyncIterator[NormalizedEvent]:
        """
        Stream normalized events for ``request``.

        Cancel through ``request.cancel_token``; the stream then ends with a
        cancelled Completion.
        """
        events = self.session(request).events()
        try:
            async for event in events:
                yield event
        finally:
            await events.aclose()

    async def send_streaming_message(
        self,
        request: StreamRequest,
        callbacks: StreamCallbacks,
    ) -> StreamSession:
        """
        Run a session in callback mode.

        Never raises for stream failures; they arrive through
        ``callbacks.on_error``. Returns the finished session.
        """
        session = self.session(request)
        await session.start(callbacks)
        return session

    async def test_connection(
        self,
        provider_id: str,
        api_key: str,
        custom_config: Optional[CustomProviderConfig] = None,
        model: Optional[str] = None,
    ) -> ConnectionTestResult:
        """
        Check that a provider accepts ``api_key``.

        Sends a one-word prompt; the first content token (or a completion)
        counts as success and the stream is cancelled right away.
        """
        request = StreamRequest(
            provider_id=provider_id,
            model=model or TEST_MODELS.get(provider_id, DEFAULT_TEST_MODEL),
            messages=[Message.user("Hi")],
            api_key=api_key,
            custom_config=custom_config,
        )
        session = self.session(request)

        try:
            result = await asyncio.wait_for(
                self._probe(session),
                timeout=self.settings.test_timeout,
            )
        except asyncio.TimeoutError:
            result = ConnectionTestResult(success=False, error="Connection test timed out")

        logger.info(
            "Connection test finished",
            provider=provider_id,
            model=request.model,
            success=result.success,
            error_message=result.error,
        )
        return result

    async def _probe(self, session: StreamSession) -> ConnectionTestResult:
        events = session.events()
        try:
            async for event in events:
                if isinstance(event, (ContentDelta, ImageDelta)):
                    session.cancel()
                    return ConnectionTestResult(success=True)
                if isinstance(event, Completion):
                    return ConnectionTestResult(success=True)
                if isinstance(event, StreamErrorEvent) and event.is_fatal:
                    return ConnectionTestResult(success=False, error=event.error.message)
        finally:
            await events.aclose()
        return ConnectionTestResult(success=True)

    async def aclose(self):
        """Close the HTTP client if this ChatClient created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "ChatClient":
        return self

    async def __aexit__(self, *args):
        await self.aclose()
