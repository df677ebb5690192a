"""
unichat - Stream Session Controller

Runs one request/response cycle: validates the request, resolves the
provider route, POSTs the streaming request, and turns the response body
into normalized events.

Two ways to consume a session:

    # Async iterator
    async for event in session.events():
        ...

    # Callbacks (stream failures go to on_error)
    await session.start(StreamCallbacks(on_content_delta=..., on_error=...))

Rules enforced here:
- exactly one terminal event: Completion or a fatal StreamErrorEvent
- cancellation is not an error; it completes with the partial content
- errors are surfaced once, never retried
"""

import asyncio
import inspect
import json
import time
import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, Iterable, Iterator, List, Optional

import httpx

from ..adapters.base import BaseAdapter
from ..core.errors import (
    EmptyMessagesError,
    MalformedResponseError,
    MissingApiKeyError,
    MissingModelError,
    ProviderReportedError,
    UnichatException,
    error_from_status,
    error_from_transport,
    extract_error_message,
)
from ..core.models import FinishReason, StreamRequest
from ..observability.logging import get_logger
from ..observability.metrics import MetricsCollector, SessionOutcome, get_metrics
from ..observability.tracing import record_exception, trace_stream_session
from ..routing.router import Route, Router
from .decoder import SSEFrameDecoder, parse_frame
from .events import (
    Completion,
    ContentDelta,
    ImageDelta,
    NormalizedEvent,
    ReasoningComplete,
    ReasoningDelta,
    StreamErrorEvent,
)
from .state import SessionState


logger = get_logger(__name__)

# Raw bytes kept while waiting for the first SSE frame
MAX_NON_SSE_BODY = 1024 * 1024


@dataclass
class StreamCallbacks:
    """
    Callback set for StreamSession.start().

    Callbacks may be plain functions or coroutines. Generated images are
    delivered through on_content_delta as inline markers, and additionally
    through on_image when set.
    """
    on_content_delta: Optional[Callable[[str, str], Any]] = None
    on_reasoning_delta: Optional[Callable[[str, str], Any]] = None
    on_reasoning_complete: Optional[Callable[[], Any]] = None
    on_completion: Optional[Callable[[str, Optional[FinishReason]], Any]] = None
    on_error: Optional[Callable[[UnichatException], Any]] = None
    on_image: Optional[Callable[[str], Any]] = None
    on_warning: Optional[Callable[[UnichatException], Any]] = None


def validate_request(request: StreamRequest):
    """
    Check a request before any network call.

    Raises:
        MissingApiKeyError, MissingModelError, EmptyMessagesError
    """
    provider = request.provider_id
    if not isinstance(request.api_key, str) or not request.api_key.strip():
        raise MissingApiKeyError(provider)
    if not isinstance(request.model, str) or not request.model.strip():
        raise MissingModelError(provider)
    if not request.messages:
        raise EmptyMessagesError(provider)


async def _call(callback: Optional[Callable], *args):
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class StreamSession:
    """
    One streaming request against one provider.

    A session is single-use: events() (or start()) may be consumed once.
    """

    def __init__(
        self,
        request: StreamRequest,
        client: httpx.AsyncClient,
        router: Optional[Router] = None,
        metrics: Optional[MetricsCollector] = None,
        session_id: Optional[str] = None,
    ):
        self.request = request
        self.client = client
        self.router = router or Router()
        self.metrics = metrics or get_metrics()
        self.session_id = session_id or f"sess_{uuid.uuid4().hex[:16]}"
        self.state = SessionState(provider=request.provider_id, model=request.model)
        self.log = logger.bind(
            session_id=self.session_id,
            provider=request.provider_id,
            model=request.model,
        )
        self._consumed = False
        self._first_token_recorded = False

    @property
    def is_cancelled(self) -> bool:
        return self.request.cancel_token.is_cancelled

    def cancel(self):
        """Request cooperative cancellation."""
        self.request.cancel_token.cancel()

    # ============================================================
    # Async iterator API
    # ============================================================

    async def events(self) -> AsyncIterator[NormalizedEvent]:
        """Yield normalized events until exactly one terminal event."""
        if self._consumed:
            raise RuntimeError("StreamSession can only be consumed once")
        self._consumed = True

        provider = self.request.provider_id
        outcome = SessionOutcome.CANCELLED

        with trace_stream_session(
            provider,
            self.request.model,
            {"unichat.session_id": self.session_id},
        ) as span, self.metrics.track_active_stream(provider):
            run = self._run()
            try:
                async for event in run:
                    self._observe(event)
                    if isinstance(event, Completion):
                        outcome = SessionOutcome.CANCELLED if event.cancelled else SessionOutcome.COMPLETED
                    elif isinstance(event, StreamErrorEvent) and event.is_fatal:
                        outcome = SessionOutcome.ERROR
                        record_exception(span, event.error)
                    yield event
            finally:
                await run.aclose()
                duration = time.monotonic() - self.state.started_at
                self.metrics.record_session(provider, outcome, duration)
                span.set_attribute("ai.outcome", outcome)
                span.set_attribute("ai.content_chars", len(self.state.content))
                span.set_attribute("ai.reasoning_chars", len(self.state.reasoning))
                if self.state.finish_reason is not None:
                    span.set_attribute("ai.finish_reason", self.state.finish_reason.value)
                self.log.info(
                    "Stream finished",
                    outcome=outcome,
                    duration_ms=int(duration * 1000),
                    content_chars=len(self.state.content),
                    reasoning_chars=len(self.state.reasoning),
                    finish_reason=self.state.finish_reason.value if self.state.finish_reason else None,
                )

    def _observe(self, event: NormalizedEvent):
        if isinstance(event, (ContentDelta, ReasoningDelta, ImageDelta)):
            if not self._first_token_recorded and self.state.time_to_first_token is not None:
                self._first_token_recorded = True
                self.metrics.record_time_to_first_token(
                    self.request.provider_id,
                    self.request.model,
                    self.state.time_to_first_token,
                )
        elif isinstance(event, StreamErrorEvent):
            self.metrics.record_error(self.request.provider_id, event.error.kind.value)

    async def _run(self) -> AsyncIterator[NormalizedEvent]:
        state = self.state
        token = self.request.cancel_token

        try:
            validate_request(self.request)
            route = self.router.route(self.request.provider_id, self.request.custom_config)
            if self.request.base_url:
                route = route.with_base_url(self.request.base_url)
        except UnichatException as e:
            self.log.warning(
                "Request rejected before sending",
                kind=e.kind.value,
                error_message=e.message,
            )
            for event in state.fail(e):
                yield event
            return

        if token.is_cancelled:
            for event in state.cancel():
                yield event
            return

        prepared = route.adapter.build_request(self.request, route)
        self.log.debug("Opening stream", kind=route.kind.value)

        try:
            async with self.client.stream(
                "POST",
                prepared.url,
                headers=prepared.headers,
                params=prepared.params or None,
                json=prepared.json,
            ) as response:
                if not response.is_success:
                    for event in state.fail(await self._status_error(response, route)):
                        yield event
                    return

                self.log.debug("Stream opened", status_code=response.status_code)

                reader = self._read_event_stream(response, route.adapter)
                try:
                    async for event in reader:
                        yield event
                finally:
                    await reader.aclose()

        except Exception as e:
            if token.is_cancelled:
                # Aborted reads surface as transport errors; cancellation wins
                self.log.debug("Transport error after cancellation", error=str(e))
            else:
                error = error_from_transport(e, self.request.provider_id)
                self.log.warning(
                    "Stream transport failed",
                    kind=error.kind.value,
                    error_type=type(e).__name__,
                    error_message=error.message,
                )
                for event in state.fail(error):
                    yield event
                return

        if token.is_cancelled:
            self.log.info("Stream cancelled", content_chars=len(state.content))
            for event in state.cancel():
                yield event
            return

        for event in state.complete():
            yield event

    async def _status_error(self, response: httpx.Response, route: Route) -> UnichatException:
        raw = await response.aread()
        try:
            body: Any = json.loads(raw) if raw else None
        except ValueError:
            body = raw.decode("utf-8", errors="replace")

        error = error_from_status(
            response.status_code,
            body,
            response.headers,
            provider=route.provider_id,
            reason=response.reason_phrase,
        )
        self.log.warning(
            "Provider returned error status",
            status_code=response.status_code,
            kind=error.kind.value,
            error_message=error.message,
        )
        return error

    async def _read_event_stream(
        self,
        response: httpx.Response,
        adapter: BaseAdapter,
    ) -> AsyncIterator[NormalizedEvent]:
        """
        Read the body chunk by chunk until EOF, end marker, fatal error or cancellation.

        Bodies are decoded as SSE whatever their content type. Until the
        first frame arrives the raw bytes are kept, so a body that turns out
        to be a plain JSON document can still be read as one.
        """
        state = self.state
        token = self.request.cancel_token
        decoder = SSEFrameDecoder()
        chunks = response.aiter_bytes()
        body = bytearray()

        try:
            while not (state.stream_ended or state.completion_fired):
                # Checked before each read and after each yielded event
                if token.is_cancelled:
                    return

                chunk = await self._next_chunk(chunks)
                if chunk is None:
                    if token.is_cancelled:
                        return
                    for event in self._process_payloads(decoder.flush(), adapter):
                        yield event
                        if token.is_cancelled:
                            return
                    break

                if decoder.frames_yielded == 0 and len(body) < MAX_NON_SSE_BODY:
                    body.extend(chunk)

                for event in self._process_payloads(decoder.feed(chunk), adapter):
                    yield event
                    if token.is_cancelled:
                        return
        finally:
            await chunks.aclose()

        if decoder.frames_yielded == 0 and decoder.discarded_lines > 0 and not state.completion_fired:
            for event in self._non_sse_body(bytes(body), adapter):
                yield event

    def _non_sse_body(self, raw: bytes, adapter: BaseAdapter) -> Iterator[NormalizedEvent]:
        """
        Handle a 200 body that held no SSE frames.

        A JSON error body is a provider error; other JSON objects are
        normalized as frames; anything else is a malformed response.
        """
        state = self.state
        try:
            body = json.loads(raw)
        except ValueError:
            self.log.warning("Response contained no SSE frames", body_preview=raw[:200])
            yield from state.fail(MalformedResponseError(self.request.provider_id))
            return

        frames = [frame for frame in (body if isinstance(body, list) else [body]) if isinstance(frame, dict)]
        if not frames:
            self.log.warning("JSON response held no objects", body_preview=raw[:200])
            yield from state.fail(MalformedResponseError(self.request.provider_id))
            return

        for frame in frames:
            if frame.get("error"):
                message = extract_error_message(frame) or "Provider reported an error"
                error = frame["error"]
                yield from state.fail(ProviderReportedError(
                    self.request.provider_id,
                    message,
                    error_type=error.get("type") if isinstance(error, dict) else None,
                ))
                return
            yield from self._normalize(adapter, frame)

    async def _next_chunk(self, chunks: AsyncIterator[bytes]) -> Optional[bytes]:
        """
        Next body chunk, or None at EOF or on cancellation.

        The read is raced against the cancellation token so a stalled
        upstream cannot hold a cancelled session open.
        """
        token = self.request.cancel_token
        read = asyncio.ensure_future(chunks.__anext__())
        cancelled = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({read, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()
            if not read.done():
                read.cancel()
                await asyncio.wait({read})

        # A token that cannot be awaited here must not pass for end of stream
        if cancelled.done() and not cancelled.cancelled() and cancelled.exception() is not None:
            raise cancelled.exception()

        if read.cancelled():
            return None
        try:
            return read.result()
        except StopAsyncIteration:
            return None

    def _process_payloads(self, payloads: Iterable[str], adapter: BaseAdapter) -> Iterator[NormalizedEvent]:
        """Normalize payloads lazily; stop at the end marker or a fatal error."""
        state = self.state
        for payload in payloads:
            if adapter.is_terminal_payload(payload):
                state.stream_ended = True
                return

            frame = parse_frame(payload, self.log)
            if frame is None:
                self.metrics.record_malformed_frame(self.request.provider_id)
                continue

            yield from self._normalize(adapter, frame)

            if state.stream_ended or state.completion_fired:
                return

    def _normalize(self, adapter: BaseAdapter, frame: Dict[str, Any]) -> List[NormalizedEvent]:
        """Events for one frame; a frame the adapter cannot read is dropped."""
        try:
            return adapter.normalize(frame, self.state)
        except (AttributeError, TypeError, KeyError, IndexError, ValueError) as e:
            self.log.warning(
                "Dropped frame with unexpected shape",
                error_type=type(e).__name__,
                error_message=str(e),
                frame_keys=sorted(str(key) for key in frame),
            )
            self.metrics.record_malformed_frame(self.request.provider_id)
            return []

    # ============================================================
    # Callback API
    # ============================================================

    async def start(self, callbacks: StreamCallbacks):
        """
        Run the session, dispatching every event to ``callbacks``.

        Never raises for stream failures: they arrive through on_error. If
        the surrounding task is cancelled, the session is completed as
        cancelled (on_completion fires) and CancelledError is re-raised.

        Raises:
            RuntimeError: The session was already consumed. This is a usage
                error, raised before any callback runs.
        """
        if self._consumed:
            raise RuntimeError("StreamSession can only be consumed once")
        events = self.events()
        try:
            async for event in events:
                await self._dispatch(event, callbacks)
        except asyncio.CancelledError:
            for event in self.state.cancel():
                await self._dispatch(event, callbacks)
            raise
        finally:
            await events.aclose()

    async def _dispatch(self, event: NormalizedEvent, callbacks: StreamCallbacks):
        try:
            if isinstance(event, ContentDelta):
                await _call(callbacks.on_content_delta, event.text, event.accumulated_text)
            elif isinstance(event, ReasoningDelta):
                await _call(callbacks.on_reasoning_delta, event.text, event.accumulated_reasoning)
            elif isinstance(event, ReasoningComplete):
                await _call(callbacks.on_reasoning_complete)
            elif isinstance(event, ImageDelta):
                await _call(callbacks.on_content_delta, event.text, event.accumulated_text)
                await _call(callbacks.on_image, event.url)
            elif isinstance(event, Completion):
                await _call(callbacks.on_completion, event.final_text, event.finish_reason)
            elif isinstance(event, StreamErrorEvent):
                if event.is_fatal:
                    await _call(callbacks.on_error, event.error)
                else:
                    await _call(callbacks.on_warning, event.error)
        except Exception:
            # Consumer errors are logged; the stream keeps going
            self.log.exception("Stream callback raised", event_type=event.type.value)

