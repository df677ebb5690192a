"""
unichat - Provider Adapter Tests

Verifies for each protocol family:
- Request shaping (URL, auth, body)
- Frame normalization into deltas
- Finish reason mapping and in-band errors
"""

import pytest

from unichat.adapters import AnthropicAdapter, GeminiAdapter, OpenAIAdapter
from unichat.core.errors import ErrorKind
from unichat.core.models import (
    FinishReason,
    ImageContent,
    ImageUrl,
    Message,
    SamplingParams,
    TextContent,
)
from unichat.routing.router import Router
from unichat.streaming.events import (
    ContentDelta,
    ImageDelta,
    ReasoningComplete,
    ReasoningDelta,
    StreamErrorEvent,
)
from unichat.streaming.state import SessionState


def run_frames(adapter, frames, provider="test"):
    state = SessionState(provider=provider)
    events = []
    for frame in frames:
        events.extend(adapter.normalize(frame, state))
    return events, state


@pytest.fixture
def router():
    return Router()


# ============================================================
# OpenAI-compatible
# ============================================================

class TestOpenAIRequest:
    """OpenAI-compatible request shaping."""

    def test_openai_request(self, router, make_request):
        route = router.route("openai")
        request = make_request(
            messages=[Message.system("Be brief"), Message.user("Hi")],
            sampling=SamplingParams(max_tokens=100, top_p=0.9),
        )
        prepared = route.adapter.build_request(request, route)

        assert prepared.url == "https://api.openai.com/v1/chat/completions"
        assert prepared.headers["Authorization"] == "Bearer sk-test"
        assert prepared.headers["Accept"] == "text/event-stream"
        assert prepared.params == {}
        assert prepared.json == {
            "model": "gpt-4o",
            "messages": [
                {"role": "system", "content": "Be brief"},
                {"role": "user", "content": "Hi"},
            ],
            "stream": True,
            "temperature": 0.7,
            "max_tokens": 100,
            "top_p": 0.9,
        }

    def test_openrouter_headers(self, router, make_request):
        route = router.route("openrouter")
        prepared = route.adapter.build_request(make_request("openrouter"), route)

        assert prepared.url == "https://openrouter.ai/api/v1/chat/completions"
        assert prepared.headers["X-Title"] == "unichat"
        assert prepared.headers["Authorization"] == "Bearer sk-test"

    def test_modalities_and_reasoning(self, router, make_request):
        route = router.route("openrouter")
        request = make_request(
            "openrouter",
            modalities=["image", "text"],
            reasoning={"effort": "high"},
        )
        body = route.adapter.build_request(request, route).json

        assert body["modalities"] == ["image", "text"]
        assert body["reasoning"] == {"effort": "high"}

    def test_multimodal_message(self, router, make_request):
        route = router.route("openai")
        request = make_request(messages=[Message.user([
            TextContent(text="What is this?"),
            ImageContent(image_url=ImageUrl(url="data:image/png;base64,AAAA")),
        ])])
        body = route.adapter.build_request(request, route).json

        assert body["messages"][0]["content"] == [
            {"type": "text", "text": "What is this?"},
            {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA", "detail": "auto"}},
        ]


class TestOpenAINormalize:
    """OpenAI-compatible frame normalization."""

    @pytest.fixture
    def adapter(self):
        return OpenAIAdapter()

    def test_content_deltas(self, adapter):
        events, state = run_frames(adapter, [
            {"choices": [{"delta": {"content": "Hi"}}]},
            {"choices": [{"delta": {"content": " there"}, "finish_reason": "stop"}]},
        ])

        assert events == [ContentDelta("Hi", "Hi"), ContentDelta(" there", "Hi there")]
        assert state.finish_reason == FinishReason.STOP

    def test_reasoning_before_content_in_same_frame(self, adapter):
        events, _ = run_frames(adapter, [
            {"choices": [{"delta": {"reasoning": "hmm"}}]},
            {"choices": [{"delta": {"reasoning": " ok", "content": "Yes"}}]},
        ])

        assert events == [
            ReasoningDelta("hmm", "hmm"),
            ReasoningDelta(" ok", "hmm ok"),
            ReasoningComplete(),
            ContentDelta("Yes", "Yes"),
        ]

    def test_reasoning_details(self, adapter):
        events, _ = run_frames(adapter, [
            {"choices": [{"delta": {"reasoning_details": [
                {"type": "reasoning.text", "text": "step 1"},
                {"type": "reasoning.encrypted", "data": "xyz"},
            ]}}]},
        ])
        assert events == [ReasoningDelta("step 1", "step 1")]

    def test_list_content_with_image(self, adapter):
        events, state = run_frames(adapter, [
            {"choices": [{"delta": {"content": [
                {"type": "text", "text": "Look:"},
                {"type": "image_url", "image_url": {"url": "https://x/img.png"}},
            ]}}]},
        ])

        assert isinstance(events[0], ContentDelta)
        assert isinstance(events[1], ImageDelta)
        assert events[1].url == "https://x/img.png"
        assert state.content.startswith("Look:")

    def test_images_field(self, adapter):
        events, _ = run_frames(adapter, [
            {"choices": [{"delta": {"images": [
                {"type": "image_url", "image_url": {"url": "data:image/png;base64,QQ=="}},
            ]}}]},
        ])
        assert [e.url for e in events] == ["data:image/png;base64,QQ=="]

    def test_message_content_without_delta(self, adapter):
        events, state = run_frames(adapter, [
            {"choices": [{"message": {"content": "Whole answer"}, "finish_reason": "length"}]},
        ])
        assert events == [ContentDelta("Whole answer", "Whole answer")]
        assert state.finish_reason == FinishReason.LENGTH

    def test_frames_without_choices_ignored(self, adapter):
        events, _ = run_frames(adapter, [
            {"id": "x", "object": "chat.completion.chunk"},
            {"choices": []},
            {"choices": [{"delta": {}}]},
            {"choices": [{"delta": {"content": None}}]},
        ])
        assert events == []

    def test_unknown_finish_reason_is_other(self, adapter):
        _, state = run_frames(adapter, [
            {"choices": [{"delta": {}, "finish_reason": "something_new"}]},
        ])
        assert state.finish_reason == FinishReason.OTHER

    def test_error_frame_is_non_fatal(self, adapter):
        events, state = run_frames(adapter, [
            {"choices": [{"delta": {"content": "a"}}]},
            {"error": {"message": "Upstream overloaded", "type": "overloaded"}},
            {"choices": [{"delta": {"content": "b"}}]},
        ])

        warning = events[1]
        assert isinstance(warning, StreamErrorEvent)
        assert warning.is_fatal is False
        assert warning.error.kind == ErrorKind.PROVIDER_ERROR
        assert warning.error.message == "Upstream overloaded"
        assert state.content == "ab"

    def test_done_sentinel(self, adapter):
        assert adapter.is_terminal_payload("[DONE]")
        assert not adapter.is_terminal_payload('{"choices": []}')


# ============================================================
# Anthropic
# ============================================================

class TestAnthropicRequest:
    """Anthropic request shaping."""

    def test_request(self, router, make_request):
        route = router.route("anthropic")
        request = make_request(
            "anthropic",
            "claude-3-5-sonnet-latest",
            messages=[
                Message.system("System A"),
                Message.system("System B"),
                Message.user([
                    TextContent(text="Describe"),
                    ImageContent(image_url=ImageUrl(url="data:image/jpeg;base64,/9j/")),
                ]),
            ],
            sampling=SamplingParams(top_k=40),
        )
        prepared = route.adapter.build_request(request, route)

        assert prepared.url == "https://api.anthropic.com/v1/messages"
        assert prepared.headers["x-api-key"] == "sk-test"
        assert prepared.headers["anthropic-version"] == "2023-06-01"
        assert "Authorization" not in prepared.headers

        body = prepared.json
        assert body["system"] == "System A\n\nSystem B"
        assert body["max_tokens"] == AnthropicAdapter.DEFAULT_MAX_TOKENS
        assert body["temperature"] == 1.0
        assert body["top_k"] == 40
        assert body["stream"] is True
        assert body["messages"] == [{
            "role": "user",
            "content": [
                {"type": "text", "text": "Describe"},
                {
                    "type": "image",
                    "source": {"type": "base64", "media_type": "image/jpeg", "data": "/9j/"},
                },
            ],
        }]

    def test_url_image_source(self):
        block = AnthropicAdapter()._image_block("https://example.com/a.png")
        assert block == {"type": "image", "source": {"type": "url", "url": "https://example.com/a.png"}}


class TestAnthropicNormalize:
    """Anthropic event normalization."""

    @pytest.fixture
    def adapter(self):
        return AnthropicAdapter()

    def test_thinking_block_then_text(self, adapter, anthropic_thinking_frames):
        events, state = run_frames(adapter, anthropic_thinking_frames)

        assert events == [
            ReasoningDelta("Let me think", "Let me think"),
            ReasoningComplete(),
            ContentDelta("Answer", "Answer"),
        ]
        assert state.finish_reason == FinishReason.STOP

    def test_thinking_delta(self, adapter):
        events, _ = run_frames(adapter, [
            {"type": "content_block_start", "content_block": {"type": "thinking"}},
            {"type": "content_block_delta", "delta": {"type": "thinking_delta", "thinking": "Hmm"}},
            {"type": "content_block_delta", "delta": {"type": "signature_delta", "signature": "sig"}},
        ])
        assert events == [ReasoningDelta("Hmm", "Hmm")]

    def test_max_tokens_stop_reason(self, adapter):
        _, state = run_frames(adapter, [
            {"type": "message_delta", "delta": {"stop_reason": "max_tokens"}},
        ])
        assert state.finish_reason == FinishReason.LENGTH

    def test_ping_and_unknown_events_ignored(self, adapter):
        events, _ = run_frames(adapter, [{"type": "ping"}, {"type": "brand_new_event"}])
        assert events == []

    def test_error_event_is_fatal(self, adapter):
        events, state = run_frames(adapter, [
            {"type": "content_block_start", "content_block": {"type": "text"}},
            {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Par"}},
            {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}},
        ])

        error_event = events[-1]
        assert isinstance(error_event, StreamErrorEvent)
        assert error_event.is_fatal
        assert error_event.partial_content == "Par"
        assert error_event.error.message == "Overloaded"
        assert error_event.error.error.details == {"error_type": "overloaded_error"}
        assert state.stream_ended
        assert state.completion_fired


# ============================================================
# Gemini
# ============================================================

class TestGeminiRequest:
    """Gemini request shaping."""

    def test_request(self, router, make_request):
        route = router.route("gemini")
        request = make_request(
            "gemini",
            "gemini-1.5-flash",
            api_key="AIza-test",
            messages=[
                Message.system("Be kind"),
                Message.user("Hello"),
                Message.assistant("Hi!"),
                Message.user("Bye"),
            ],
        )
        prepared = route.adapter.build_request(request, route)

        assert prepared.url == (
            "https://generativelanguage.googleapis.com/v1beta/"
            "models/gemini-1.5-flash:streamGenerateContent"
        )
        assert prepared.params == {"key": "AIza-test", "alt": "sse"}
        assert "Authorization" not in prepared.headers
        assert prepared.json["contents"] == [
            {"role": "user", "parts": [{"text": "Be kind\n\nHello"}]},
            {"role": "model", "parts": [{"text": "Hi!"}]},
            {"role": "user", "parts": [{"text": "Bye"}]},
        ]
        assert prepared.json["generationConfig"] == {"temperature": 0.7, "maxOutputTokens": 8192}

    def test_system_without_user_message(self):
        contents = GeminiAdapter()._convert_messages([
            Message.system("Rules"),
            Message.assistant("Earlier reply"),
        ])
        assert contents[0] == {"role": "user", "parts": [{"text": "Rules"}]}
        assert contents[1]["role"] == "model"

    def test_inline_image(self):
        part = GeminiAdapter()._image_part("data:image/webp;base64,UklG")
        assert part == {"inlineData": {"mimeType": "image/webp", "data": "UklG"}}

    def test_prefixed_model_path(self):
        assert GeminiAdapter._model_path("models/gemini-pro") == "models/gemini-pro"


class TestGeminiNormalize:
    """Gemini frame normalization."""

    @pytest.fixture
    def adapter(self):
        return GeminiAdapter()

    def test_thought_parts_then_text(self, adapter):
        events, state = run_frames(adapter, [
            {"candidates": [{"content": {"parts": [{"text": "Thinking...", "thought": True}]}}]},
            {"candidates": [{"content": {"parts": [{"text": "Result"}]}, "finishReason": "STOP"}]},
        ])

        assert events == [
            ReasoningDelta("Thinking...", "Thinking..."),
            ReasoningComplete(),
            ContentDelta("Result", "Result"),
        ]
        assert state.finish_reason == FinishReason.STOP

    def test_string_thought_field(self, adapter):
        events, _ = run_frames(adapter, [
            {"candidates": [{"content": {"parts": [{"thought": "idea"}]}}]},
        ])
        assert events == [ReasoningDelta("idea", "idea")]

    def test_non_stop_finish_reason_is_not_an_error(self, adapter):
        events, state = run_frames(adapter, [
            {"candidates": [{"content": {"parts": [{"text": "cut"}]}, "finishReason": "SAFETY"}]},
        ])
        assert events == [ContentDelta("cut", "cut")]
        assert state.finish_reason == FinishReason.CONTENT_FILTER
        assert not state.completion_fired

    def test_max_tokens(self, adapter):
        _, state = run_frames(adapter, [
            {"candidates": [{"finishReason": "MAX_TOKENS"}]},
        ])
        assert state.finish_reason == FinishReason.LENGTH

    def test_error_field_is_warning(self, adapter):
        events, _ = run_frames(adapter, [
            {"error": {"code": 503, "message": "The model is overloaded", "status": "UNAVAILABLE"}},
        ])
        assert len(events) == 1
        assert events[0].is_fatal is False
        assert events[0].error.message == "The model is overloaded"

    def test_multiple_parts_in_one_frame(self, adapter):
        events, state = run_frames(adapter, [
            {"candidates": [{"content": {"parts": [{"text": "a"}, {"text": "b"}]}}]},
        ])
        assert [e.text for e in events] == ["a", "b"]
        assert state.content == "ab"
