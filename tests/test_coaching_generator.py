"""Tests for coaching content generation and the OpenAI-compatible provider."""

import asyncio
import json

import httpx
import pytest

from fitplan.core.cancellation import CancellationToken
from fitplan.core.exceptions import (
    LLMConfigurationError,
    LLMError,
    LLMResponseError,
    PlanCancelledError,
    ValidationError,
)
from fitplan.llm import cleanup_llm_provider, get_llm_provider
from fitplan.llm.base import LLMConfig, LLMProvider, LLMResponse, Message, PromptBuilder
from fitplan.llm.openai_provider import OpenAIProvider, scrub_json
from fitplan.services.coaching import (
    CoachingContentGenerator,
    normalize_string,
    normalize_string_list,
)


INSIGHTS = {
    "description": "  A pressing movement for the upper chest. ",
    "recommended_sets": "3-4",
    "recommended_reps": "8-10",
    "tempo": "3-1-1",
    "rest": "90 seconds",
    "equipment": "Barbell and incline bench",
    "cues": ["Retract the shoulder blades", "", "Drive through the feet"],
    "benefits": "Upper chest size, pressing strength",
    "video_urls": ["https://example.com/incline.mp4"],
    "safety_notes": "Use a spotter near failure.",
}


class RecordingProvider(LLMProvider):
    """Provider double returning canned structured data."""

    def __init__(self, structured_data):
        self.structured_data = structured_data
        self.calls = []

    async def chat(self, messages, config):
        self.calls.append((messages, config))
        return LLMResponse(content=json.dumps(self.structured_data or {}), structured_data=self.structured_data)


def _completion(content, status=200):
    return httpx.Response(
        status,
        json={
            "model": "gpt-4o-mini",
            "choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
            "usage": {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30},
        },
    )


class TestNormalization:
    def test_normalize_string(self):
        assert normalize_string("  text ") == "text"
        assert normalize_string(None) == ""
        assert normalize_string(5) == ""

    def test_normalize_string_list(self):
        assert normalize_string_list([" a ", "", 3, "b"]) == ["a", "b"]
        assert normalize_string_list("a, b\nc") == ["a", "b", "c"]
        assert normalize_string_list(None) == []

    def test_scrub_json(self):
        assert scrub_json('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert scrub_json('  {"a": 1} ') == '{"a": 1}'
        assert scrub_json(None) == ""


class TestPromptBuilder:
    def test_builds_system_and_user_messages(self):
        messages = PromptBuilder("system text").add("first").add("").add("second").build()
        assert [message.role for message in messages] == ["system", "user"]
        assert messages[1].content == "first\n\nsecond"


class TestExerciseInsights:
    """Per-exercise coaching notes."""

    @pytest.mark.asyncio
    async def test_maps_structured_response(self):
        provider = RecordingProvider(INSIGHTS)
        generator = CoachingContentGenerator(provider=provider)

        insights = await generator.generate_exercise_insights(
            "Incline Bench Press",
            muscle_label="Chest",
            instructions=["Set the bench to 30 degrees.", "Press the bar."],
            difficulty="Intermediate",
            notes=["Keep your shoulder blades retracted."],
        )

        assert insights.description == "A pressing movement for the upper chest."
        assert insights.sets == "3-4"
        assert insights.reps == "8-10"
        assert insights.cues == ["Retract the shoulder blades", "Drive through the feet"]
        assert insights.benefits == ["Upper chest size", "pressing strength"]
        assert insights.video_urls == ["https://example.com/incline.mp4"]

    @pytest.mark.asyncio
    async def test_prompt_is_grounded_in_library_material(self):
        provider = RecordingProvider(INSIGHTS)
        generator = CoachingContentGenerator(
            provider=provider,
            experience_level="beginner",
            available_equipment="dumbbells only",
        )

        await generator.generate_exercise_insights(
            "Incline Bench Press",
            muscle_label="Chest",
            instructions=["Set the bench to 30 degrees.", "Press the bar."],
            difficulty="Intermediate",
            notes=["Keep your shoulder blades retracted."],
        )

        messages, config = provider.calls[0]
        prompt = messages[1].content
        assert '"Incline Bench Press"' in prompt
        assert "beginner experience level" in prompt
        assert "dumbbells only" in prompt
        assert "Focus on the Chest" in prompt
        assert "Difficulty: Intermediate." in prompt
        assert "1. Set the bench to 30 degrees.\n2. Press the bar." in prompt
        assert "Additional context: Keep your shoulder blades retracted." in prompt
        assert config.json_schema is not None

    @pytest.mark.asyncio
    async def test_results_are_cached_per_request(self):
        provider = RecordingProvider(INSIGHTS)
        generator = CoachingContentGenerator(provider=provider)

        first = await generator.generate_exercise_insights("Push-Up", muscle_label="Chest")
        first.cues.append("mutated by caller")
        second = await generator.generate_exercise_insights(" push-up ", muscle_label="chest")

        assert len(provider.calls) == 1
        assert "mutated by caller" not in second.cues

        await generator.generate_exercise_insights("Push-Up", muscle_label="Shoulders")
        assert len(provider.calls) == 2

        generator.clear_cache()
        await generator.generate_exercise_insights("Push-Up", muscle_label="Chest")
        assert len(provider.calls) == 3

    @pytest.mark.asyncio
    async def test_empty_name_is_rejected(self):
        generator = CoachingContentGenerator(provider=RecordingProvider(INSIGHTS))
        with pytest.raises(ValidationError):
            await generator.generate_exercise_insights("   ")

    @pytest.mark.asyncio
    async def test_missing_structured_data(self):
        generator = CoachingContentGenerator(provider=RecordingProvider(None))
        with pytest.raises(LLMResponseError):
            await generator.generate_exercise_insights("Push-Up")


class GatedProvider(LLMProvider):
    """Provider double whose calls block until released."""

    def __init__(self, structured_data):
        self.structured_data = structured_data
        self.release = asyncio.Event()
        self.calls = 0

    async def chat(self, messages, config):
        self.calls += 1
        await self.release.wait()
        return LLMResponse(content="{}", structured_data=self.structured_data)


class TestInFlightSharing:
    """Identical concurrent requests wait on one provider call."""

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_call(self):
        provider = GatedProvider(INSIGHTS)
        generator = CoachingContentGenerator(provider=provider)

        first = asyncio.create_task(generator.generate_exercise_insights("Push-Up", muscle_label="Chest"))
        second = asyncio.create_task(generator.generate_exercise_insights("push-up", muscle_label="chest"))
        while provider.calls == 0:
            await asyncio.sleep(0)
        provider.release.set()

        results = await asyncio.gather(first, second)

        assert provider.calls == 1
        assert results[0] == results[1]
        assert results[0] is not results[1]

    @pytest.mark.asyncio
    async def test_cancelled_caller_leaves_others_waiting(self):
        provider = GatedProvider(INSIGHTS)
        generator = CoachingContentGenerator(provider=provider)
        token = CancellationToken()

        cancelled = asyncio.create_task(generator.generate_exercise_insights("Push-Up", cancellation_token=token))
        waiting = asyncio.create_task(generator.generate_exercise_insights("Push-Up"))
        while provider.calls == 0:
            await asyncio.sleep(0)

        token.cancel()
        with pytest.raises(PlanCancelledError):
            await cancelled
        provider.release.set()

        insights = await waiting
        assert insights.sets == "3-4"
        assert provider.calls == 1

    @pytest.mark.asyncio
    async def test_abandoned_call_is_not_cached(self):
        provider = GatedProvider(INSIGHTS)
        generator = CoachingContentGenerator(provider=provider)
        token = CancellationToken()

        pending = asyncio.create_task(generator.generate_exercise_insights("Push-Up", cancellation_token=token))
        while provider.calls == 0:
            await asyncio.sleep(0)
        token.cancel()
        with pytest.raises(PlanCancelledError):
            await pending

        provider.release.set()
        await generator.generate_exercise_insights("Push-Up")
        assert provider.calls == 2

    @pytest.mark.asyncio
    async def test_failed_call_is_retried(self):
        provider = RecordingProvider(None)
        generator = CoachingContentGenerator(provider=provider)

        with pytest.raises(LLMResponseError):
            await generator.generate_exercise_insights("Push-Up")
        provider.structured_data = INSIGHTS
        insights = await generator.generate_exercise_insights("Push-Up")

        assert insights.reps == "8-10"
        assert len(provider.calls) == 2

class TestSectionOverview:
    @pytest.mark.asyncio
    async def test_overview(self):
        provider = RecordingProvider(
            {"focus": "Upper chest", "adaptation_goal": "Hypertrophy", "warmup_tip": "Band pull-aparts"}
        )
        generator = CoachingContentGenerator(provider=provider)

        overview = await generator.generate_section_overview("Chest", ["Incline Bench Press", "Push-Up"])

        assert overview.focus == "Upper chest"
        assert overview.warmup_tip == "Band pull-aparts"
        assert "Incline Bench Press, Push-Up" in provider.calls[0][0][1].content

    @pytest.mark.asyncio
    async def test_overview_cache_ignores_exercise_order(self):
        provider = RecordingProvider({"focus": "Chest"})
        generator = CoachingContentGenerator(provider=provider)

        await generator.generate_section_overview("Chest", ["Push-Up", "Cable Fly"])
        await generator.generate_section_overview("Chest", ["Cable Fly", "Push-Up"])

        assert len(provider.calls) == 1


class TestOpenAIProvider:
    """HTTP behaviour of the OpenAI-compatible provider."""

    MESSAGES = [Message(role="system", content="coach"), Message(role="user", content="hello")]

    @pytest.mark.asyncio
    async def test_fenced_json_is_parsed(self):
        requests = []

        def handler(request):
            requests.append(request)
            return _completion('```json\n{"focus": "Chest"}\n```')

        provider = OpenAIProvider(
            api_key="test-key",
            base_url="https://llm.test/v1/",
            transport=httpx.MockTransport(handler),
        )
        response = await provider.chat(self.MESSAGES, LLMConfig(json_schema={"type": "object"}))
        await provider.close()

        assert response.structured_data == {"focus": "Chest"}
        assert response.usage["total_tokens"] == 30
        assert str(requests[0].url) == "https://llm.test/v1/chat/completions"
        assert requests[0].headers["Authorization"] == "Bearer test-key"
        payload = json.loads(requests[0].content)
        assert payload["response_format"] == {"type": "json_object"}
        assert "Respond with valid JSON matching this schema" in payload["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        provider = OpenAIProvider(api_key="", transport=httpx.MockTransport(lambda request: _completion("{}")))
        with pytest.raises(LLMConfigurationError):
            await provider.chat(self.MESSAGES, LLMConfig())

    @pytest.mark.asyncio
    async def test_http_error(self):
        provider = OpenAIProvider(
            api_key="test-key",
            transport=httpx.MockTransport(lambda request: httpx.Response(503, text="unavailable")),
        )
        with pytest.raises(LLMError) as exc_info:
            await provider.chat(self.MESSAGES, LLMConfig())
        assert exc_info.value.code == "LLM_HTTP_ERROR"
        assert exc_info.value.details == {"status": 503}

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        provider = OpenAIProvider(api_key="test-key", transport=httpx.MockTransport(handler))
        with pytest.raises(LLMError) as exc_info:
            await provider.chat(self.MESSAGES, LLMConfig())
        assert exc_info.value.code == "LLM_TIMEOUT"

    @pytest.mark.asyncio
    async def test_unparseable_json(self):
        provider = OpenAIProvider(
            api_key="test-key",
            transport=httpx.MockTransport(lambda request: _completion("not json at all")),
        )
        with pytest.raises(LLMResponseError) as exc_info:
            await provider.chat(self.MESSAGES, LLMConfig(json_schema={"type": "object"}))
        assert exc_info.value.code == "LLM_PARSE_ERROR"

    @pytest.mark.asyncio
    async def test_empty_content(self):
        provider = OpenAIProvider(
            api_key="test-key",
            transport=httpx.MockTransport(lambda request: _completion("   ")),
        )
        with pytest.raises(LLMResponseError) as exc_info:
            await provider.chat(self.MESSAGES, LLMConfig())
        assert exc_info.value.code == "LLM_EMPTY_RESPONSE"

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = OpenAIProvider(api_key="test-key", transport=httpx.MockTransport(handler))
        with pytest.raises(LLMError) as exc_info:
            await provider.chat(self.MESSAGES, LLMConfig())
        assert exc_info.value.code == "LLM_NETWORK_ERROR"

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        provider = OpenAIProvider(
            api_key="test-key",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>gateway</html>")),
        )
        with pytest.raises(LLMResponseError) as exc_info:
            await provider.chat(self.MESSAGES, LLMConfig())
        assert exc_info.value.code == "LLM_PARSE_ERROR"

    @pytest.mark.asyncio
    async def test_generator_surfaces_configuration_errors(self):
        provider = OpenAIProvider(api_key="", transport=httpx.MockTransport(lambda request: _completion("{}")))
        generator = CoachingContentGenerator(provider=provider)
        with pytest.raises(LLMConfigurationError):
            await generator.generate_exercise_insights("Push-Up")


class TestProviderSingleton:
    @pytest.mark.asyncio
    async def test_get_and_cleanup(self):
        await cleanup_llm_provider()

        provider = get_llm_provider()
        assert isinstance(provider, OpenAIProvider)
        assert get_llm_provider() is provider

        await cleanup_llm_provider()
        assert get_llm_provider() is not provider
        await cleanup_llm_provider()
