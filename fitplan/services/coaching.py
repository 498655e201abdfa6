"""
Coaching content generation.

Produces per-exercise coaching notes and per-section overviews through the
configured LLM provider, grounding prompts in the exercise library's own
instructions, difficulty and notes. Results are cached for the
process lifetime, keyed by the normalized request.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from fitplan.config.settings import get_settings
from fitplan.core.cancellation import CancellationToken
from fitplan.core.exceptions import LLMResponseError, ValidationError
from fitplan.llm import get_llm_provider
from fitplan.llm.base import LLMConfig, LLMProvider, PromptBuilder
from fitplan.llm.schemas import EXERCISE_INSIGHTS_SCHEMA, SECTION_OVERVIEW_SCHEMA
from fitplan.schemas.plan import ExerciseInsights, SectionOverview

logger = logging.getLogger(__name__)

T = TypeVar("T")

EXERCISE_COACH_PROMPT = (
    "You are a certified strength and conditioning coach who creates safe, "
    "effective resistance training workouts. Respond in valid JSON."
)
SECTION_COACH_PROMPT = (
    "You are a knowledgeable strength coach summarizing focused resistance "
    "training blocks. Respond in valid JSON."
)


def normalize_string(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()


def normalize_string_list(value: Any) -> list[str]:
    """Accept a list of strings, or a comma/newline separated string."""
    if isinstance(value, list):
        items = [normalize_string(item) for item in value]
    elif isinstance(value, str):
        items = [item.strip() for item in value.replace("\r", "\n").replace(",", "\n").split("\n")]
    else:
        return []
    return [item for item in items if item]


def _cache_part(value: Any) -> str:
    return normalize_string(value).lower()


def _cache_list(values: Iterable[Any] | None) -> list[str]:
    return [part for part in (_cache_part(value) for value in values or ()) if part]


class _SharedCall:
    """An in-flight or finished provider call shared by identical requests."""

    def __init__(self, task: asyncio.Task):
        self.task = task
        self.waiters = 0


class CoachingContentGenerator:
    """Generate coaching notes and section overviews.

    Implements the coaching-content generator and section summarizer
    collaborators of the plan composer. Both calls honor the cancellation
    token and raise on failure; the composer turns failures into data.

    Identical concurrent requests wait on one provider call. A caller whose
    token fires stops waiting; the shared call is cancelled only once no
    caller is left waiting on it. Failed or cancelled calls are evicted so
    the next request retries.
    """

    def __init__(
        self,
        provider: LLMProvider | None = None,
        experience_level: str | None = None,
        available_equipment: str | None = None,
        temperature: float | None = None,
    ):
        settings = get_settings()
        self._provider = provider
        self.experience_level = experience_level or settings.default_experience_level
        self.available_equipment = available_equipment or settings.default_available_equipment
        self.temperature = settings.openai_temperature if temperature is None else temperature
        self._insights_cache: dict[str, _SharedCall] = {}
        self._overview_cache: dict[str, _SharedCall] = {}

    @property
    def provider(self) -> LLMProvider:
        if self._provider is None:
            self._provider = get_llm_provider()
        return self._provider

    async def _request_json(self, prompt: PromptBuilder, schema: dict) -> dict:
        config = LLMConfig(temperature=self.temperature, json_schema=schema)
        response = await self.provider.chat(prompt.build(), config)
        if response.structured_data is None:
            raise LLMResponseError("Coaching response did not include structured data.")
        return response.structured_data

    async def _shared(
        self,
        cache: dict[str, _SharedCall],
        key: str,
        factory: Callable[[], Awaitable[T]],
        cancellation_token: CancellationToken | None,
    ) -> T:
        entry = cache.get(key)
        if entry is not None and entry.task.done():
            if _succeeded(entry.task):
                return entry.task.result()
            entry = None
        if entry is None:
            if cancellation_token is not None:
                cancellation_token.raise_if_cancelled()
            entry = _SharedCall(asyncio.ensure_future(factory()))
            cache[key] = entry
            entry.task.add_done_callback(partial(_evict_unsuccessful, cache, key, entry))

        entry.waiters += 1
        try:
            waiter = asyncio.shield(entry.task)
            if cancellation_token is not None:
                return await cancellation_token.run(waiter)
            return await waiter
        finally:
            entry.waiters -= 1
            if entry.waiters == 0 and not entry.task.done():
                logger.debug("No caller left waiting on coaching request %s; cancelling it", key)
                entry.task.cancel()
                if cache.get(key) is entry:
                    del cache[key]

    async def generate_exercise_insights(
        self,
        exercise_name: str,
        muscle_label: str = "",
        instructions: Iterable[str] = (),
        difficulty: str = "",
        notes: Iterable[str] = (),
        cancellation_token: CancellationToken | None = None,
        experience_level: str | None = None,
        available_equipment: str | None = None,
    ) -> ExerciseInsights:
        """Coaching notes for one exercise, grounded in library reference material.

        Raises:
            ValidationError: ``exercise_name`` is empty
            PlanCancelledError: the token fired before or during the call
            LLMError: provider failure (timeout, HTTP error, missing key, bad JSON)
        """
        if not normalize_string(exercise_name):
            raise ValidationError("exercise_name", "is required to request coaching insights")

        experience_level = experience_level or self.experience_level
        available_equipment = available_equipment or self.available_equipment
        steps = [step for step in (normalize_string(s) for s in instructions) if step]
        extra_notes = [note for note in (normalize_string(n) for n in notes) if note]
        difficulty = normalize_string(difficulty)
        muscle = normalize_string(muscle_label)

        cache_key = "::".join(
            part
            for part in (
                _cache_part(exercise_name),
                _cache_part(muscle),
                _cache_part(experience_level),
                _cache_part(available_equipment),
                _cache_part(difficulty),
                "|".join(_cache_list(steps)),
                "|".join(_cache_list(extra_notes)),
            )
            if part
        )

        reference_lines = []
        if difficulty:
            reference_lines.append(f"Difficulty: {difficulty}.")
        if steps:
            numbered = "\n".join(f"{i}. {step}" for i, step in enumerate(steps, start=1))
            reference_lines.append(f"Steps to reference:\n{numbered}")
        if extra_notes:
            reference_lines.append(f"Additional context: {' '.join(extra_notes)}")

        prompt = PromptBuilder(EXERCISE_COACH_PROMPT).add(
            f'Provide detailed coaching notes for the exercise "{exercise_name}". '
            f"Assume the trainee has an {experience_level} experience level and access to "
            f"{available_equipment}. Focus on the {muscle or 'target muscle group'}. "
            "Use the reference material when crafting your guidance."
        )
        if reference_lines:
            prompt.add("Reference details from our exercise library:\n" + "\n".join(reference_lines))
        prompt.add(
            "Respond in JSON with the following keys: description (string), recommended_sets (string), "
            "recommended_reps (string), tempo (string), rest (string), equipment (string), cues (array of "
            "strings), benefits (array of strings), video_urls (array of urls), safety_notes (string). "
            "Ensure the cues and benefits are practical and rooted in the reference information."
        )

        async def fetch() -> ExerciseInsights:
            data = await self._request_json(prompt, EXERCISE_INSIGHTS_SCHEMA)
            return ExerciseInsights(
                description=normalize_string(data.get("description")),
                sets=normalize_string(data.get("recommended_sets")),
                reps=normalize_string(data.get("recommended_reps")),
                tempo=normalize_string(data.get("tempo")),
                rest=normalize_string(data.get("rest")),
                equipment=normalize_string(data.get("equipment")),
                cues=normalize_string_list(data.get("cues")),
                benefits=normalize_string_list(data.get("benefits")),
                video_urls=normalize_string_list(data.get("video_urls")),
                safety_notes=normalize_string(data.get("safety_notes")),
            )

        insights = await self._shared(self._insights_cache, cache_key, fetch, cancellation_token)
        return insights.model_copy(deep=True)

    async def generate_section_overview(
        self,
        muscle_label: str,
        exercise_names: Iterable[str] = (),
        cancellation_token: CancellationToken | None = None,
    ) -> SectionOverview:
        """One summary for a muscle-group block of exercises."""
        names = [name for name in (normalize_string(n) for n in exercise_names) if name]
        cache_key = "::".join(
            part for part in (_cache_part(muscle_label), "|".join(sorted(_cache_list(names)))) if part
        )

        exercises_text = ", ".join(names) if names else "a mix of complementary movements"
        prompt = PromptBuilder(SECTION_COACH_PROMPT).add(
            "Create a concise training focus summary for a workout block targeting the "
            f"{normalize_string(muscle_label) or 'selected muscle group'}. The block should include the "
            f"following exercises: {exercises_text}. Return JSON with keys: focus (string), "
            "adaptation_goal (string), warmup_tip (string)."
        )

        async def fetch() -> SectionOverview:
            data = await self._request_json(prompt, SECTION_OVERVIEW_SCHEMA)
            return SectionOverview(
                focus=normalize_string(data.get("focus")),
                adaptation_goal=normalize_string(data.get("adaptation_goal")),
                warmup_tip=normalize_string(data.get("warmup_tip")),
            )

        overview = await self._shared(self._overview_cache, cache_key, fetch, cancellation_token)
        return overview.model_copy()

    def clear_cache(self) -> None:
        self._insights_cache.clear()
        self._overview_cache.clear()


def _succeeded(task: asyncio.Task) -> bool:
    return not task.cancelled() and task.exception() is None


def _evict_unsuccessful(cache: dict[str, _SharedCall], key: str, entry: _SharedCall, task: asyncio.Task) -> None:
    if not _succeeded(task) and cache.get(key) is entry:
        del cache[key]
