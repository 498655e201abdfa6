"""
Workout plan composition.

Turns a list of target muscle groups into plan sections:

1. Resolve each muscle to its library document with the name matcher
2. Select unclaimed exercises (plan-wide deduplication, first group wins)
3. Enrich the selected exercises concurrently with coaching content
4. Request one overview per section once its exercises are enriched

Muscle groups are processed sequentially in input order because selection
must observe every exercise claimed by earlier groups. Local failures
(unresolvable muscle, enrichment or overview errors) become data on the
section; cancellation is the one failure that propagates.
"""

from __future__ import annotations

import asyncio
from typing import Any, Iterable, Protocol

from pydantic import ValidationError as PydanticValidationError

from fitplan.config.settings import get_settings
from fitplan.core.cancellation import CancellationToken
from fitplan.core.exceptions import PlanCancelledError, ValidationError
from fitplan.core.logging import get_logger
from fitplan.library.models import ExerciseLibraryEntry, LibraryIndex, MuscleLibraryEntry
from fitplan.ml.matching.matcher import Matcher, MatchResult
from fitplan.schemas.plan import (
    EnrichedExercise,
    ExerciseInsights,
    MuscleGroup,
    PlanSection,
    SectionOverview,
)

logger = get_logger(__name__)


class CoachingGenerator(Protocol):
    async def generate_exercise_insights(
        self,
        exercise_name: str,
        muscle_label: str = "",
        instructions: Iterable[str] = (),
        difficulty: str = "",
        notes: Iterable[str] = (),
        cancellation_token: CancellationToken | None = None,
    ) -> ExerciseInsights: ...

    async def generate_section_overview(
        self,
        muscle_label: str,
        exercise_names: Iterable[str] = (),
        cancellation_token: CancellationToken | None = None,
    ) -> SectionOverview: ...


def _error_message(error: Exception) -> str:
    return getattr(error, "message", None) or str(error) or error.__class__.__name__


def muscle_queries(muscle: MuscleGroup) -> list[str]:
    """Candidate library queries for a muscle, most specific first."""
    candidates = [muscle.library_key, muscle.label, muscle.name]
    for value in (muscle.label, muscle.name):
        if not value:
            continue
        without_parenthetical = value.split("(", 1)[0].strip()
        candidates.append(without_parenthetical)
        candidates.append(
            " ".join(word for word in without_parenthetical.split() if word.lower() not in {"muscle", "muscles"})
        )

    queries: list[str] = []
    for candidate in candidates:
        candidate = (candidate or "").strip()
        if candidate and candidate not in queries:
            queries.append(candidate)
    return queries


def fallback_exercise(entry: ExerciseLibraryEntry, detail_error: str) -> EnrichedExercise:
    """Library-only rendition of an exercise whose enrichment failed."""
    return EnrichedExercise(
        id=entry.id,
        name=entry.name,
        description=entry.fallback_description,
        safety_notes=" ".join(entry.notes),
        photo_urls=entry.photo_urls,
        difficulty=entry.difficulty,
        library_steps=list(entry.instructions),
        detail_error=detail_error,
    )


def enriched_exercise(entry: ExerciseLibraryEntry, insights: ExerciseInsights) -> EnrichedExercise:
    return EnrichedExercise(
        id=entry.id,
        name=entry.name,
        description=insights.description or entry.fallback_description,
        sets=insights.sets,
        reps=insights.reps,
        tempo=insights.tempo,
        rest=insights.rest,
        equipment=insights.equipment,
        cues=list(insights.cues),
        benefits=list(insights.benefits),
        safety_notes=insights.safety_notes or " ".join(entry.notes),
        photo_urls=entry.photo_urls,
        video_urls=list(insights.video_urls),
        difficulty=entry.difficulty,
        library_steps=list(entry.instructions),
    )


class PlanComposer:
    """Compose workout plans from the exercise library.

    Example:
        >>> composer = PlanComposer(get_library_index(), CoachingContentGenerator())
        >>> sections = await composer.compose_plan(muscles, exercises_per_muscle=3)
    """

    def __init__(
        self,
        index: LibraryIndex,
        generator: CoachingGenerator,
        default_exercises_per_muscle: int | None = None,
    ):
        self._index = index
        self._generator = generator
        self._muscle_matcher: Matcher[MuscleLibraryEntry] = Matcher(index.muscles)
        if default_exercises_per_muscle is None:
            default_exercises_per_muscle = get_settings().default_exercises_per_muscle
        self.default_exercises_per_muscle = default_exercises_per_muscle

    def resolve_muscle(self, muscle: MuscleGroup) -> MatchResult[MuscleLibraryEntry]:
        """Try each candidate query; the best failed attempt is returned when none match."""
        best_miss: MatchResult[MuscleLibraryEntry] | None = None
        for query in muscle_queries(muscle):
            result = self._muscle_matcher.match(query)
            if result.matched:
                return result
            if best_miss is None or result.suggestion_score > best_miss.suggestion_score:
                best_miss = result
        if best_miss is None:
            best_miss = self._muscle_matcher.match("")
        return best_miss

    @staticmethod
    def select_exercises(
        muscle_entry: MuscleLibraryEntry,
        selected_ids: set[str],
        limit: int,
    ) -> list[ExerciseLibraryEntry]:
        """Unclaimed exercises in document order, reserved in ``selected_ids``.

        ``limit`` <= 0 takes every unclaimed exercise.
        """
        chosen: list[ExerciseLibraryEntry] = []
        for exercise in muscle_entry.exercises:
            if limit > 0 and len(chosen) >= limit:
                break
            if exercise.id in selected_ids:
                continue
            selected_ids.add(exercise.id)
            chosen.append(exercise)
        return chosen

    @staticmethod
    def _coerce_muscles(muscle_groups: Iterable[Any]) -> list[MuscleGroup]:
        if muscle_groups is None or isinstance(muscle_groups, (str, bytes, dict)):
            raise ValidationError("muscle_groups", "must be a list of muscle groups")

        muscles = []
        for position, item in enumerate(muscle_groups):
            if isinstance(item, MuscleGroup):
                muscles.append(item)
                continue
            try:
                muscles.append(MuscleGroup.model_validate(item))
            except PydanticValidationError as e:
                raise ValidationError(
                    "muscle_groups",
                    f"item {position} is not a valid muscle group",
                    {"field": "muscle_groups", "position": position, "errors": e.errors()},
                ) from e
        return muscles

    async def compose_plan(
        self,
        muscle_groups: Iterable[MuscleGroup | dict],
        exercises_per_muscle: int | None = None,
        cancellation_token: CancellationToken | None = None,
    ) -> list[PlanSection]:
        """Compose one section per muscle group, in input order.

        Args:
            muscle_groups: Target muscles; dicts are validated into MuscleGroup
            exercises_per_muscle: Exercises per section; <= 0 takes all
            cancellation_token: Shared token aborting every external call

        Returns:
            Sections that have at least one exercise or an error.

        Raises:
            PlanCancelledError: the token fired; no further groups are processed
            ValidationError: malformed muscle-group input
        """
        muscles = self._coerce_muscles(muscle_groups)
        limit = self.default_exercises_per_muscle if exercises_per_muscle is None else exercises_per_muscle
        token = cancellation_token or CancellationToken()
        selected_ids: set[str] = set()
        sections: list[PlanSection] = []

        logger.info("plan_composition_started", muscles=len(muscles), exercises_per_muscle=limit)

        for muscle in muscles:
            token.raise_if_cancelled()
            try:
                section = await self._compose_section(muscle, selected_ids, limit, token)
            except PlanCancelledError:
                logger.info(
                    "plan_composition_cancelled",
                    muscle=muscle.label,
                    completed_sections=len(sections),
                )
                raise
            if section.has_content:
                sections.append(section)
            else:
                logger.info("plan_section_dropped", muscle=muscle.label, reason="no unclaimed exercises")

        logger.info(
            "plan_composition_finished",
            sections=len(sections),
            exercises=sum(len(section.exercises) for section in sections),
        )
        return sections

    async def _compose_section(
        self,
        muscle: MuscleGroup,
        selected_ids: set[str],
        limit: int,
        token: CancellationToken,
    ) -> PlanSection:
        resolution = self.resolve_muscle(muscle)
        if not resolution.matched or resolution.entry is None:
            error = f"No exercise library entry matches '{muscle.label}'."
            if resolution.suggestion is not None:
                error += f" Closest candidate: {resolution.suggestion.label} (score {resolution.suggestion_score:.2f})."
            logger.warning("muscle_unresolved", muscle=muscle.label, score=resolution.suggestion_score)
            return PlanSection(muscle=muscle, error=error)

        muscle_entry = resolution.entry
        chosen = self.select_exercises(muscle_entry, selected_ids, limit)
        if not chosen:
            return PlanSection(muscle=muscle)

        exercises = await self._enrich_all(chosen, muscle_entry, token)

        overview = None
        overview_error = None
        try:
            overview = await token.run(
                self._generator.generate_section_overview(
                    muscle_label=muscle_entry.label,
                    exercise_names=[exercise.name for exercise in exercises],
                    cancellation_token=token,
                )
            )
        except PlanCancelledError:
            raise
        except Exception as e:
            overview_error = f"Section overview unavailable: {_error_message(e)}"
            logger.warning("section_overview_failed", muscle=muscle.label, error=_error_message(e))

        logger.info(
            "plan_section_composed",
            muscle=muscle.label,
            library=muscle_entry.slug,
            strategy=resolution.strategy,
            exercises=[exercise.id for exercise in exercises],
            enrichment_failures=sum(1 for exercise in exercises if exercise.detail_error),
        )
        return PlanSection(
            muscle=muscle,
            exercises=exercises,
            overview=overview,
            overview_error=overview_error,
        )

    async def _enrich_all(
        self,
        chosen: list[ExerciseLibraryEntry],
        muscle_entry: MuscleLibraryEntry,
        token: CancellationToken,
    ) -> list[EnrichedExercise]:
        tasks = [asyncio.create_task(self._enrich_exercise(entry, muscle_entry, token)) for entry in chosen]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _enrich_exercise(
        self,
        entry: ExerciseLibraryEntry,
        muscle_entry: MuscleLibraryEntry,
        token: CancellationToken,
    ) -> EnrichedExercise:
        try:
            insights = await token.run(
                self._generator.generate_exercise_insights(
                    exercise_name=entry.name,
                    muscle_label=muscle_entry.label,
                    instructions=entry.instructions,
                    difficulty=entry.difficulty,
                    notes=entry.notes,
                    cancellation_token=token,
                )
            )
        except PlanCancelledError:
            raise
        except Exception as e:
            logger.warning("exercise_enrichment_failed", exercise=entry.name, error=_error_message(e))
            return fallback_exercise(entry, f"Coaching guidance unavailable: {_error_message(e)}")
        return enriched_exercise(entry, insights)
