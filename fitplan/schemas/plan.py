"""Workout plan schemas."""
from pydantic import BaseModel, ConfigDict, Field, model_validator


class MuscleGroup(BaseModel):
    """A target muscle selected by the user.

    ``api_ids`` lets one group stand for several upstream catalog ids;
    ``library_key`` is an optional slug hint for library resolution.
    """

    model_config = ConfigDict(frozen=True)

    id: int | str
    label: str = Field(min_length=1)
    api_ids: tuple[int | str, ...] = ()
    name: str | None = None
    library_key: str | None = None
    is_front: bool | None = None

    @model_validator(mode="before")
    @classmethod
    def _default_api_ids(cls, data):
        if isinstance(data, dict) and not data.get("api_ids") and data.get("id") is not None:
            data = {**data, "api_ids": (data["id"],)}
        return data


class ExerciseInsights(BaseModel):
    """Coaching content generated for one exercise."""

    description: str = ""
    sets: str = ""
    reps: str = ""
    tempo: str = ""
    rest: str = ""
    equipment: str = ""
    cues: list[str] = Field(default_factory=list)
    benefits: list[str] = Field(default_factory=list)
    video_urls: list[str] = Field(default_factory=list)
    safety_notes: str = ""


class SectionOverview(BaseModel):
    focus: str = ""
    adaptation_goal: str = ""
    warmup_tip: str = ""


class EnrichedExercise(BaseModel):
    """A selected library exercise with coaching content.

    When enrichment fails ``detail_error`` is set and the coaching fields
    hold library-derived fallbacks; the exercise is still part of the plan.
    """

    id: str
    name: str
    description: str = ""
    sets: str = ""
    reps: str = ""
    tempo: str = ""
    rest: str = ""
    equipment: str = ""
    cues: list[str] = Field(default_factory=list)
    benefits: list[str] = Field(default_factory=list)
    safety_notes: str = ""
    photo_urls: list[str] = Field(default_factory=list)
    video_urls: list[str] = Field(default_factory=list)
    difficulty: str = ""
    library_steps: list[str] = Field(default_factory=list)
    detail_error: str | None = None


class PlanSection(BaseModel):
    muscle: MuscleGroup
    exercises: list[EnrichedExercise] = Field(default_factory=list)
    overview: SectionOverview | None = None
    overview_error: str | None = None
    error: str | None = None

    @property
    def has_content(self) -> bool:
        return bool(self.exercises) or bool(self.error)
