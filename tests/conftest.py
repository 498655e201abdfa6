"""Shared fixtures: a small exercise library and fake coaching collaborators."""

import asyncio

import pytest

from fitplan.core.exceptions import LLMError
from fitplan.library import LibraryDocument, MappingMediaResolver, build_index
from fitplan.library.manifest import LibraryManifest, MuscleManifestEntry
from fitplan.schemas.plan import ExerciseInsights, SectionOverview


CHEST_HTML = """
<html><body>
<h1>Chest</h1>
<h2>Incline Bench Press</h2>
<img src="Images/incline-bench-press-front.gif">
<ol>
  <li>Set the bench to 30 degrees.</li>
  <li>Press the bar over the upper chest.</li>
</ol>
<p>Difficulty: Intermediate</p>
<p>Keep your shoulder blades retracted.</p>
<h2>Push-Up</h2>
<img src="./Images/PUSH-UP-FRONT.GIF">
<ol>
  <li>Start in a high plank.</li>
  <li>Lower your chest to the floor.</li>
</ol>
<h2>Dumbbell Pullover</h2>
<img src="Images/dumbbell-pullover-front.gif">
<h2>Cable Fly</h2>
<ol>
  <li>Stand between the cable towers.</li>
  <li>Bring the handles together in a wide arc.</li>
</ol>
<h2>Broken Section</h2>
<p>Only a paragraph, nothing to follow.</p>
</body></html>
"""

SHOULDERS_HTML = """
<html><body>
<h1>Shoulders</h1>
<h2>Push-Up (Side View)</h2>
<img src="Images/push-up-side.gif">
<ol>
  <li>Start in a high plank.</li>
  <li>Keep the elbows at 45 degrees.</li>
</ol>
<h2>Lateral Raise</h2>
<ol>
  <li>Hold a dumbbell in each hand.</li>
  <li>Raise the arms to shoulder height.</li>
</ol>
<h2>Overhead Press</h2>
<ol>
  <li>Brace the core.</li>
  <li>Press the bar overhead.</li>
</ol>
</body></html>
"""

GLUTES_HTML = """
<html><body>
<h1>Glutes</h1>
<h2>Glute Bridge</h2>
<img src="Images/glute-bridge-side.gif">
<img src="Images/glute-bridge-front.gif">
<ol>
  <li>Lie on your back with knees bent.</li>
  <li>Drive the hips up.</li>
</ol>
<p>Difficulty: Beginner</p>
<h2>Barbell Hip Thrust</h2>
<ol>
  <li>Rest the upper back on a bench.</li>
  <li>Thrust the hips to full extension.</li>
</ol>
</body></html>
"""

# No <h1>: the label comes from the slug
BICEPS_HTML = """
<html><body>
<h2>Barbell Curl</h2>
<ol><li>Curl the bar to the shoulders.</li></ol>
<h2>Hammer Curl (Front View)</h2>
<ol><li>Curl with a neutral grip.</li></ol>
<h2>Hammer Curl (Side View)</h2>
<ol><li>Curl with a neutral grip.</li></ol>
</body></html>
"""

MEDIA = {
    "incline-bench-press-front.gif": "/media/incline-bench-press-front.gif",
    "push-up-front.gif": "/media/push-up-front.gif",
    "push-up-side.gif": "/media/push-up-side.gif",
    "glute-bridge-front.gif": "/media/glute-bridge-front.gif",
    "glute-bridge-side.gif": "/media/glute-bridge-side.gif",
}


@pytest.fixture
def library_documents():
    """Library documents, deliberately not in slug order."""
    return [
        LibraryDocument(slug="shoulders", text=SHOULDERS_HTML),
        LibraryDocument(slug="chest", text=CHEST_HTML),
        LibraryDocument(slug="glutes", text=GLUTES_HTML),
        LibraryDocument(slug="biceps", text=BICEPS_HTML),
    ]


@pytest.fixture
def documents_by_slug(library_documents):
    return {document.slug: document for document in library_documents}


@pytest.fixture
def media_resolver():
    return MappingMediaResolver(MEDIA)


@pytest.fixture
def manifest():
    return LibraryManifest(
        muscles={"shoulders": MuscleManifestEntry(aliases=["deltoid", "anterior deltoid"])}
    )


@pytest.fixture
def library_index(library_documents, media_resolver, manifest):
    return build_index(library_documents, media_resolver, manifest)


class FakeCoachingGenerator:
    """In-memory coaching generator recording every request."""

    def __init__(self, fail_for=(), fail_overview=False):
        self.fail_for = set(fail_for)
        self.fail_overview = fail_overview
        self.insight_calls = []
        self.overview_calls = []

    async def generate_exercise_insights(
        self,
        exercise_name,
        muscle_label="",
        instructions=(),
        difficulty="",
        notes=(),
        cancellation_token=None,
    ):
        self.insight_calls.append((muscle_label, exercise_name))
        await asyncio.sleep(0)
        if exercise_name in self.fail_for:
            raise LLMError("upstream unavailable")
        return ExerciseInsights(
            description=f"How to perform {exercise_name}.",
            sets="3",
            reps="8-12",
            tempo="2-0-2",
            rest="90 seconds",
            equipment="Dumbbells",
            cues=["Brace the core"],
            benefits=["Builds strength"],
            safety_notes="Stop if you feel sharp pain.",
        )

    async def generate_section_overview(self, muscle_label, exercise_names=(), cancellation_token=None):
        self.overview_calls.append((muscle_label, list(exercise_names)))
        await asyncio.sleep(0)
        if self.fail_overview:
            raise LLMError("summary service down")
        return SectionOverview(
            focus=f"{muscle_label} strength",
            adaptation_goal="Hypertrophy",
            warmup_tip="Two light sets first.",
        )


@pytest.fixture
def fake_generator():
    return FakeCoachingGenerator()


@pytest.fixture
def generator_factory():
    """The fake generator class, for tests needing failures or subclasses."""
    return FakeCoachingGenerator
