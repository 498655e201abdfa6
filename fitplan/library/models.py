"""Exercise library data structures.

Everything here is immutable once constructed: parse results are validated
in ``__post_init__`` and index entries are frozen dataclasses holding tuples
and frozensets only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Mapping, TypeVar

from fitplan.core.exceptions import ParseValidationError
from fitplan.library.media import PRIMARY_MEDIA_ORIENTATIONS


@dataclass(frozen=True)
class LibraryDocument:
    """Raw semi-structured (HTML) text for one muscle group."""

    slug: str
    text: str


@dataclass(frozen=True)
class MediaAsset:
    """A bundled image referenced by a library document."""

    file_name: str
    src: str
    orientation: str = ""


@dataclass(frozen=True)
class ParsedSection:
    """One exercise section of a library document.

    Attributes:
        title: Exercise name taken from the section heading
        instructions: Ordered instruction steps
        media: Media assets that resolved to a bundled file
        notes: Free-text paragraphs that are not instructions
        difficulty: Difficulty label, empty when the document has none
    """

    title: str
    instructions: tuple[str, ...] = ()
    media: tuple[MediaAsset, ...] = ()
    notes: tuple[str, ...] = ()
    difficulty: str = ""

    def __post_init__(self):
        if not self.title.strip():
            raise ParseValidationError("Exercise section has no title")
        if not self.instructions and not self.media:
            raise ParseValidationError(
                f"Exercise section '{self.title}' has neither instructions nor resolvable media",
                {"title": self.title},
            )


@dataclass(frozen=True)
class ParsedDocument:
    slug: str
    label: str
    sections: tuple[ParsedSection, ...] = ()
    skipped_sections: int = 0

    def __post_init__(self):
        if not self.slug:
            raise ParseValidationError("Library document has no slug")
        if self.skipped_sections < 0:
            raise ParseValidationError(
                f"skipped_sections ({self.skipped_sections}) must be >= 0",
                {"slug": self.slug},
            )


@dataclass(frozen=True)
class IndexedName:
    """Name-derived lookup fields shared by every indexed entry.

    Attributes:
        id: Stable identity of the entry
        name: Raw display name
        normalized: Exact-lookup key of ``name``
        tokens: All normalized tokens of ``name``
        core_tokens: ``tokens`` without orientation/variant descriptors
        core_key: Joined ``core_tokens``
        descriptors: Descriptor words found in the name or its media
        alias_keys: Keys of every (n-1)-token subsequence of ``core_tokens``
        bigrams: Character bigrams of ``normalized``
    """

    id: str
    name: str
    normalized: str
    tokens: tuple[str, ...]
    core_tokens: tuple[str, ...]
    core_key: str
    descriptors: frozenset[str]
    alias_keys: tuple[str, ...]
    bigrams: tuple[str, ...]


@dataclass(frozen=True)
class ExerciseLibraryEntry(IndexedName):
    """A curated exercise extracted from a library document.

    ``id`` is the exercise's core key, so presentation variants of the same
    movement ("Push-Up", "Push-Up (Side View)") share an identity across
    documents.
    """

    slug: str
    muscle_label: str
    media: tuple[MediaAsset, ...]
    instructions: tuple[str, ...]
    notes: tuple[str, ...]
    difficulty: str

    @property
    def primary_media(self) -> MediaAsset | None:
        for orientation in PRIMARY_MEDIA_ORIENTATIONS:
            for asset in self.media:
                if asset.orientation == orientation:
                    return asset
        return self.media[0] if self.media else None

    @property
    def photo_urls(self) -> list[str]:
        """Media sources, primary asset first."""
        primary = self.primary_media
        if primary is None:
            return []
        return [primary.src] + [asset.src for asset in self.media if asset is not primary]

    @property
    def fallback_description(self) -> str:
        return " ".join(self.instructions)


@dataclass(frozen=True)
class MuscleLibraryEntry(IndexedName):
    """A muscle-group document and the exercises it lists, in document order."""

    slug: str
    label: str
    aliases: tuple[str, ...]
    exercises: tuple[ExerciseLibraryEntry, ...]


E = TypeVar("E", bound=IndexedName)


@dataclass(frozen=True)
class SearchIndex(Generic[E]):
    """Lookup tables over one kind of entry.

    Attributes:
        exact: Normalized name -> entry (first writer wins)
        qualified: Secondary exact names (muscle-qualified exercise names,
            muscle aliases) -> entry; never shadows ``exact``
        core_key: Core key -> entries sharing it, in index order
        alias_key: Alias key -> entries registered under it, in index order
        entries: All entries in index order
    """

    exact: Mapping[str, E]
    qualified: Mapping[str, E]
    core_key: Mapping[str, tuple[E, ...]]
    alias_key: Mapping[str, tuple[E, ...]]
    entries: tuple[E, ...]


@dataclass(frozen=True)
class LibraryIndex:
    """Immutable exercise library built once per process.

    The exercise lookup tables are exposed directly (``exact``, ``core_key``,
    ``alias_key``, ``entries``); ``muscles`` indexes the muscle documents with
    the same structure so the same matcher resolves muscle names.
    """

    exercises: SearchIndex[ExerciseLibraryEntry]
    muscles: SearchIndex[MuscleLibraryEntry]
    documents: tuple[ParsedDocument, ...]

    @property
    def exact(self) -> Mapping[str, ExerciseLibraryEntry]:
        return self.exercises.exact

    @property
    def core_key(self) -> Mapping[str, tuple[ExerciseLibraryEntry, ...]]:
        return self.exercises.core_key

    @property
    def alias_key(self) -> Mapping[str, tuple[ExerciseLibraryEntry, ...]]:
        return self.exercises.alias_key

    @property
    def entries(self) -> tuple[ExerciseLibraryEntry, ...]:
        return self.exercises.entries

    @property
    def skipped_sections(self) -> int:
        return sum(document.skipped_sections for document in self.documents)
