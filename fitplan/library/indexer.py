"""Exercise library index construction.

Builds the immutable ``LibraryIndex`` from library documents:

- exact: normalized exercise name -> entry (first writer wins)
- core_key: descriptor-free token key -> entries sharing it
- alias_key: every (n-1)-token subsequence key -> entries
- a second index of the same shape over the muscle documents

Documents are processed in slug order so index construction is
deterministic. ``build_index`` is pure; ``init_library_index`` performs the
one-time process initialization from the configured library directory.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Sequence, TypeVar

from fitplan.config.settings import Settings, get_settings
from fitplan.core.exceptions import LibraryError, LibraryNotInitializedError
from fitplan.library.manifest import LibraryManifest, load_manifest
from fitplan.library.media import DirectoryMediaResolver, MediaResolver
from fitplan.library.models import (
    ExerciseLibraryEntry,
    IndexedName,
    LibraryDocument,
    LibraryIndex,
    MuscleLibraryEntry,
    ParsedDocument,
    ParsedSection,
    SearchIndex,
)
from fitplan.library.parser import parse_document
from fitplan.ml.matching.similarity import bigrams
from fitplan.ml.matching.text import (
    alias_keys,
    descriptors_of,
    humanize_slug,
    identity_key,
    normalize_key,
    tokenize,
    tokens_to_key,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=IndexedName)


def _name_fields(name: str) -> dict:
    tokens = tokenize(name)
    core_tokens = tokenize(name, omit_descriptors=True)
    normalized = normalize_key(name)
    return {
        "name": name,
        "normalized": normalized,
        "tokens": tuple(tokens),
        "core_tokens": tuple(core_tokens),
        "core_key": tokens_to_key(core_tokens),
        "descriptors": descriptors_of(tokens),
        "alias_keys": tuple(alias_keys(core_tokens)),
        "bigrams": tuple(bigrams(normalized)),
    }


def _make_exercise_entry(section: ParsedSection, document: ParsedDocument) -> ExerciseLibraryEntry:
    fields = _name_fields(section.title)
    media_orientations = frozenset(asset.orientation for asset in section.media if asset.orientation)
    fields["descriptors"] = fields["descriptors"] | media_orientations

    return ExerciseLibraryEntry(
        id=identity_key(section.title) or fields["normalized"],
        slug=document.slug,
        muscle_label=document.label,
        media=section.media,
        instructions=section.instructions,
        notes=section.notes,
        difficulty=section.difficulty,
        **fields,
    )


def _build_search_index(
    entries: Sequence[E],
    secondary_names: Iterable[tuple[E, str]] = (),
) -> SearchIndex[E]:
    exact: dict[str, E] = {}
    qualified: dict[str, E] = {}
    core_key: defaultdict[str, list[E]] = defaultdict(list)
    alias_key: defaultdict[str, list[E]] = defaultdict(list)

    for entry in entries:
        if entry.normalized and entry.normalized not in exact:
            exact[entry.normalized] = entry
        if entry.core_key:
            core_key[entry.core_key].append(entry)
        for key in entry.alias_keys:
            alias_key[key].append(entry)

    # Registered after every primary name so they never shadow one
    for entry, name in secondary_names:
        key = normalize_key(name)
        if key and key not in exact and key not in qualified:
            qualified[key] = entry
        secondary_core = tokens_to_key(tokenize(name, omit_descriptors=True))
        if secondary_core and entry not in core_key[secondary_core]:
            core_key[secondary_core].append(entry)

    return SearchIndex(
        exact=MappingProxyType(exact),
        qualified=MappingProxyType(qualified),
        core_key=MappingProxyType({key: tuple(values) for key, values in core_key.items()}),
        alias_key=MappingProxyType({key: tuple(values) for key, values in alias_key.items()}),
        entries=tuple(entries),
    )


def build_index(
    documents: Iterable[LibraryDocument],
    media_resolver: MediaResolver | None = None,
    manifest: LibraryManifest | None = None,
) -> LibraryIndex:
    """Parse ``documents`` and build the exercise and muscle indexes.

    Args:
        documents: One document per muscle group; duplicate slugs raise
        media_resolver: Resolves image file names referenced by documents
        manifest: Optional labels and aliases for muscle documents

    Returns:
        A fresh, immutable LibraryIndex. The same inputs always produce the
        same index.
    """
    manifest = manifest or LibraryManifest()
    ordered = sorted(documents, key=lambda document: document.slug)

    slugs = [document.slug for document in ordered]
    duplicates = sorted({slug for slug in slugs if slugs.count(slug) > 1})
    if duplicates:
        raise LibraryError(f"Duplicate library document slugs: {', '.join(duplicates)}", details={"slugs": duplicates})

    parsed_documents: list[ParsedDocument] = []
    exercise_entries: list[ExerciseLibraryEntry] = []
    exercise_secondary: list[tuple[ExerciseLibraryEntry, str]] = []
    muscle_entries: list[MuscleLibraryEntry] = []
    muscle_secondary: list[tuple[MuscleLibraryEntry, str]] = []

    for document in ordered:
        parsed = parse_document(document, media_resolver)
        label = manifest.label_for(parsed.slug) or parsed.label
        if label != parsed.label:
            parsed = ParsedDocument(
                slug=parsed.slug,
                label=label,
                sections=parsed.sections,
                skipped_sections=parsed.skipped_sections,
            )
        parsed_documents.append(parsed)

        exercises = tuple(_make_exercise_entry(section, parsed) for section in parsed.sections)
        exercise_entries.extend(exercises)
        for exercise in exercises:
            exercise_secondary.append((exercise, f"{label} {exercise.name}"))
            exercise_secondary.append((exercise, f"{exercise.name} {label}"))

        aliases = tuple(manifest.aliases_for(parsed.slug))
        muscle = MuscleLibraryEntry(
            id=parsed.slug,
            slug=parsed.slug,
            label=label,
            aliases=aliases,
            exercises=exercises,
            **_name_fields(label),
        )
        muscle_entries.append(muscle)
        for name in (parsed.slug, humanize_slug(parsed.slug), *aliases):
            muscle_secondary.append((muscle, name))

    index = LibraryIndex(
        exercises=_build_search_index(exercise_entries, exercise_secondary),
        muscles=_build_search_index(muscle_entries, muscle_secondary),
        documents=tuple(parsed_documents),
    )
    logger.info(
        "Built exercise library index: %d muscle documents, %d exercises, %d sections skipped",
        len(muscle_entries),
        len(exercise_entries),
        index.skipped_sections,
    )
    return index


def load_documents(directory: str | Path) -> list[LibraryDocument]:
    """Read every ``*.html`` file in ``directory``; the file stem is the slug."""
    library_dir = Path(directory)
    if not library_dir.is_dir():
        raise LibraryError(f"Library directory {library_dir} does not exist", details={"path": str(library_dir)})

    documents = []
    for path in sorted(library_dir.glob("*.html")):
        with open(path, "r", encoding="utf-8") as f:
            documents.append(LibraryDocument(slug=path.stem.lower(), text=f.read()))
    return documents


# Module-level singleton instance, set by init_library_index()
_index_instance: LibraryIndex | None = None


def init_library_index(
    settings: Settings | None = None,
    documents: Iterable[LibraryDocument] | None = None,
    media_resolver: MediaResolver | None = None,
    manifest: LibraryManifest | None = None,
) -> LibraryIndex:
    """Build the process-wide library index.

    Called once at process start. Anything not passed explicitly is loaded
    from the directories configured in settings.
    """
    global _index_instance

    settings = settings or get_settings()
    library_dir = Path(settings.library_dir)

    if documents is None:
        documents = load_documents(library_dir)
    if media_resolver is None:
        media_resolver = DirectoryMediaResolver(settings.media_dir)
    if manifest is None:
        manifest = load_manifest(library_dir / settings.library_manifest)

    _index_instance = build_index(documents, media_resolver, manifest)
    return _index_instance


def get_library_index() -> LibraryIndex:
    """Return the process-wide index; raises if it was never initialized."""
    if _index_instance is None:
        raise LibraryNotInitializedError()
    return _index_instance


def reset_library_index() -> None:
    global _index_instance
    _index_instance = None
