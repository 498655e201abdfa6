"""Curated exercise library: document parsing, media resolution and indexing."""
from fitplan.library.indexer import (
    build_index,
    get_library_index,
    init_library_index,
    load_documents,
    reset_library_index,
)
from fitplan.library.media import DirectoryMediaResolver, MappingMediaResolver
from fitplan.library.models import (
    ExerciseLibraryEntry,
    LibraryDocument,
    LibraryIndex,
    MediaAsset,
    MuscleLibraryEntry,
    ParsedDocument,
    ParsedSection,
    SearchIndex,
)
from fitplan.library.parser import parse_document

__all__ = [
    "build_index",
    "get_library_index",
    "init_library_index",
    "load_documents",
    "reset_library_index",
    "DirectoryMediaResolver",
    "MappingMediaResolver",
    "ExerciseLibraryEntry",
    "LibraryDocument",
    "LibraryIndex",
    "MediaAsset",
    "MuscleLibraryEntry",
    "ParsedDocument",
    "ParsedSection",
    "SearchIndex",
    "parse_document",
]
