"""Optional library manifest (library.yaml).

Supplies display labels and extra names for muscle documents so catalog
labels such as "Anterior deltoid" resolve to the "shoulders" document:

    muscles:
      shoulders:
        label: Shoulders
        aliases: [deltoid, anterior deltoid, delts]
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from fitplan.core.exceptions import ManifestError

logger = logging.getLogger(__name__)


class MuscleManifestEntry(BaseModel):
    label: str | None = None
    aliases: list[str] = Field(default_factory=list)


class LibraryManifest(BaseModel):
    muscles: dict[str, MuscleManifestEntry] = Field(default_factory=dict)

    def label_for(self, slug: str) -> str | None:
        entry = self.muscles.get(slug)
        return entry.label if entry else None

    def aliases_for(self, slug: str) -> list[str]:
        entry = self.muscles.get(slug)
        return list(entry.aliases) if entry else []


def load_manifest(path: str | Path) -> LibraryManifest:
    """Load and validate a manifest; a missing file yields an empty manifest."""
    manifest_path = Path(path)
    if not manifest_path.is_file():
        logger.debug("No library manifest at %s", manifest_path)
        return LibraryManifest()

    try:
        with open(manifest_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ManifestError(f"Invalid YAML in {manifest_path}: {e}", {"path": str(manifest_path)}) from e

    try:
        return LibraryManifest.model_validate(raw)
    except PydanticValidationError as e:
        raise ManifestError(
            f"Library manifest {manifest_path} failed validation",
            {"path": str(manifest_path), "errors": e.errors()},
        ) from e
