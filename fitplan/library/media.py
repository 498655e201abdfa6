"""Resolution of media file names referenced by library documents.

A resolver maps a referenced file name to a bundled asset reference, or to
"" when the file is not bundled. "" means "no media" and is never an error.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Protocol

logger = logging.getLogger(__name__)

MEDIA_SUFFIXES = (".gif", ".png", ".jpg", ".jpeg", ".webp")

# Preference order when picking an exercise's primary image
PRIMARY_MEDIA_ORIENTATIONS = ("front", "side", "back")


class MediaResolver(Protocol):
    def __call__(self, file_name: str) -> str: ...


def normalize_media_path(raw_path: str) -> str:
    """'./Images\\Push-Up-front.gif' -> 'Push-Up-front.gif'."""
    if not raw_path:
        return ""
    normalized = raw_path.replace("\\", "/").split("?", 1)[0]
    return normalized.rsplit("/", 1)[-1].strip()


def infer_orientation(file_name: str) -> str:
    lower = file_name.lower()
    for orientation in ("front", "back", "side"):
        if orientation in lower:
            return orientation
    return ""


class DirectoryMediaResolver:
    """Resolve file names against a directory of bundled assets.

    Lookup is case-insensitive ("push-up.GIF" resolves "Push-Up.gif"). The
    directory is scanned once at construction.
    """

    def __init__(self, directory: str | Path, url_prefix: str | None = None):
        self.directory = Path(directory)
        self.url_prefix = url_prefix.rstrip("/") if url_prefix else None
        self._files: dict[str, str] = {}

        if not self.directory.is_dir():
            logger.warning("Media directory %s does not exist; exercises will have no media", self.directory)
            return

        for path in sorted(self.directory.iterdir()):
            if path.is_file() and path.suffix.lower() in MEDIA_SUFFIXES:
                self._files.setdefault(path.name.lower(), path.name)

    def __call__(self, file_name: str) -> str:
        actual = self._files.get(file_name.lower()) if file_name else None
        if actual is None:
            return ""
        if self.url_prefix is not None:
            return f"{self.url_prefix}/{actual}"
        return str(self.directory / actual)


class MappingMediaResolver:
    """Resolve file names from an explicit (case-insensitive) mapping."""

    def __init__(self, assets: Mapping[str, str]):
        self._assets = {name.lower(): src for name, src in assets.items()}

    def __call__(self, file_name: str) -> str:
        if not file_name:
            return ""
        return self._assets.get(file_name.lower(), "")


def null_media_resolver(file_name: str) -> str:
    return ""
