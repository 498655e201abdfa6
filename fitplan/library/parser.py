"""Parser for semi-structured exercise library documents.

A document is HTML describing one muscle group:

    <h1>Chest</h1>
    <h2>Incline Bench Press</h2>
    <img src="Images/incline-bench-press-front.gif">
    <ol><li>Lie back on an incline bench.</li><li>Press the bar up.</li></ol>
    <p>Difficulty: Intermediate</p>
    <p>Keep your shoulder blades retracted.</p>

Each ``<h2>`` starts an exercise section that runs until the next ``<h2>``
or the end of the body. Sections failing validation (no title, or neither
an instruction step nor a resolvable image) are dropped and counted.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from html.parser import HTMLParser

from fitplan.core.exceptions import ParseValidationError
from fitplan.library.media import (
    MediaResolver,
    infer_orientation,
    normalize_media_path,
    null_media_resolver,
)
from fitplan.library.models import (
    LibraryDocument,
    MediaAsset,
    ParsedDocument,
    ParsedSection,
)
from fitplan.ml.matching.text import humanize_slug

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_DIFFICULTY = re.compile(r"^difficulty\s*[:\-]\s*(.+)$", re.IGNORECASE)

_CAPTURED_TAGS = {"h1", "h2", "li", "p"}
# End tags that implicitly close an open list item or paragraph
_BLOCK_END_TAGS = {"ol", "ul", "body", "html"}


def clean_text(value: str) -> str:
    return _WHITESPACE.sub(" ", value).strip()


@dataclass
class _RawSection:
    title: str
    items: list[str] = field(default_factory=list)
    paragraphs: list[str] = field(default_factory=list)
    images: list[str] = field(default_factory=list)


class _LibraryHTMLParser(HTMLParser):
    """Collects the heading, sections, list items, paragraphs and images.

    End tags for ``<li>`` and ``<p>`` are optional in HTML, so a captured
    element also ends when the next captured element starts or when the
    enclosing list or body closes.
    """

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.heading = ""
        self.sections: list[_RawSection] = []
        self._capture_tag: str | None = None
        self._buffer: list[str] = []
        self._in_body_end = False

    def handle_starttag(self, tag, attrs):
        if self._in_body_end:
            return
        if tag == "img":
            src = dict(attrs).get("src") or ""
            if src and self.sections:
                self.sections[-1].images.append(src)
            return
        if tag == "br" and self._capture_tag:
            self._buffer.append(" ")
            return
        if tag in _CAPTURED_TAGS:
            self._flush()
            self._capture_tag = tag

    def handle_startendtag(self, tag, attrs):
        self.handle_starttag(tag, attrs)

    def handle_endtag(self, tag):
        if tag == self._capture_tag:
            self._flush()
        elif tag in _BLOCK_END_TAGS and self._capture_tag in ("li", "p"):
            self._flush()
        if tag == "body":
            self._in_body_end = True

    def handle_data(self, data):
        if self._capture_tag is not None:
            self._buffer.append(data)

    def close(self):
        super().close()
        self._flush()

    def _flush(self):
        tag = self._capture_tag
        if tag is None:
            return
        text = clean_text("".join(self._buffer))
        self._capture_tag = None
        self._buffer = []

        if tag == "h1":
            self.heading = self.heading or text
        elif tag == "h2":
            self.sections.append(_RawSection(title=text))
        elif not text or not self.sections:
            return
        elif tag == "li":
            self.sections[-1].items.append(text)
        else:
            self.sections[-1].paragraphs.append(text)


def _resolve_media(images: list[str], resolver: MediaResolver) -> tuple[MediaAsset, ...]:
    assets: list[MediaAsset] = []
    seen: set[str] = set()
    for raw in images:
        file_name = normalize_media_path(raw)
        if not file_name or file_name.lower() in seen:
            continue
        src = resolver(file_name)
        if not src:
            logger.debug("Media file %s is not bundled; ignoring", file_name)
            continue
        seen.add(file_name.lower())
        assets.append(MediaAsset(file_name=file_name, src=src, orientation=infer_orientation(file_name)))
    return tuple(assets)


def _build_section(raw: _RawSection, resolver: MediaResolver) -> ParsedSection:
    difficulty = ""
    notes: list[str] = []
    for paragraph in raw.paragraphs:
        match = _DIFFICULTY.match(paragraph)
        if match and not difficulty:
            difficulty = match.group(1).strip().rstrip(".")
        else:
            notes.append(paragraph)

    return ParsedSection(
        title=raw.title,
        instructions=tuple(raw.items),
        media=_resolve_media(raw.images, resolver),
        notes=tuple(notes),
        difficulty=difficulty,
    )


def parse_document(
    document: LibraryDocument,
    media_resolver: MediaResolver | None = None,
) -> ParsedDocument:
    """Parse one library document into validated exercise sections.

    Args:
        document: Raw document keyed by muscle slug
        media_resolver: Maps referenced image file names to bundled assets

    Returns:
        ParsedDocument with the retained sections and the number dropped.
    """
    resolver = media_resolver or null_media_resolver
    parser = _LibraryHTMLParser()
    parser.feed(document.text or "")
    parser.close()

    sections: list[ParsedSection] = []
    skipped = 0
    for raw in parser.sections:
        try:
            sections.append(_build_section(raw, resolver))
        except ParseValidationError as e:
            skipped += 1
            logger.debug("Skipping section in %s: %s", document.slug, e.message)

    if skipped:
        logger.info(
            "Parsed library document %s: %d sections kept, %d skipped",
            document.slug,
            len(sections),
            skipped,
        )

    return ParsedDocument(
        slug=document.slug,
        label=parser.heading or humanize_slug(document.slug),
        sections=tuple(sections),
        skipped_sections=skipped,
    )
