"""Path- and front-matter-based classification of project documents.

Classification is best-effort: an unrecognised path is ``unknown`` and
unreadable front-matter leaves the path-derived values in place. Nothing here
raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import PurePosixPath

import yaml

logger = logging.getLogger(__name__)

# books/<id>/<phase dir>/... → file_type
_BOOK_DIR_TYPES = {
    "overview": "book_overview",
    "phase-1-seed": "seed",
    "phase-2-root": "structure",
    "phase-3-sprout": "character_arc",
    "phase-4-flourish": "scene_outline",
    "phase-5-bloom": "scene_draft",
    "front-matter": "front_matter",
    "back-matter": "back_matter",
    "notes": "notes",
}

# Book phases whose file_type doubles as a filterable entity type.
_BOOK_ENTITY_TYPES = {"character_arc", "scene_outline", "scene_draft"}


@dataclass(frozen=True)
class FileClassification:
    file_type: str = "unknown"
    book_id: str | None = None
    chapter_id: str | None = None
    entity_type: str | None = None
    entity_name: str | None = None


def classify_path(rel_path: str) -> FileClassification:
    """Derive file type and filter tags from a project-relative path.

    Examples:
        >>> classify_path("characters/marcus-cole/profile.md").entity_name
        'marcus-cole'
        >>> classify_path("books/book-01/phase-5-bloom/ch-03/scene-02.md").entity_name
        'ch-03-scene-02'
    """
    parts = PurePosixPath(rel_path.replace("\\", "/")).parts
    if not parts:
        return FileClassification()

    top, name = parts[0], parts[-1]

    if top == "overview":
        return FileClassification(
            file_type="brainstorm" if name == "brainstorm.md" else "overview"
        )

    if top == "characters":
        slug = parts[1] if len(parts) >= 2 else None
        if name == "brainstorm.md":
            return FileClassification(file_type="brainstorm", entity_name=slug)
        return FileClassification(
            file_type="character", entity_type="character", entity_name=slug
        )

    if top == "world":
        return FileClassification(
            file_type="world",
            entity_type="world",
            entity_name=parts[-2] if len(parts) >= 3 else None,
        )

    if top == "notes":
        return FileClassification(file_type="notes")

    if top == "books" and len(parts) >= 2:
        return _classify_book_path(parts)

    if rel_path.endswith(".json"):
        return FileClassification(file_type="config")

    return FileClassification()


def _classify_book_path(parts: tuple[str, ...]) -> FileClassification:
    book_id = parts[1]
    if len(parts) < 3:
        return FileClassification(book_id=book_id)

    file_type = _BOOK_DIR_TYPES.get(parts[2], "unknown")
    entity_type = file_type if file_type in _BOOK_ENTITY_TYPES else None
    entity_name = None
    chapter_id = None

    if file_type == "character_arc" and len(parts) >= 4:
        entity_name = parts[3]
    elif file_type == "scene_draft":
        if len(parts) >= 4:
            chapter_id = parts[3]
        if len(parts) >= 5:
            scene = parts[4].removesuffix(".md")
            entity_name = f"{parts[3]}-{scene}"

    return FileClassification(
        file_type=file_type,
        book_id=book_id,
        chapter_id=chapter_id,
        entity_type=entity_type,
        entity_name=entity_name,
    )


# ------------------------------------------------------------------
# Front-matter overrides
# ------------------------------------------------------------------

def parse_frontmatter_fields(frontmatter: str) -> dict[str, str]:
    """Return the top-level scalar ``key: value`` pairs of *frontmatter*.

    Valid YAML mappings are read with ``yaml.safe_load``. Anything else is
    read line by line, splitting on the first colon.
    """
    if not frontmatter.strip():
        return {}
    try:
        data = yaml.safe_load(frontmatter)
    except yaml.YAMLError as exc:
        logger.debug("Front-matter is not valid YAML, reading line by line: %s", exc)
        return _parse_lines(frontmatter)

    if not isinstance(data, dict):
        return _parse_lines(frontmatter)

    return {
        str(key): str(value)
        for key, value in data.items()
        if value is not None and not isinstance(value, (dict, list))
    }


def _parse_lines(frontmatter: str) -> dict[str, str]:
    fields: dict[str, str] = {}
    for line in frontmatter.splitlines():
        key, sep, value = line.partition(":")
        if sep:
            fields[key.strip()] = value.strip().strip('"')
    return fields


def apply_frontmatter(base: FileClassification, frontmatter: str) -> FileClassification:
    """Overlay front-matter ``type``, ``name`` and ``scope`` onto *base*.

    - ``type`` replaces the entity type.
    - ``name`` becomes the entity name, lower-cased with spaces as ``-``.
    - ``scope`` becomes the book id when it starts with ``book-``.
    """
    fields = parse_frontmatter_fields(frontmatter)
    if not fields:
        return base

    overrides: dict[str, str] = {}
    if "type" in fields:
        overrides["entity_type"] = fields["type"]
    if "name" in fields:
        overrides["entity_name"] = fields["name"].lower().replace(" ", "-")
    scope = fields.get("scope", "")
    if scope.startswith("book-"):
        overrides["book_id"] = scope
    return replace(base, **overrides)
