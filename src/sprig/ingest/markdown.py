"""Markdown chunker: front-matter chunk, ``## `` section splits, paragraph fallback."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from sprig.ingest.classify import FileClassification, apply_frontmatter, classify_path

PREVIEW_CHARS = 200

# A section body above this estimate is split at paragraph boundaries.
SECTION_TOKEN_LIMIT = 1000
PARAGRAPH_TARGET_TOKENS = 500
PARAGRAPH_OVERLAP_TOKENS = 50

_HEADING_PREFIX = "## "


@dataclass(frozen=True)
class DocumentChunk:
    """One embeddable piece of a document, in document order."""

    chunk_index: int
    section_heading: str | None
    content: str
    content_hash: str
    content_preview: str
    token_count: int
    classification: FileClassification


def sha256_hex(text: str) -> str:
    """Lower-case hex SHA-256 of the UTF-8 encoding of *text*."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def estimate_tokens(text: str) -> int:
    """Approximate token count: 4 characters ≈ 1 token, rounded up."""
    return (len(text) + 3) // 4


def make_preview(text: str) -> str:
    if len(text) > PREVIEW_CHARS:
        return text[:PREVIEW_CHARS] + "..."
    return text


def split_frontmatter(content: str) -> tuple[str, str]:
    """Return ``(frontmatter, body)``.

    Front-matter exists when the document, ignoring leading whitespace, opens
    with ``---`` and a later line starts with ``---``. Otherwise the whole
    document is the body.
    """
    trimmed = content.lstrip()
    if not trimmed.startswith("---"):
        return "", content
    end = trimmed.find("\n---", 3)
    if end == -1:
        return "", content
    return trimmed[3:end], trimmed[end + 4 :]


def split_by_headings(body: str) -> list[tuple[str | None, str]]:
    """Split *body* into ``(heading_line, section_text)`` pairs on ``## `` lines.

    Text before the first heading is returned with a ``None`` heading when it
    is not blank.
    """
    sections: list[tuple[str | None, str]] = []
    heading: str | None = None
    lines: list[str] = []

    def flush() -> None:
        text = "".join(f"{line}\n" for line in lines)
        if heading is not None or text.strip():
            sections.append((heading, text))

    for line in body.splitlines():
        if line.startswith(_HEADING_PREFIX):
            flush()
            heading = line
            lines = []
        else:
            lines.append(line)
    flush()
    return sections


def split_at_paragraphs(
    text: str,
    target_tokens: int = PARAGRAPH_TARGET_TOKENS,
    overlap_tokens: int = PARAGRAPH_OVERLAP_TOKENS,
) -> list[str]:
    """Group ``\\n\\n``-separated paragraphs into pieces of about *target_tokens*.

    When a piece is flushed, its last paragraph is repeated at the start of
    the next piece if that paragraph is at most *overlap_tokens* long.
    """
    pieces: list[str] = []
    current: list[str] = []
    current_tokens = 0

    for para in text.split("\n\n"):
        para_tokens = estimate_tokens(para)
        if current and current_tokens + para_tokens > target_tokens:
            pieces.append("\n\n".join(current))
            tail = current[-1]
            tail_tokens = estimate_tokens(tail)
            if tail_tokens <= overlap_tokens:
                current, current_tokens = [tail], tail_tokens
            else:
                current, current_tokens = [], 0
        current.append(para)
        current_tokens += para_tokens

    joined = "\n\n".join(current)
    if joined.strip():
        pieces.append(joined)
    return pieces


class MarkdownChunker:
    """Split project markdown into ordered, hashed chunks.

    Strategy:
    - Non-blank front-matter becomes chunk 0 and supplies metadata overrides.
    - The body is split on ``## `` headings; each section keeps its heading
      line as a prefix. Sections with no body are dropped.
    - Sections over ``section_token_limit`` are split at paragraph boundaries,
      every piece prefixed with the heading.
    - A body with no headings at all is split at paragraph boundaries.

    The output depends only on ``(content, rel_path)``.
    """

    def __init__(
        self,
        section_token_limit: int = SECTION_TOKEN_LIMIT,
        target_tokens: int = PARAGRAPH_TARGET_TOKENS,
        overlap_tokens: int = PARAGRAPH_OVERLAP_TOKENS,
    ) -> None:
        if target_tokens < 1:
            raise ValueError("target_tokens must be >= 1")
        self.section_token_limit = section_token_limit
        self.target_tokens = target_tokens
        self.overlap_tokens = overlap_tokens

    def chunk(self, content: str, rel_path: str) -> list[DocumentChunk]:
        frontmatter, body = split_frontmatter(content)
        classification = apply_frontmatter(classify_path(rel_path), frontmatter)

        pieces: list[tuple[str | None, str]] = []
        if frontmatter.strip():
            pieces.append((None, f"---\n{frontmatter.strip()}\n---"))

        sections = split_by_headings(body)
        if any(heading is not None for heading, _ in sections):
            for heading, text in sections:
                pieces.extend(self._section_pieces(heading, text))
        elif body.strip():
            pieces.extend(
                (None, piece.strip()) for piece in self._paragraphs(body.strip())
            )

        pieces = [(h, text) for h, text in pieces if text.strip()]
        return [
            DocumentChunk(
                chunk_index=i,
                section_heading=heading,
                content=text,
                content_hash=sha256_hex(text),
                content_preview=make_preview(text),
                token_count=estimate_tokens(text),
                classification=classification,
            )
            for i, (heading, text) in enumerate(pieces)
        ]

    def _section_pieces(
        self, heading: str | None, text: str
    ) -> list[tuple[str | None, str]]:
        if not text.strip():
            return []
        if estimate_tokens(text) <= self.section_token_limit:
            parts = [text.strip()]
        else:
            parts = [p.strip() for p in self._paragraphs(text) if p.strip()]
        if heading is None:
            return [(None, part) for part in parts]
        return [(heading, f"{heading}\n\n{part}") for part in parts]

    def _paragraphs(self, text: str) -> list[str]:
        return split_at_paragraphs(text, self.target_tokens, self.overlap_tokens)


_DEFAULT_CHUNKER = MarkdownChunker()


def chunk_document(content: str, rel_path: str) -> list[DocumentChunk]:
    """Chunk *content* with the default limits. Pure and deterministic."""
    return _DEFAULT_CHUNKER.chunk(content, rel_path)
