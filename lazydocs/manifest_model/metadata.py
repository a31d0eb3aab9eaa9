"""Per-document metadata: content fingerprint, title, and language hint.

Metadata is a closed map of scalar values. The renderer consumes ``title``
and ``language``; the content resolver consumes ``fingerprint``.
"""

from __future__ import annotations

import hashlib
import os
import re
from functools import lru_cache
from pathlib import Path

from pygments.lexers import get_lexer_for_filename
from pygments.util import ClassNotFound

from .types import FINGERPRINT_KEY, MetadataValue

HASH_CHUNK_BYTES = 64 * 1024
TITLE_READ_BYTES = 4_096
TITLE_MAX_CHARS = 120

_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
_ATX_HEADING_RE = re.compile(r"^#{1,6}\s+(.*?)\s*#*\s*$")
_SETEXT_UNDERLINE_RE = re.compile(r"^(=+|-+)\s*$")
_FRONT_MATTER_TITLE_RE = re.compile(r"""^title\s*:\s*(?P<q>["']?)(.*?)(?P=q)\s*$""")
_RST_UNDERLINE_RE = re.compile(r"^([=\-~^\"'`#*+])\1{2,}\s*$")
_TRIPLE_QUOTE_PREFIXES = ('"""', "'''")
_LINE_COMMENT_PREFIXES = ("//", "--", ";")


def _normalize_title(text: str) -> str | None:
    """Collapse whitespace, strip control bytes, and bound the length."""
    candidate = _CONTROL_RE.sub("", " ".join(text.strip().split()))
    if not candidate:
        return None
    if len(candidate) > TITLE_MAX_CHARS:
        return candidate[: TITLE_MAX_CHARS - 3].rstrip() + "..."
    return candidate


def _front_matter_title(lines: list[str]) -> tuple[str | None, int]:
    """Return ``(title, first_body_line)`` for a leading ``---`` YAML block."""
    if not lines or lines[0].strip() != "---":
        return None, 0
    title: str | None = None
    for idx in range(1, len(lines)):
        stripped = lines[idx].strip()
        if stripped in {"---", "..."}:
            return title, idx + 1
        if title is None:
            match = _FRONT_MATTER_TITLE_RE.match(stripped)
            if match:
                title = _normalize_title(match.group(2))
    return title, 0


def _heading_title(lines: list[str], start: int) -> str | None:
    """Title from the first Markdown/reStructuredText heading or leading docstring."""
    idx = start
    while idx < len(lines) and not lines[idx].strip():
        idx += 1
    if idx >= len(lines):
        return None

    first = lines[idx].strip()
    if first.startswith("#!"):
        return None

    match = _ATX_HEADING_RE.match(first)
    if match:
        return _normalize_title(match.group(1))

    # Overlined reStructuredText title: underline, text, underline.
    if _RST_UNDERLINE_RE.match(first) and idx + 2 < len(lines):
        if _RST_UNDERLINE_RE.match(lines[idx + 2].strip()):
            return _normalize_title(lines[idx + 1])

    if idx + 1 < len(lines):
        underline = lines[idx + 1].strip()
        if _SETEXT_UNDERLINE_RE.match(underline) or _RST_UNDERLINE_RE.match(underline):
            return _normalize_title(first)

    for delimiter in _TRIPLE_QUOTE_PREFIXES:
        if first.startswith(delimiter):
            body = first[len(delimiter) :]
            if delimiter in body:
                return _normalize_title(body.split(delimiter, 1)[0])
            if body.strip():
                return _normalize_title(body)
            if idx + 1 < len(lines):
                return _normalize_title(lines[idx + 1].split(delimiter, 1)[0])
            return None

    for prefix in _LINE_COMMENT_PREFIXES:
        if first.startswith(prefix):
            return _normalize_title(first[len(prefix) :])
    return None


def extract_title(head: bytes) -> str | None:
    """Return a display title from the first bytes of a document.

    Front-matter ``title:`` wins over headings. Binary samples (NUL bytes)
    never produce a title.
    """
    if not head or b"\x00" in head:
        return None
    text = head.decode("utf-8", errors="replace")
    lines = text.splitlines()
    if not lines:
        return None
    lines[0] = lines[0].lstrip("\ufeff")

    title, body_start = _front_matter_title(lines)
    if title is not None:
        return title
    return _heading_title(lines, body_start)


@lru_cache(maxsize=1024)
def language_for_name(name: str) -> str | None:
    """Pygments lexer name for ``name``, used as a highlighting hint."""
    try:
        lexer = get_lexer_for_filename(name)
    except ClassNotFound:
        return None
    return str(lexer.name)


def document_metadata(path: Path, *, include_mtime: bool = False) -> dict[str, MetadataValue]:
    """Read ``path`` once and return its scalar metadata.

    Raises ``OSError`` when the file cannot be opened or read; the builder
    turns that into a warning and omits the document.
    """
    digest = hashlib.blake2b(digest_size=20)
    head = b""
    size = 0
    with path.open("rb") as handle:
        stat = os.fstat(handle.fileno())
        while True:
            chunk = handle.read(HASH_CHUNK_BYTES)
            if not chunk:
                break
            if len(head) < TITLE_READ_BYTES:
                head += chunk[: TITLE_READ_BYTES - len(head)]
            digest.update(chunk)
            size += len(chunk)

    metadata: dict[str, MetadataValue] = {
        FINGERPRINT_KEY: digest.hexdigest(),
        "size": size,
    }
    title = extract_title(head)
    if title is not None:
        metadata["title"] = title
    language = language_for_name(path.name)
    if language is not None:
        metadata["language"] = language
    if include_mtime:
        metadata["mtime_ns"] = int(stat.st_mtime_ns)
    return metadata


__all__ = [
    "extract_title",
    "language_for_name",
    "document_metadata",
]
