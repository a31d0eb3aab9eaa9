"""Content-source collaborators and text decoding.

A source is addressed by manifest ``path`` and returns raw bytes. Raising
``FileNotFoundError`` (or ``NotADirectoryError``) is the not-found signal;
any other ``OSError``, including ``TimeoutError``, means a transient failure.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from ..errors import ContentDecodeError
from ..manifest_model.ids import normalize_name

BINARY_SNIFF_BYTES = 8_192


class ContentSource(Protocol):
    def fetch(self, path: str, timeout: float | None = None) -> bytes:
        """Return the bytes stored at manifest path ``path``."""
        ...


class FileSystemContentSource:
    """Read documents from a directory tree on local disk."""

    def __init__(self, root: Path) -> None:
        self.root = root.resolve()

    def _target(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root):
            raise FileNotFoundError(f"path escapes content root: {path}")
        if not target.exists():
            target = self._match_normalized(path)
        return target

    def _match_normalized(self, path: str) -> Path:
        """Find the on-disk spelling of an NFC manifest path (NFD filesystems)."""
        current = self.root
        for segment in path.split("/"):
            with os.scandir(current) as entries:
                match = next((entry.name for entry in entries if normalize_name(entry.name) == segment), None)
            if match is None:
                raise FileNotFoundError(f"no such document: {path}")
            current = current / match
        resolved = current.resolve()
        if not resolved.is_relative_to(self.root):
            raise FileNotFoundError(f"path escapes content root: {path}")
        return resolved

    def fetch(self, path: str, timeout: float | None = None) -> bytes:
        target = self._target(path)
        if target.is_dir():
            raise FileNotFoundError(f"no longer a document: {path}")
        return target.read_bytes()


class MappingContentSource:
    """In-memory source keyed by manifest path, handy for embedding and previews."""

    def __init__(self, documents: Mapping[str, bytes | str]) -> None:
        self._documents = dict(documents)

    def fetch(self, path: str, timeout: float | None = None) -> bytes:
        try:
            value = self._documents[path]
        except KeyError:
            raise FileNotFoundError(path) from None
        return value.encode("utf-8") if isinstance(value, str) else value


def decode_text(data: bytes, *, path: str | None = None, node_id: str | None = None) -> str:
    """Decode document bytes as UTF-8 text (a leading BOM is dropped).

    Raises :class:`ContentDecodeError` for NUL bytes in the leading sample
    (binary content) or invalid UTF-8.
    """
    if b"\x00" in data[:BINARY_SNIFF_BYTES]:
        raise ContentDecodeError("content looks binary", node_id=node_id, path=path)
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ContentDecodeError(f"content is not valid UTF-8: {exc}", node_id=node_id, path=path) from exc


__all__ = [
    "BINARY_SNIFF_BYTES",
    "ContentSource",
    "FileSystemContentSource",
    "MappingContentSource",
    "decode_text",
]
