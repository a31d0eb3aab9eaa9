"""Path normalization, node-id derivation, and deep-link addresses.

Ids and addresses are pure functions of the normalized relative path, so the
same document keeps the same id and address across rebuilds and platforms.
"""

from __future__ import annotations

import hashlib
import unicodedata
from pathlib import PurePath
from urllib.parse import quote, unquote

NODE_ID_DIGEST_SIZE = 20
ROOT_PATH = ""
ROOT_ADDRESS = "/"


def normalize_name(name: str) -> str:
    """Return NFC form of one path segment (macOS reports NFD names)."""
    return unicodedata.normalize("NFC", name)


def normalize_relative_path(raw: str | PurePath) -> str:
    """Normalize ``raw`` to a forward-slash relative path.

    Backslashes are treated as separators, empty and ``.`` segments are
    dropped. ``..`` segments are rejected because they escape the tree.
    """
    text = raw.as_posix() if isinstance(raw, PurePath) else str(raw)
    text = text.replace("\\", "/")
    parts: list[str] = []
    for segment in text.split("/"):
        if not segment or segment == ".":
            continue
        if segment == "..":
            raise ValueError(f"path escapes tree root: {raw!r}")
        parts.append(normalize_name(segment))
    return "/".join(parts)


def join_relative(parent: str, name: str) -> str:
    """Join a normalized parent path with one child segment."""
    name = normalize_name(name)
    return f"{parent}/{name}" if parent else name


def parent_relative(path: str) -> str | None:
    """Return the parent of a normalized path, ``None`` for the root."""
    if path == ROOT_PATH:
        return None
    head, _sep, _tail = path.rpartition("/")
    return head


def node_id_for_path(path: str) -> str:
    """Derive the stable node id for a normalized relative path."""
    digest = hashlib.blake2b(digest_size=NODE_ID_DIGEST_SIZE)
    digest.update(b"lazydocs-node\0")
    digest.update(path.encode("utf-8", errors="surrogateescape"))
    return digest.hexdigest()


def sibling_sort_key(name: str) -> tuple[str, bytes]:
    """Locale-independent sibling order: case-folded name, then raw bytes."""
    return name.casefold(), name.encode("utf-8", errors="surrogateescape")


def address_for_path(path: str) -> str:
    """Build a shareable deep-link address from a normalized path."""
    if path == ROOT_PATH:
        return ROOT_ADDRESS
    return "/" + "/".join(quote(segment, safe="") for segment in path.split("/"))


def path_for_address(address: str) -> str:
    """Invert :func:`address_for_path`.

    Accepts an optional leading ``#`` (URL fragment form) and tolerates
    missing or doubled slashes. Decoded segments are taken verbatim apart
    from NFC, so a backslash stays part of a name. Raises ``ValueError`` for
    ``.``/``..`` segments or an encoded ``/`` inside a segment.
    """
    text = address.strip()
    if text.startswith("#"):
        text = text[1:]
    parts: list[str] = []
    for raw_segment in text.split("/"):
        if not raw_segment:
            continue
        segment = normalize_name(unquote(raw_segment))
        if segment in {".", ".."} or "/" in segment:
            raise ValueError(f"invalid address segment {raw_segment!r} in {address!r}")
        parts.append(segment)
    return "/".join(parts)


__all__ = [
    "NODE_ID_DIGEST_SIZE",
    "ROOT_PATH",
    "ROOT_ADDRESS",
    "normalize_name",
    "normalize_relative_path",
    "join_relative",
    "parent_relative",
    "node_id_for_path",
    "sibling_sort_key",
    "address_for_path",
    "path_for_address",
]
