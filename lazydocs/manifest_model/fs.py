"""Filesystem scanning for the manifest builder.

Scanning never follows symlinks on its own; the builder decides what to do
with a link after :func:`resolve_link` classifies its target.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .ids import normalize_name, sibling_sort_key


@dataclass(frozen=True)
class ScannedEntry:
    """One raw directory entry observed by ``os.scandir``."""

    name: str
    raw_name: str
    path: Path
    is_dir: bool
    is_symlink: bool


class LinkTarget(str, Enum):
    """Classification of a symlink target relative to the build root."""

    INSIDE = "inside"
    OUTSIDE = "outside"
    BROKEN = "broken"


def scan_directory(directory: Path) -> list[ScannedEntry]:
    """List ``directory`` without following symlinks.

    Raises ``OSError`` when the directory itself cannot be listed. Entries
    whose type cannot be determined are reported as files.
    """
    out: list[ScannedEntry] = []
    with os.scandir(directory) as entries:
        for child in entries:
            try:
                is_symlink = child.is_symlink()
            except OSError:
                is_symlink = False
            try:
                is_dir = child.is_dir(follow_symlinks=False)
            except OSError:
                is_dir = False
            out.append(
                ScannedEntry(
                    name=normalize_name(child.name),
                    raw_name=child.name,
                    path=Path(child.path),
                    is_dir=is_dir,
                    is_symlink=is_symlink,
                )
            )
    return out


def sort_entries(entries: list[ScannedEntry], *, directories_first: bool = False) -> list[ScannedEntry]:
    """Sort siblings case-folded, breaking ties by raw bytes.

    The order depends only on names, never on filesystem enumeration order.
    """

    def key(entry: ScannedEntry) -> tuple[bool, str, bytes, bytes]:
        folded, nfc_bytes = sibling_sort_key(entry.name)
        raw_bytes = entry.raw_name.encode("utf-8", errors="surrogateescape")
        group = (not entry.is_dir) if directories_first else False
        return group, folded, nfc_bytes, raw_bytes

    return sorted(entries, key=key)


def resolve_link(path: Path, root_real: Path) -> tuple[LinkTarget, Path | None, bool]:
    """Resolve symlink ``path`` and classify it against ``root_real``.

    Returns ``(classification, resolved_target, target_is_dir)``.
    """
    try:
        target = path.resolve(strict=True)
    except (OSError, RuntimeError):
        # RuntimeError: symlink loop on older Pythons
        return LinkTarget.BROKEN, None, False
    try:
        is_dir = target.is_dir()
    except OSError:
        is_dir = False
    if not target.is_relative_to(root_real):
        return LinkTarget.OUTSIDE, target, is_dir
    return LinkTarget.INSIDE, target, is_dir


def real_path(path: Path) -> Path:
    """Resolved path used for ancestor/cycle bookkeeping."""
    try:
        return path.resolve()
    except (OSError, RuntimeError):
        return path


__all__ = [
    "ScannedEntry",
    "LinkTarget",
    "scan_directory",
    "sort_entries",
    "resolve_link",
    "real_path",
]
