"""Entry predicates deciding which filesystem entries enter a manifest.

A filter sees the normalized relative path and whether the entry is a
directory. Directories are never dropped by the extension allow-list, so an
empty directory still appears in the tree.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

EntryFilter = Callable[[str, bool], bool]
GIT_TIMEOUT_SECONDS = 5.0


def normalize_extensions(extensions: Iterable[str] | None) -> frozenset[str] | None:
    """Lower-case extensions with a leading dot; ``None``/empty means "all"."""
    if extensions is None:
        return None
    out: set[str] = set()
    for raw in extensions:
        ext = raw.strip().lower()
        if not ext:
            continue
        out.add(ext if ext.startswith(".") else f".{ext}")
    return frozenset(out) or None


def extension_filter(extensions: Iterable[str] | None) -> EntryFilter:
    """Accept directories plus documents whose suffix is in ``extensions``."""
    allowed = normalize_extensions(extensions)

    def accept(path: str, is_dir: bool) -> bool:
        if is_dir or allowed is None:
            return True
        name = path.rsplit("/", 1)[-1].lower()
        return any(name.endswith(ext) and len(name) > len(ext) for ext in allowed)

    return accept


def hidden_filter(show_hidden: bool) -> EntryFilter:
    """Reject dot-prefixed names unless ``show_hidden``."""

    def accept(path: str, _is_dir: bool) -> bool:
        if show_hidden:
            return True
        return not path.rsplit("/", 1)[-1].startswith(".")

    return accept


@dataclass(frozen=True)
class GitIgnoreMatcher:
    """Ignored paths under a build root, relative to that root.

    ``ignored_dirs`` lets whole subtrees be rejected by prefix.
    """

    ignored_files: frozenset[str]
    ignored_dirs: frozenset[str]

    def is_ignored(self, path: str) -> bool:
        if path in self.ignored_files or path in self.ignored_dirs:
            return True
        head = path
        while "/" in head:
            head = head.rsplit("/", 1)[0]
            if head in self.ignored_dirs:
                return True
        return False


def load_gitignore_matcher(root: Path) -> GitIgnoreMatcher | None:
    """Query git for ignored entries under ``root``.

    Returns ``None`` when git is unavailable or ``root`` is not in a work
    tree; the build then proceeds without gitignore filtering.
    """
    if shutil.which("git") is None:
        logger.info("git not found; gitignore filtering disabled")
        return None

    root = root.resolve()
    try:
        top_proc = subprocess.run(
            ["git", "-C", str(root), "rev-parse", "--show-toplevel"],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            check=True,
            timeout=GIT_TIMEOUT_SECONDS,
        )
        proc = subprocess.run(
            ["git", "-C", str(root), "ls-files", "-z", "--others", "-i", "--exclude-standard", "--directory"],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            check=True,
            timeout=GIT_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.info("git ls-files failed for %s: %s", root, exc)
        return None

    ignored_files: set[str] = set()
    ignored_dirs: set[str] = set()
    for raw in proc.stdout.split(b"\x00"):
        if not raw:
            continue
        rel = raw.decode("utf-8", errors="surrogateescape")
        is_dir = rel.endswith("/")
        rel = rel.rstrip("/")
        # ls-files prints paths relative to the -C directory
        if not rel or rel.startswith("../"):
            continue
        if is_dir:
            ignored_dirs.add(rel)
        else:
            ignored_files.add(rel)
    logger.debug(
        "gitignore under %s (work tree %s): %d files, %d dirs",
        root,
        top_proc.stdout.strip(),
        len(ignored_files),
        len(ignored_dirs),
    )
    return GitIgnoreMatcher(ignored_files=frozenset(ignored_files), ignored_dirs=frozenset(ignored_dirs))


def gitignore_filter(matcher: GitIgnoreMatcher) -> EntryFilter:
    def accept(path: str, _is_dir: bool) -> bool:
        return not matcher.is_ignored(path)

    return accept


def combine_filters(*filters: EntryFilter | None) -> EntryFilter:
    """Logical AND of the given filters (``None`` entries are skipped)."""
    active = [entry_filter for entry_filter in filters if entry_filter is not None]

    def accept(path: str, is_dir: bool) -> bool:
        return all(entry_filter(path, is_dir) for entry_filter in active)

    return accept


def build_entry_filter(
    root: Path,
    *,
    extensions: Iterable[str] | None = None,
    show_hidden: bool = False,
    skip_gitignored: bool = False,
) -> EntryFilter:
    """Compose the standard builder filter from CLI/config options."""
    ignore: EntryFilter | None = None
    if skip_gitignored:
        matcher = load_gitignore_matcher(root)
        if matcher is not None:
            ignore = gitignore_filter(matcher)
    return combine_filters(hidden_filter(show_hidden), extension_filter(extensions), ignore)


__all__ = [
    "EntryFilter",
    "normalize_extensions",
    "extension_filter",
    "hidden_filter",
    "GitIgnoreMatcher",
    "load_gitignore_matcher",
    "gitignore_filter",
    "combine_filters",
    "build_entry_filter",
]
