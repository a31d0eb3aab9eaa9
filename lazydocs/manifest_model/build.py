"""Deterministic manifest construction from a root directory.

Traversal is iterative (explicit frame stack) so deep trees cannot exhaust
the interpreter stack. Each frame carries the resolved ancestor set used to
detect symlink cycles. Problems below the root become warnings and the
offending entry is omitted; only an unusable root is fatal.
"""

from __future__ import annotations

import logging
import stat
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import ManifestIntegrityError, RootNotFound, RootPermissionDenied
from .filters import EntryFilter
from .fs import LinkTarget, ScannedEntry, real_path, resolve_link, scan_directory, sort_entries
from .ids import ROOT_PATH, join_relative, node_id_for_path
from .metadata import document_metadata
from .types import Manifest, MetadataValue, Node, NodeKind

logger = logging.getLogger(__name__)

WARNING_SYMLINK_CYCLE = "symlink_cycle"
WARNING_SYMLINK_OUTSIDE_ROOT = "symlink_outside_root"
WARNING_BROKEN_SYMLINK = "broken_symlink"
WARNING_UNREADABLE_DIRECTORY = "unreadable_directory"
WARNING_UNREADABLE_DOCUMENT = "unreadable_document"
WARNING_DUPLICATE_NAME = "duplicate_name"


@dataclass(frozen=True)
class BuildOptions:
    """Knobs that change manifest content."""

    include_mtime: bool = False
    directories_first: bool = False
    root_name: str | None = None


@dataclass(frozen=True)
class BuildWarning:
    """Non-fatal build problem; the entry at ``path`` was omitted."""

    kind: str
    path: str
    message: str


@dataclass(frozen=True)
class BuildResult:
    manifest: Manifest
    warnings: tuple[BuildWarning, ...] = ()


@dataclass
class _Draft:
    """Mutable node under construction; frozen into a ``Node`` at the end."""

    name: str
    kind: NodeKind
    path: str
    parent_id: str | None
    children: list[str] = field(default_factory=list)
    metadata: dict[str, MetadataValue] = field(default_factory=dict)


@dataclass(frozen=True)
class _Frame:
    directory: Path
    node_id: str
    ancestors: frozenset[Path]


class _ManifestBuilder:
    def __init__(self, root: Path, entry_filter: EntryFilter | None, options: BuildOptions) -> None:
        self.root = root
        self.root_real = real_path(root)
        self.entry_filter = entry_filter
        self.options = options
        self.drafts: dict[str, _Draft] = {}
        self.warnings: list[BuildWarning] = []

    def warn(self, kind: str, path: str, message: str) -> None:
        warning = BuildWarning(kind=kind, path=path, message=message)
        self.warnings.append(warning)
        logger.warning("%s: %s (%s)", kind, path, message)

    def add_draft(self, draft: _Draft) -> str:
        node_id = node_id_for_path(draft.path)
        existing = self.drafts.get(node_id)
        if existing is not None:
            raise ManifestIntegrityError(f"node id collision between {existing.path!r} and {draft.path!r}")
        self.drafts[node_id] = draft
        if draft.parent_id is not None:
            self.drafts[draft.parent_id].children.append(node_id)
        return node_id

    def drop_draft(self, node_id: str) -> None:
        draft = self.drafts.pop(node_id)
        if draft.parent_id is not None:
            self.drafts[draft.parent_id].children.remove(node_id)

    def scan_root(self) -> list[ScannedEntry]:
        try:
            return scan_directory(self.root)
        except FileNotFoundError as exc:
            raise RootNotFound(self.root) from exc
        except NotADirectoryError as exc:
            raise RootNotFound(self.root) from exc
        except OSError as exc:
            raise RootPermissionDenied(self.root, exc) from exc

    def run(self) -> BuildResult:
        root_entries = self.scan_root()
        root_id = self.add_draft(
            _Draft(
                name=self.options.root_name if self.options.root_name is not None else self.root_real.name,
                kind=NodeKind.DIRECTORY,
                path=ROOT_PATH,
                parent_id=None,
            )
        )

        stack: list[tuple[_Frame, list[ScannedEntry] | None]] = [
            (_Frame(directory=self.root, node_id=root_id, ancestors=frozenset({self.root_real})), root_entries)
        ]
        while stack:
            frame, entries = stack.pop()
            draft = self.drafts[frame.node_id]
            if entries is None:
                try:
                    entries = scan_directory(frame.directory)
                except OSError as exc:
                    self.warn(WARNING_UNREADABLE_DIRECTORY, draft.path, str(exc))
                    self.drop_draft(frame.node_id)
                    continue

            child_frames = self.visit_children(frame, draft.path, entries)
            stack.extend((child_frame, None) for child_frame in reversed(child_frames))

        return BuildResult(manifest=self.freeze(root_id), warnings=tuple(self.warnings))

    def visit_children(self, frame: _Frame, parent_path: str, entries: list[ScannedEntry]) -> list[_Frame]:
        """Add drafts for the sorted children of one directory.

        Returns frames for child directories still to be scanned.
        """
        child_frames: list[_Frame] = []
        seen_paths: set[str] = set()
        for entry in sort_entries(entries, directories_first=self.options.directories_first):
            rel_path = join_relative(parent_path, entry.name)
            is_dir = entry.is_dir
            target_real: Path | None = None

            classification: LinkTarget | None = None
            if entry.is_symlink:
                # broken links are filtered as documents
                classification, target_real, is_dir = resolve_link(entry.path, self.root_real)

            if self.entry_filter is not None and not self.entry_filter(rel_path, is_dir):
                continue

            if classification is LinkTarget.BROKEN:
                self.warn(WARNING_BROKEN_SYMLINK, rel_path, "symlink target does not exist")
                continue
            if classification is LinkTarget.OUTSIDE:
                self.warn(WARNING_SYMLINK_OUTSIDE_ROOT, rel_path, f"symlink resolves outside root: {target_real}")
                continue

            if rel_path in seen_paths:
                self.warn(WARNING_DUPLICATE_NAME, rel_path, f"name collides after normalization: {entry.raw_name!r}")
                continue

            if is_dir:
                dir_real = target_real if target_real is not None else real_path(entry.path)
                if dir_real in frame.ancestors:
                    self.warn(WARNING_SYMLINK_CYCLE, rel_path, f"link back to ancestor {dir_real}")
                    continue
                seen_paths.add(rel_path)
                node_id = self.add_draft(
                    _Draft(name=entry.name, kind=NodeKind.DIRECTORY, path=rel_path, parent_id=frame.node_id)
                )
                child_frames.append(
                    _Frame(directory=entry.path, node_id=node_id, ancestors=frame.ancestors | {dir_real})
                )
                continue

            try:
                metadata = document_metadata(entry.path, include_mtime=self.options.include_mtime)
            except OSError as exc:
                self.warn(WARNING_UNREADABLE_DOCUMENT, rel_path, str(exc))
                continue
            seen_paths.add(rel_path)
            self.add_draft(
                _Draft(
                    name=entry.name,
                    kind=NodeKind.DOCUMENT,
                    path=rel_path,
                    parent_id=frame.node_id,
                    metadata=metadata,
                )
            )
        return child_frames

    def freeze(self, root_id: str) -> Manifest:
        """Turn drafts into immutable nodes in preorder with sibling ``order``."""
        preorder: list[str] = []
        order_of: dict[str, int] = {root_id: 0}
        stack = [root_id]
        while stack:
            node_id = stack.pop()
            preorder.append(node_id)
            children = self.drafts[node_id].children
            for index, child_id in enumerate(children):
                order_of[child_id] = index
            stack.extend(reversed(children))

        document_counts: dict[str, int] = {}
        for node_id in reversed(preorder):
            draft = self.drafts[node_id]
            if draft.kind is NodeKind.DOCUMENT:
                document_counts[node_id] = 1
                continue
            document_counts[node_id] = sum(document_counts[child_id] for child_id in draft.children)
            draft.metadata["documents"] = document_counts[node_id]

        nodes: dict[str, Node] = {}
        for node_id in preorder:
            draft = self.drafts[node_id]
            nodes[node_id] = Node(
                id=node_id,
                name=draft.name,
                kind=draft.kind,
                path=draft.path,
                order=order_of[node_id],
                children=tuple(draft.children),
                metadata=dict(draft.metadata),
            )
        return Manifest(root=nodes[root_id], nodes=nodes)


def check_root(root: Path) -> None:
    """Require ``root`` to be an existing directory this process can stat.

    Raises :class:`RootNotFound` when it is missing or not a directory and
    :class:`RootPermissionDenied` for any other stat failure (e.g. EACCES on
    a parent directory).
    """
    try:
        mode = root.stat().st_mode
    except (FileNotFoundError, NotADirectoryError) as exc:
        raise RootNotFound(root) from exc
    except OSError as exc:
        raise RootPermissionDenied(root, exc) from exc
    if not stat.S_ISDIR(mode):
        raise RootNotFound(root)


def build_manifest(
    root: Path | str,
    *,
    entry_filter: EntryFilter | None = None,
    options: BuildOptions | None = None,
) -> BuildResult:
    """Enumerate ``root`` and return the manifest plus non-fatal warnings.

    Raises :class:`RootNotFound` when ``root`` is missing or not a directory
    and :class:`RootPermissionDenied` when it cannot be listed. Never writes
    to the source tree.
    """
    root_path = Path(root)
    check_root(root_path)
    builder = _ManifestBuilder(root_path, entry_filter, options or BuildOptions())
    result = builder.run()
    logger.info(
        "built manifest for %s: %d nodes, %d warnings",
        root_path,
        len(result.manifest),
        len(result.warnings),
    )
    return result


__all__ = [
    "WARNING_SYMLINK_CYCLE",
    "WARNING_SYMLINK_OUTSIDE_ROOT",
    "WARNING_BROKEN_SYMLINK",
    "WARNING_UNREADABLE_DIRECTORY",
    "WARNING_UNREADABLE_DOCUMENT",
    "WARNING_DUPLICATE_NAME",
    "BuildOptions",
    "BuildWarning",
    "BuildResult",
    "check_root",
    "build_manifest",
]
