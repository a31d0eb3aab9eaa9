"""Domain datatypes for manifest nodes and the manifest lookup table."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

from ..errors import ManifestIntegrityError, UnknownNode
from .ids import ROOT_PATH, node_id_for_path, parent_relative

MetadataValue = str | int | float | bool
FINGERPRINT_KEY = "fingerprint"


class NodeKind(str, Enum):
    """Variant of a manifest node."""

    DIRECTORY = "directory"
    DOCUMENT = "document"


@dataclass(frozen=True)
class Node:
    """One file or directory in the content tree.

    ``children`` holds ordered child ids and is always empty for documents.
    """

    id: str
    name: str
    kind: NodeKind
    path: str
    order: int
    children: tuple[str, ...] = ()
    metadata: Mapping[str, MetadataValue] = field(default_factory=dict)

    @property
    def is_dir(self) -> bool:
        return self.kind is NodeKind.DIRECTORY

    @property
    def fingerprint(self) -> str | None:
        """Content version marker, ``None`` when the builder recorded none."""
        value = self.metadata.get(FINGERPRINT_KEY)
        if value is None:
            return None
        return str(value)


class Manifest:
    """Synthetic root node plus flat id -> node lookup table.

    The lookup table preserves traversal (preorder) order. Manifests are
    immutable after construction; parent links are derived once.
    """

    __slots__ = ("_root", "_nodes", "_parents", "_by_path")

    def __init__(self, root: Node, nodes: Mapping[str, Node]) -> None:
        self._root = root
        self._nodes: Mapping[str, Node] = MappingProxyType(dict(nodes))
        parents: dict[str, str] = {}
        for node in self._nodes.values():
            for child_id in node.children:
                parents.setdefault(child_id, node.id)
        self._parents = parents
        self._by_path = {node.path: node.id for node in self._nodes.values()}

    @property
    def root(self) -> Node:
        return self._root

    @property
    def nodes(self) -> Mapping[str, Node]:
        return self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Manifest):
            return NotImplemented
        return self._root == other._root and list(self._nodes.items()) == list(other._nodes.items())

    def __repr__(self) -> str:
        return f"Manifest(root={self._root.path!r}, nodes={len(self._nodes)})"

    def get(self, node_id: str) -> Node:
        """Return node ``node_id`` or raise :class:`UnknownNode`."""
        try:
            return self._nodes[node_id]
        except KeyError:
            raise UnknownNode(node_id) from None

    def node_for_path(self, path: str) -> Node | None:
        node_id = self._by_path.get(path)
        return self._nodes[node_id] if node_id is not None else None

    def parent_id(self, node_id: str) -> str | None:
        self.get(node_id)
        return self._parents.get(node_id)

    def ancestors(self, node_id: str) -> list[str]:
        """Return ancestor ids of ``node_id`` ordered from the root down."""
        out: list[str] = []
        current = self.parent_id(node_id)
        while current is not None:
            out.append(current)
            current = self._parents.get(current)
        out.reverse()
        return out

    def iter_preorder(self) -> Iterator[Node]:
        """Walk the tree from the root following ``children`` order."""
        stack = [self._root.id]
        while stack:
            node = self._nodes[stack.pop()]
            yield node
            stack.extend(reversed(node.children))

    def documents(self) -> list[Node]:
        return [node for node in self.iter_preorder() if node.kind is NodeKind.DOCUMENT]

    def fingerprint(self, node_id: str) -> str | None:
        return self.get(node_id).fingerprint

    def validate(self) -> None:
        """Check tree/table consistency, raising :class:`ManifestIntegrityError`.

        Every table id must be reachable from the root exactly once, every
        child must exist, paths must be unique, ids must match their paths,
        and documents must not have children.
        """
        if self._root.kind is not NodeKind.DIRECTORY:
            raise ManifestIntegrityError("root node must be a directory")
        if self._root.path != ROOT_PATH:
            raise ManifestIntegrityError(f"root path must be empty, got {self._root.path!r}")
        if self._nodes.get(self._root.id) != self._root:
            raise ManifestIntegrityError("root node missing from lookup table")

        seen: set[str] = set()
        stack = [self._root.id]
        while stack:
            node_id = stack.pop()
            if node_id in seen:
                raise ManifestIntegrityError(f"node reachable more than once: {node_id}")
            seen.add(node_id)
            node = self._nodes.get(node_id)
            if node is None:
                raise ManifestIntegrityError(f"dangling child id: {node_id}")
            if node.id != node_id_for_path(node.path):
                raise ManifestIntegrityError(f"id does not match path {node.path!r}")
            if node.kind is NodeKind.DOCUMENT and node.children:
                raise ManifestIntegrityError(f"document has children: {node.path!r}")
            for child_id in node.children:
                child = self._nodes.get(child_id)
                if child is not None and parent_relative(child.path) != node.path:
                    raise ManifestIntegrityError(f"child {child.path!r} is not under {node.path!r}")
            stack.extend(node.children)

        orphans = set(self._nodes) - seen
        if orphans:
            raise ManifestIntegrityError(f"orphan nodes not reachable from root: {sorted(orphans)}")
        if len(self._by_path) != len(self._nodes):
            raise ManifestIntegrityError("duplicate node paths in lookup table")


__all__ = [
    "MetadataValue",
    "FINGERPRINT_KEY",
    "NodeKind",
    "Node",
    "Manifest",
]
