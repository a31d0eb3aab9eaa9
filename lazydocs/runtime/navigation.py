"""Navigation store: expansion, selection, deep links, and selection history.

This module has no rendering concerns. It derives sidebar state from an
immutable manifest and maps shareable addresses back to node ids.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import AddressNotFound, InvalidOperation
from ..manifest_model import Manifest, NodeKind, address_for_path, path_for_address

logger = logging.getLogger(__name__)

MAX_SELECTION_HISTORY = 256


@dataclass(frozen=True)
class NavigationRow:
    """One visible sidebar row."""

    node_id: str
    depth: int
    is_dir: bool
    expanded: bool
    selected: bool


class SelectionHistory:
    """Bounded back/forward stacks of selected node ids.

    Adjacent duplicates are suppressed to avoid no-op navigation steps.
    """

    def __init__(self, max_entries: int = MAX_SELECTION_HISTORY) -> None:
        self.max_entries = max(1, max_entries)
        self.back: list[str] = []
        self.forward: list[str] = []

    def _append_unique(self, stack: list[str], node_id: str) -> None:
        if stack and stack[-1] == node_id:
            return
        stack.append(node_id)
        overflow = len(stack) - self.max_entries
        if overflow > 0:
            del stack[:overflow]

    def record(self, origin: str) -> None:
        """Push ``origin`` onto the back stack and clear forward history."""
        self._append_unique(self.back, origin)
        self.forward.clear()

    def go_back(self, current: str) -> str | None:
        while self.back and self.back[-1] == current:
            self.back.pop()
        if not self.back:
            return None
        target = self.back.pop()
        self._append_unique(self.forward, current)
        return target

    def go_forward(self, current: str) -> str | None:
        while self.forward and self.forward[-1] == current:
            self.forward.pop()
        if not self.forward:
            return None
        target = self.forward.pop()
        self._append_unique(self.back, current)
        return target


class NavigationStore:
    """Sidebar state derived from one manifest.

    Directories start collapsed except the root and the ancestors of the
    initial selection. The root is always expanded.
    """

    def __init__(self, manifest: Manifest, *, initial_address: str | None = None) -> None:
        self.manifest = manifest
        self._address_to_id = {address_for_path(node.path): node.id for node in manifest.nodes.values()}
        self._expanded: set[str] = set()
        self._selected_id = manifest.root.id
        self.history = SelectionHistory()
        self.last_error: AddressNotFound | None = None
        if initial_address is not None:
            node_id, error = self.open_address(initial_address, record_history=False)
            self.last_error = error
            logger.debug("initial address %r -> %s", initial_address, node_id)

    @property
    def root_id(self) -> str:
        return self.manifest.root.id

    @property
    def selected_id(self) -> str:
        return self._selected_id

    @property
    def selected_address(self) -> str:
        return self.address_for(self._selected_id)

    def address_for(self, node_id: str) -> str:
        return address_for_path(self.manifest.get(node_id).path)

    def resolve_address(self, address: str) -> str:
        """Map a deep-link address to a node id or raise :class:`AddressNotFound`."""
        try:
            canonical = address_for_path(path_for_address(address))
        except ValueError:
            raise AddressNotFound(address) from None
        node_id = self._address_to_id.get(canonical)
        if node_id is None:
            raise AddressNotFound(address)
        return node_id

    def open_address(self, address: str, *, record_history: bool = True) -> tuple[str, AddressNotFound | None]:
        """Select the node behind ``address``.

        Unresolvable addresses select the root instead and return the error
        alongside the root id, so the store never lands in an undefined state.
        """
        try:
            node_id = self.resolve_address(address)
        except AddressNotFound as exc:
            logger.info("address %r not found; falling back to root", address)
            self.select(self.root_id, record_history=record_history)
            return self.root_id, exc
        self.select(node_id, record_history=record_history)
        return node_id, None

    def select(self, node_id: str, *, record_history: bool = True) -> None:
        """Select ``node_id`` and expand every ancestor directory.

        Raises :class:`~lazydocs.errors.UnknownNode` for ids outside the
        manifest; the selection is unchanged in that case.
        """
        ancestors = self.manifest.ancestors(node_id)
        self._expanded.update(ancestors)
        if record_history and node_id != self._selected_id:
            self.history.record(self._selected_id)
        self._selected_id = node_id

    def is_expanded(self, node_id: str) -> bool:
        node = self.manifest.get(node_id)
        if node.kind is not NodeKind.DIRECTORY:
            return False
        return node_id == self.root_id or node_id in self._expanded

    def _require_directory(self, node_id: str, operation: str) -> None:
        node = self.manifest.get(node_id)
        if node.kind is not NodeKind.DIRECTORY:
            raise InvalidOperation(f"cannot {operation} document node {node.path!r}")

    def toggle(self, node_id: str) -> bool:
        """Flip expansion of a directory and return the new state.

        Documents raise :class:`InvalidOperation`. The root cannot collapse.
        """
        self._require_directory(node_id, "toggle")
        if node_id == self.root_id:
            return True
        if node_id in self._expanded:
            self._expanded.discard(node_id)
            return False
        self._expanded.add(node_id)
        return True

    def expand(self, node_id: str) -> None:
        self._require_directory(node_id, "expand")
        self._expanded.add(node_id)

    def collapse(self, node_id: str) -> None:
        self._require_directory(node_id, "collapse")
        self._expanded.discard(node_id)

    def collapse_all(self) -> None:
        """Collapse everything except the path to the current selection."""
        self._expanded = set(self.manifest.ancestors(self._selected_id))

    def back(self) -> str | None:
        target = self.history.go_back(self._selected_id)
        if target is not None:
            self.select(target, record_history=False)
        return target

    def forward(self) -> str | None:
        target = self.history.go_forward(self._selected_id)
        if target is not None:
            self.select(target, record_history=False)
        return target

    def visible_rows(self) -> list[NavigationRow]:
        """Flatten the expanded tree below the root into sidebar rows."""
        rows: list[NavigationRow] = []
        stack: list[tuple[str, int]] = [(child_id, 0) for child_id in reversed(self.manifest.root.children)]
        while stack:
            node_id, depth = stack.pop()
            node = self.manifest.nodes[node_id]
            expanded = node.kind is NodeKind.DIRECTORY and node_id in self._expanded
            rows.append(
                NavigationRow(
                    node_id=node_id,
                    depth=depth,
                    is_dir=node.kind is NodeKind.DIRECTORY,
                    expanded=expanded,
                    selected=node_id == self._selected_id,
                )
            )
            if expanded:
                stack.extend((child_id, depth + 1) for child_id in reversed(node.children))
        return rows


__all__ = [
    "MAX_SELECTION_HISTORY",
    "NavigationRow",
    "SelectionHistory",
    "NavigationStore",
]
