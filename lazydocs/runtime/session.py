"""Browsing session wiring navigation, content resolution, and the pane state."""

from __future__ import annotations

import logging

from ..errors import AddressNotFound
from ..manifest_model import Manifest, NodeKind
from .content_view import ContentView, ContentViewState
from .navigation import NavigationStore
from .resolver import ContentResolver

logger = logging.getLogger(__name__)


class BrowseSession:
    """One client session over an immutable manifest.

    Selecting a document delegates to the resolver and routes the outcome
    into the content view; selecting a directory only changes navigation.
    """

    def __init__(self, manifest: Manifest, resolver: ContentResolver, *, initial_address: str | None = None) -> None:
        self.manifest = manifest
        self.resolver = resolver
        self.navigation = NavigationStore(manifest, initial_address=initial_address)
        self.view = ContentView()
        if initial_address is not None:
            self._show_selection()

    @property
    def state(self) -> ContentViewState:
        return self.view.state

    def select(self, node_id: str) -> None:
        self.navigation.select(node_id)
        self._show_selection()

    def open_address(self, address: str) -> AddressNotFound | None:
        """Follow a deep link; unknown addresses land on the root."""
        _node_id, error = self.navigation.open_address(address)
        self._show_selection()
        return error

    def back(self) -> bool:
        if self.navigation.back() is None:
            return False
        self._show_selection()
        return True

    def forward(self) -> bool:
        if self.navigation.forward() is None:
            return False
        self._show_selection()
        return True

    def _show_selection(self) -> None:
        node = self.manifest.get(self.navigation.selected_id)
        if node.kind is not NodeKind.DOCUMENT:
            return
        logger.debug("showing %s", node.path)
        self.view.show(node.id, self.resolver.resolve(node.id))


__all__ = ["BrowseSession"]
