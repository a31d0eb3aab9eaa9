"""Displayed-content state for the document pane.

A failed resolution keeps the previously displayed document visible and
records an inline error next to it instead of clearing the view.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future
from dataclasses import dataclass

from ..errors import LoadError
from .resolver import Content


@dataclass(frozen=True)
class ContentViewState:
    """Immutable snapshot of what the document pane should show."""

    content: Content | None
    requested_id: str | None
    error: LoadError | None
    loading: bool

    @property
    def is_stale(self) -> bool:
        """Displayed content belongs to a different node than the last request."""
        return self.content is not None and self.requested_id is not None and self.content.node_id != self.requested_id


class ContentView:
    """Tracks the latest request and applies its outcome when it settles.

    Outcomes of superseded requests are ignored so a slow earlier load
    cannot overwrite a newer selection.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = ContentViewState(content=None, requested_id=None, error=None, loading=False)
        self._generation = 0

    @property
    def state(self) -> ContentViewState:
        with self._lock:
            return self._state

    def show(self, node_id: str, future: Future[Content]) -> None:
        """Start displaying ``node_id`` once ``future`` settles."""
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._state = ContentViewState(
                content=self._state.content,
                requested_id=node_id,
                error=None,
                loading=True,
            )
        future.add_done_callback(lambda done: self._apply(generation, done))

    def _apply(self, generation: int, future: Future[Content]) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        with self._lock:
            if generation != self._generation:
                return
            previous = self._state
            if exc is None:
                self._state = ContentViewState(
                    content=future.result(),
                    requested_id=previous.requested_id,
                    error=None,
                    loading=False,
                )
                return
            if not isinstance(exc, LoadError):
                exc = LoadError(str(exc), node_id=previous.requested_id)
            self._state = ContentViewState(
                content=previous.content,
                requested_id=previous.requested_id,
                error=exc,
                loading=False,
            )


__all__ = [
    "ContentViewState",
    "ContentView",
]
