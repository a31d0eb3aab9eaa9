"""Lazy content resolver on top of :class:`ContentCache`.

``resolve`` never blocks: it returns a per-caller future chained to one
shared load per ``(node id, fingerprint)``. Cache hits come back already
completed. Cancelling a caller future only detaches that caller.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from concurrent.futures import Future, InvalidStateError, ThreadPoolExecutor
from dataclasses import dataclass

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    stop_any,
    wait_exponential,
)

from ..config import ResolverConfig
from ..errors import ContentNotFound, LoadError, NotADocument, TransientIOError
from ..manifest_model import Manifest, Node, NodeKind
from .content_cache import CacheEntry, CacheStats, ContentCache
from .source import ContentSource, decode_text

logger = logging.getLogger(__name__)

NOT_FOUND_ERRORS = (FileNotFoundError, NotADirectoryError)


@dataclass(frozen=True)
class Content:
    """Decoded body of one document version."""

    node_id: str
    path: str
    fingerprint: str | None
    text: str


class ContentResolver:
    """Resolve document bodies exactly once per fingerprint.

    The cache is injected so its lifetime is owned by the caller; the
    resolver owns only its worker pool.
    """

    def __init__(
        self,
        manifest: Manifest,
        source: ContentSource,
        cache: ContentCache[Content] | None = None,
        *,
        config: ResolverConfig | None = None,
    ) -> None:
        self.manifest = manifest
        self.source = source
        self.config = config or ResolverConfig()
        self.cache: ContentCache[Content] = (
            cache if cache is not None else ContentCache(max_entries=self.config.cache_max_entries)
        )
        self._settle_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="lazydocs-content-load",
        )

    def __enter__(self) -> ContentResolver:
        return self

    def __exit__(self, *_exc_info: object) -> None:
        self.shutdown()

    def _document(self, node_id: str) -> Node:
        node = self.manifest.get(node_id)
        if node.kind is not NodeKind.DOCUMENT:
            raise NotADocument(f"not a document: {node.path!r}", node_id=node_id, path=node.path)
        return node

    def resolve(self, node_id: str) -> Future[Content]:
        """Return a future for the body of document ``node_id``.

        Raises :class:`~lazydocs.errors.UnknownNode` or :class:`NotADocument`
        immediately. Load failures arrive on the future as
        :class:`ContentNotFound`, :class:`TransientIOError`, or
        :class:`~lazydocs.errors.ContentDecodeError`.
        """
        node = self._document(node_id)
        entry, created = self.cache.acquire(node_id, node.fingerprint)
        if created:
            self._start_load(node, entry)
        return self._caller_future(entry.future)

    def _caller_future(self, shared: Future[Content]) -> Future[Content]:
        caller: Future[Content] = Future()

        def copy_outcome(done: Future[Content]) -> None:
            # caller.cancel() only detaches this caller
            if caller.cancelled():
                return
            exc = done.exception()
            try:
                if exc is not None:
                    caller.set_exception(exc)
                else:
                    caller.set_result(done.result())
            except InvalidStateError:
                # cancelled between the check and the set
                pass

        shared.add_done_callback(copy_outcome)
        return caller

    def resolve_many(self, node_ids: Iterable[str]) -> dict[str, Future[Content]]:
        return {node_id: self.resolve(node_id) for node_id in node_ids}

    def prefetch(self, node_ids: Iterable[str]) -> None:
        """Warm the cache for ``node_ids``; failures are only logged."""
        for node_id in node_ids:
            try:
                future = self.resolve(node_id)
            except LoadError as exc:
                logger.debug("skipping prefetch of %s: %s", node_id, exc)
                continue
            future.add_done_callback(self._log_prefetch_failure)

    @staticmethod
    def _log_prefetch_failure(future: Future[Content]) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.debug("prefetch failed: %s", exc)

    def evict(self, node_id: str) -> bool:
        return self.cache.evict(node_id)

    def stats(self) -> CacheStats:
        return self.cache.stats()

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        self.cache.clear()

    def _settle(self, shared: Future[Content], *, result: Content | None = None, error: BaseException | None = None) -> bool:
        """Settle ``shared`` once; later attempts (timeouts, late loads) are dropped."""
        with self._settle_lock:
            if shared.done():
                return False
            if error is not None:
                shared.set_exception(error)
            else:
                shared.set_result(result)
            return True

    def _start_load(self, node: Node, entry: CacheEntry[Content]) -> None:
        shared = entry.future
        shared.set_running_or_notify_cancel()
        logger.debug("queueing load of %s (%s)", node.path, node.id)
        try:
            self._executor.submit(self._run_load, node, shared)
        except RuntimeError as exc:
            self._settle(shared, error=TransientIOError(f"resolver is shut down: {exc}", node_id=node.id, path=node.path))

    def _expire(self, node: Node, shared: Future[Content]) -> None:
        error = TransientIOError(
            f"load timed out after {self.config.load_timeout_seconds:g}s",
            node_id=node.id,
            path=node.path,
        )
        if self._settle(shared, error=error):
            logger.warning("load of %s timed out", node.path)

    def _run_load(self, node: Node, shared: Future[Content]) -> None:
        if shared.done():
            logger.debug("skipping load of %s: already settled", node.path)
            return
        # the deadline covers the load itself, not time spent queued
        timer = threading.Timer(self.config.load_timeout_seconds, self._expire, args=(node, shared))
        timer.daemon = True
        timer.start()
        logger.debug("loading %s (%s)", node.path, node.id)
        try:
            content = self._load_with_retry(node, shared)
        except LoadError as exc:
            self._settle(shared, error=exc)
        except Exception as exc:
            logger.exception("unexpected failure loading %s", node.path)
            self._settle(shared, error=TransientIOError(str(exc), node_id=node.id, path=node.path))
        else:
            if not self._settle(shared, result=content):
                logger.debug("discarding late result for %s", node.path)
        finally:
            timer.cancel()

    def _load_with_retry(self, node: Node, shared: Future[Content]) -> Content:
        retrying = Retrying(
            retry=retry_if_exception_type(TransientIOError),
            stop=stop_any(
                stop_after_attempt(self.config.retry_attempts),
                lambda _state: shared.done(),
            ),
            wait=wait_exponential(
                multiplier=self.config.backoff_initial_seconds,
                max=self.config.backoff_max_seconds,
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(self._load_once, node)

    def _load_once(self, node: Node) -> Content:
        try:
            data = self.source.fetch(node.path, timeout=self.config.load_timeout_seconds)
        except NOT_FOUND_ERRORS as exc:
            raise ContentNotFound(f"document vanished: {node.path}", node_id=node.id, path=node.path) from exc
        except OSError as exc:
            raise TransientIOError(f"I/O error reading {node.path}: {exc}", node_id=node.id, path=node.path) from exc
        text = decode_text(data, path=node.path, node_id=node.id)
        return Content(node_id=node.id, path=node.path, fingerprint=node.fingerprint, text=text)


__all__ = [
    "NOT_FOUND_ERRORS",
    "Content",
    "ContentResolver",
]
