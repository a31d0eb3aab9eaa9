"""Concurrency and failure-handling tests for the lazy content resolver.

Each test owns its cache and resolver, so no state leaks between tests.
"""

from __future__ import annotations

import hashlib
import threading
import time
import unittest
from collections import Counter
from concurrent.futures import ThreadPoolExecutor

from lazydocs.config import ResolverConfig
from lazydocs.errors import (
    ContentDecodeError,
    ContentNotFound,
    NotADocument,
    TransientIOError,
    UnknownNode,
)
from lazydocs.manifest_model import Manifest, Node, NodeKind, node_id_for_path
from lazydocs.manifest_model.ids import parent_relative
from lazydocs.runtime.content_cache import CacheState, ContentCache
from lazydocs.runtime.resolver import ContentResolver

WAIT = 5.0


def _manifest(documents: dict[str, bytes]) -> Manifest:
    """Minimal manifest whose fingerprints are digests of ``documents``."""
    paths = set(documents)
    for path in documents:
        parent = parent_relative(path)
        while parent:
            paths.add(parent)
            parent = parent_relative(parent)
    children: dict[str, list[str]] = {}
    for path in sorted(paths):
        children.setdefault(parent_relative(path) or "", []).append(path)

    nodes: dict[str, Node] = {}
    for path in ["", *sorted(paths)]:
        siblings = children.get(parent_relative(path) or "", [path]) if path else [path]
        if path in documents:
            kind = NodeKind.DOCUMENT
            child_ids: tuple[str, ...] = ()
            metadata = {"fingerprint": hashlib.blake2b(documents[path], digest_size=20).hexdigest()}
        else:
            kind = NodeKind.DIRECTORY
            child_ids = tuple(node_id_for_path(child) for child in children.get(path, []))
            metadata = {}
        node = Node(
            id=node_id_for_path(path),
            name=path.rsplit("/", 1)[-1],
            kind=kind,
            path=path,
            order=siblings.index(path),
            children=child_ids,
            metadata=metadata,
        )
        nodes[node.id] = node
    manifest = Manifest(root=nodes[node_id_for_path("")], nodes=nodes)
    manifest.validate()
    return manifest


class _FakeSource:
    """Counts fetches; can delay, block on a gate, or fail a few times first."""

    def __init__(
        self,
        documents: dict[str, bytes],
        *,
        delay: float = 0.0,
        gate: threading.Event | None = None,
        failures: dict[str, list[BaseException]] | None = None,
    ) -> None:
        self.documents = dict(documents)
        self.delay = delay
        self.gate = gate
        self.failures = {path: list(errors) for path, errors in (failures or {}).items()}
        self.calls: Counter[str] = Counter()
        self._lock = threading.Lock()

    def fetch(self, path: str, timeout: float | None = None) -> bytes:
        with self._lock:
            self.calls[path] += 1
            pending = self.failures.get(path)
            error = pending.pop(0) if pending else None
        if self.gate is not None:
            self.gate.wait(WAIT)
        if self.delay:
            time.sleep(self.delay)
        if error is not None:
            raise error
        try:
            return self.documents[path]
        except KeyError:
            raise FileNotFoundError(path) from None


def _config(**overrides: object) -> ResolverConfig:
    values: dict[str, object] = {
        "load_timeout_seconds": WAIT,
        "retry_attempts": 3,
        "backoff_initial_seconds": 0.0,
        "backoff_max_seconds": 0.0,
        "cache_max_entries": None,
        "max_workers": 4,
    }
    values.update(overrides)
    return ResolverConfig(**values)  # type: ignore[arg-type]


class ContentResolverTests(unittest.TestCase):
    def _resolver(self, manifest: Manifest, source: _FakeSource, cache: ContentCache | None = None, **config: object) -> ContentResolver:
        resolver = ContentResolver(manifest, source, cache, config=_config(**config))
        self.addCleanup(resolver.shutdown)
        return resolver

    def test_concurrent_resolves_share_one_load(self) -> None:
        documents = {"guide/intro.md": b"# Intro\n"}
        source = _FakeSource(documents, delay=0.1)
        resolver = self._resolver(_manifest(documents), source)
        node_id = node_id_for_path("guide/intro.md")
        barrier = threading.Barrier(50)

        def request():
            barrier.wait(WAIT)
            return resolver.resolve(node_id)

        with ThreadPoolExecutor(max_workers=50) as pool:
            futures = [future.result(WAIT) for future in [pool.submit(request) for _ in range(50)]]
        texts = {future.result(WAIT).text for future in futures}

        self.assertEqual(texts, {"# Intro\n"})
        self.assertEqual(source.calls["guide/intro.md"], 1)
        self.assertEqual(resolver.stats().loads, 1)

    def test_cached_content_is_returned_completed(self) -> None:
        documents = {"a.md": b"alpha\n"}
        source = _FakeSource(documents)
        resolver = self._resolver(_manifest(documents), source)
        node_id = node_id_for_path("a.md")
        first = resolver.resolve(node_id).result(WAIT)

        again = resolver.resolve(node_id)

        self.assertTrue(again.done())
        self.assertEqual(again.result(), first)
        self.assertEqual(source.calls["a.md"], 1)
        self.assertEqual(resolver.stats().hits, 1)

    def test_fingerprint_change_triggers_exactly_one_new_load(self) -> None:
        cache: ContentCache = ContentCache()
        source = _FakeSource({"a.md": b"v1\n"})
        old = self._resolver(_manifest({"a.md": b"v1\n"}), source, cache)
        node_id = node_id_for_path("a.md")
        self.assertEqual(old.resolve(node_id).result(WAIT).text, "v1\n")

        source.documents["a.md"] = b"v2\n"
        new = self._resolver(_manifest({"a.md": b"v2\n"}), source, cache)
        results = [new.resolve(node_id) for _ in range(5)]

        self.assertEqual({future.result(WAIT).text for future in results}, {"v2\n"})
        self.assertEqual(source.calls["a.md"], 2)

    def test_vanished_document_fails_without_affecting_siblings(self) -> None:
        documents = {"a.md": b"a\n", "b.md": b"b\n"}
        source = _FakeSource({"b.md": b"b\n"})
        resolver = self._resolver(_manifest(documents), source)

        missing = resolver.resolve(node_id_for_path("a.md"))
        present = resolver.resolve(node_id_for_path("b.md"))

        with self.assertRaises(ContentNotFound) as ctx:
            missing.result(WAIT)
        self.assertEqual(ctx.exception.path, "a.md")
        self.assertEqual(present.result(WAIT).text, "b\n")
        self.assertEqual(source.calls["a.md"], 1)

    def test_transient_failure_is_retried(self) -> None:
        documents = {"a.md": b"a\n"}
        source = _FakeSource(documents, failures={"a.md": [OSError("flaky disk")]})
        resolver = self._resolver(_manifest(documents), source)

        with self.assertLogs("lazydocs.runtime.resolver", level="WARNING"):
            content = resolver.resolve(node_id_for_path("a.md")).result(WAIT)

        self.assertEqual(content.text, "a\n")
        self.assertEqual(source.calls["a.md"], 2)

    def test_exhausted_retries_fail_and_next_request_reloads(self) -> None:
        documents = {"a.md": b"a\n"}
        source = _FakeSource(documents, failures={"a.md": [OSError("down")] * 3})
        resolver = self._resolver(_manifest(documents), source)
        node_id = node_id_for_path("a.md")

        with self.assertLogs("lazydocs.runtime.resolver", level="WARNING"):
            with self.assertRaises(TransientIOError):
                resolver.resolve(node_id).result(WAIT)
        self.assertEqual(source.calls["a.md"], 3)
        self.assertIs(resolver.cache.state(node_id, _manifest(documents).fingerprint(node_id)), CacheState.FAILED)

        self.assertEqual(resolver.resolve(node_id).result(WAIT).text, "a\n")
        self.assertEqual(source.calls["a.md"], 4)

    def test_binary_content_is_a_decode_error_and_not_retried(self) -> None:
        documents = {"image.md": b"\x89PNG\x00\x00"}
        source = _FakeSource(documents)
        resolver = self._resolver(_manifest(documents), source)

        with self.assertRaises(ContentDecodeError):
            resolver.resolve(node_id_for_path("image.md")).result(WAIT)
        self.assertEqual(source.calls["image.md"], 1)

    def test_timeout_fails_load_and_later_request_retries(self) -> None:
        documents = {"slow.md": b"slow\n"}
        gate = threading.Event()
        source = _FakeSource(documents, gate=gate)
        resolver = self._resolver(_manifest(documents), source, load_timeout_seconds=0.2)
        node_id = node_id_for_path("slow.md")

        with self.assertRaises(TransientIOError):
            resolver.resolve(node_id).result(WAIT)
        gate.set()

        self.assertEqual(resolver.resolve(node_id).result(WAIT).text, "slow\n")
        self.assertEqual(source.calls["slow.md"], 2)

    def test_queued_loads_do_not_time_out_before_they_start(self) -> None:
        documents = {"a.md": b"a\n", "b.md": b"b\n", "c.md": b"c\n"}
        source = _FakeSource(documents, delay=0.4)
        resolver = self._resolver(_manifest(documents), source, load_timeout_seconds=0.6, max_workers=1)

        futures = resolver.resolve_many(node_id_for_path(path) for path in documents)

        texts = {node_id: future.result(WAIT).text for node_id, future in futures.items()}
        self.assertEqual(sorted(texts.values()), ["a\n", "b\n", "c\n"])
        self.assertEqual(source.calls, Counter({"a.md": 1, "b.md": 1, "c.md": 1}))

    def test_evicting_pending_entry_keeps_existing_waiters(self) -> None:
        documents = {"a.md": b"a\n"}
        gate = threading.Event()
        source = _FakeSource(documents, gate=gate)
        resolver = self._resolver(_manifest(documents), source)
        node_id = node_id_for_path("a.md")

        first = resolver.resolve(node_id)
        self.assertTrue(resolver.evict(node_id))
        second = resolver.resolve(node_id)
        gate.set()

        self.assertEqual(first.result(WAIT).text, "a\n")
        self.assertEqual(second.result(WAIT).text, "a\n")
        self.assertEqual(source.calls["a.md"], 2)

    def test_cancelling_one_caller_does_not_cancel_shared_load(self) -> None:
        documents = {"a.md": b"a\n"}
        gate = threading.Event()
        source = _FakeSource(documents, gate=gate)
        resolver = self._resolver(_manifest(documents), source)
        node_id = node_id_for_path("a.md")

        abandoned = resolver.resolve(node_id)
        kept = resolver.resolve(node_id)
        self.assertTrue(abandoned.cancel())
        gate.set()

        self.assertEqual(kept.result(WAIT).text, "a\n")
        self.assertTrue(abandoned.cancelled())
        self.assertEqual(source.calls["a.md"], 1)

    def test_directories_and_unknown_ids_are_rejected_synchronously(self) -> None:
        documents = {"dir/a.md": b"a\n"}
        source = _FakeSource(documents)
        resolver = self._resolver(_manifest(documents), source)

        with self.assertRaises(NotADocument):
            resolver.resolve(node_id_for_path("dir"))
        with self.assertRaises(UnknownNode):
            resolver.resolve("0" * 40)
        self.assertEqual(sum(source.calls.values()), 0)

    def test_bounded_cache_drops_settled_entries(self) -> None:
        documents = {"a.md": b"a\n", "b.md": b"b\n"}
        source = _FakeSource(documents)
        cache: ContentCache = ContentCache(max_entries=1)
        resolver = self._resolver(_manifest(documents), source, cache)

        resolver.resolve(node_id_for_path("a.md")).result(WAIT)
        resolver.resolve(node_id_for_path("b.md")).result(WAIT)

        self.assertIsNone(cache.peek(node_id_for_path("a.md")))
        self.assertEqual(resolver.stats().evictions, 1)

    def test_prefetch_warms_documents_and_skips_directories(self) -> None:
        documents = {"dir/a.md": b"a\n"}
        source = _FakeSource(documents)
        resolver = self._resolver(_manifest(documents), source)
        node_id = node_id_for_path("dir/a.md")

        resolver.prefetch([node_id_for_path("dir"), node_id])
        entry = resolver.cache.peek(node_id)

        assert entry is not None
        self.assertEqual(entry.future.result(WAIT).text, "a\n")
        self.assertTrue(resolver.resolve(node_id).done())
        self.assertEqual(source.calls["dir/a.md"], 1)


if __name__ == "__main__":
    unittest.main()
