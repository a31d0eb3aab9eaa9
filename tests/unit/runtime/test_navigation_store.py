"""Behavior tests for sidebar navigation state and deep links."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from lazydocs.errors import AddressNotFound, InvalidOperation, UnknownNode
from lazydocs.manifest_model import Manifest, build_manifest, node_id_for_path
from lazydocs.runtime.navigation import NavigationStore, SelectionHistory


def _build(files: list[str]) -> Manifest:
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        for rel_path in files:
            target = root / rel_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(f"# {rel_path}\n", encoding="utf-8")
        return build_manifest(root).manifest


class NavigationStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.manifest = _build(["a/b/c.doc", "a/d.md", "e.md"])
        self.id_a = node_id_for_path("a")
        self.id_ab = node_id_for_path("a/b")
        self.id_c = node_id_for_path("a/b/c.doc")
        self.id_e = node_id_for_path("e.md")

    def test_initial_state_selects_root_with_only_root_expanded(self) -> None:
        store = NavigationStore(self.manifest)

        self.assertEqual(store.selected_id, store.root_id)
        self.assertTrue(store.is_expanded(store.root_id))
        self.assertFalse(store.is_expanded(self.id_a))
        self.assertEqual([row.node_id for row in store.visible_rows()], [self.id_a, self.id_e])

    def test_deep_link_selects_document_and_expands_ancestors(self) -> None:
        store = NavigationStore(self.manifest, initial_address="/a/b/c.doc")

        self.assertEqual(store.selected_id, self.id_c)
        self.assertIsNone(store.last_error)
        self.assertTrue(store.is_expanded(self.id_a))
        self.assertTrue(store.is_expanded(self.id_ab))
        rows = store.visible_rows()
        self.assertEqual(
            [(row.node_id, row.depth) for row in rows],
            [
                (self.id_a, 0),
                (self.id_ab, 1),
                (self.id_c, 2),
                (node_id_for_path("a/d.md"), 1),
                (self.id_e, 0),
            ],
        )
        self.assertEqual([row.node_id for row in rows if row.selected], [self.id_c])

    def test_unknown_address_falls_back_to_root_with_error(self) -> None:
        store = NavigationStore(self.manifest, initial_address="/nope/missing.md")

        self.assertEqual(store.selected_id, store.root_id)
        self.assertIsInstance(store.last_error, AddressNotFound)

        node_id, error = store.open_address("/../escape.md")
        self.assertEqual(node_id, store.root_id)
        self.assertIsInstance(error, AddressNotFound)

    def test_address_round_trip_for_every_node(self) -> None:
        manifest = _build(["a/b/c.doc", "a\\b.md", "what's new?/100% done#1.md"])
        store = NavigationStore(manifest)

        self.assertIsNotNone(manifest.node_for_path("a\\b.md"))
        for node_id in manifest.nodes:
            with self.subTest(node_id=node_id):
                self.assertEqual(store.resolve_address(store.address_for(node_id)), node_id)

    def test_fragment_form_address_is_accepted(self) -> None:
        store = NavigationStore(self.manifest)

        node_id, error = store.open_address("#/a/d.md")

        self.assertIsNone(error)
        self.assertEqual(store.selected_address, "/a/d.md")
        self.assertEqual(node_id, node_id_for_path("a/d.md"))

    def test_toggle_directory_flips_expansion(self) -> None:
        store = NavigationStore(self.manifest)

        self.assertTrue(store.toggle(self.id_a))
        self.assertTrue(store.is_expanded(self.id_a))
        self.assertFalse(store.toggle(self.id_a))
        self.assertFalse(store.is_expanded(self.id_a))

    def test_toggle_document_is_invalid_and_root_stays_expanded(self) -> None:
        store = NavigationStore(self.manifest)

        with self.assertRaises(InvalidOperation):
            store.toggle(self.id_e)
        self.assertTrue(store.toggle(store.root_id))
        self.assertTrue(store.is_expanded(store.root_id))

    def test_unknown_ids_raise_and_leave_state_unchanged(self) -> None:
        store = NavigationStore(self.manifest)
        store.select(self.id_e)

        with self.assertRaises(UnknownNode):
            store.select("0" * 40)
        with self.assertRaises(UnknownNode):
            store.toggle("0" * 40)
        self.assertEqual(store.selected_id, self.id_e)

    def test_collapse_all_keeps_path_to_selection(self) -> None:
        store = NavigationStore(self.manifest)
        store.expand(self.id_a)
        store.expand(self.id_ab)
        store.select(node_id_for_path("a/d.md"))

        store.collapse_all()

        self.assertTrue(store.is_expanded(self.id_a))
        self.assertFalse(store.is_expanded(self.id_ab))

    def test_back_and_forward_follow_selection_history(self) -> None:
        store = NavigationStore(self.manifest)
        store.select(self.id_e)
        store.select(self.id_c)

        self.assertEqual(store.back(), self.id_e)
        self.assertEqual(store.back(), store.root_id)
        self.assertIsNone(store.back())
        self.assertEqual(store.forward(), self.id_e)
        self.assertEqual(store.forward(), self.id_c)
        self.assertIsNone(store.forward())

    def test_new_selection_clears_forward_history(self) -> None:
        store = NavigationStore(self.manifest)
        store.select(self.id_e)
        store.back()

        store.select(self.id_c)

        self.assertIsNone(store.forward())


class SelectionHistoryTests(unittest.TestCase):
    def test_history_is_bounded_and_skips_adjacent_duplicates(self) -> None:
        history = SelectionHistory(max_entries=2)
        history.record("a")
        history.record("a")
        history.record("b")
        history.record("c")

        self.assertEqual(history.back, ["b", "c"])


if __name__ == "__main__":
    unittest.main()
