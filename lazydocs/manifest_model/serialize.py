"""Versioned JSON form of a manifest.

Output is deterministic: nodes in preorder, keys sorted, fixed indentation.
Readers reject any schema version other than :data:`SCHEMA_VERSION` instead
of guessing.
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from ..errors import ManifestDecodeError, UnsupportedSchemaVersion
from .types import Manifest, MetadataValue, Node, NodeKind

SCHEMA_VERSION = 1
_NODE_KEYS = frozenset({"id", "kind", "name", "path", "order", "children", "metadata"})


def _node_to_dict(node: Node) -> dict[str, object]:
    out: dict[str, object] = {
        "id": node.id,
        "kind": node.kind.value,
        "name": node.name,
        "path": node.path,
        "order": node.order,
    }
    if node.kind is NodeKind.DIRECTORY:
        out["children"] = list(node.children)
    if node.metadata:
        out["metadata"] = dict(node.metadata)
    return out


def manifest_to_dict(manifest: Manifest) -> dict[str, object]:
    return {
        "schema_version": SCHEMA_VERSION,
        "root": manifest.root.id,
        "nodes": [_node_to_dict(node) for node in manifest.nodes.values()],
    }


def dumps_manifest(manifest: Manifest) -> str:
    """Serialize ``manifest`` to its canonical JSON text."""
    return json.dumps(manifest_to_dict(manifest), indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def _require(raw: Mapping[str, object], key: str, expected: type, where: str) -> Any:
    value = raw.get(key)
    if isinstance(value, bool) or not isinstance(value, expected):
        raise ManifestDecodeError(f"{where}: field {key!r} missing or not {expected.__name__}")
    return value


def _decode_metadata(raw: object, where: str) -> dict[str, MetadataValue]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ManifestDecodeError(f"{where}: metadata must be an object")
    out: dict[str, MetadataValue] = {}
    for key, value in raw.items():
        if not isinstance(value, (str, int, float, bool)):
            raise ManifestDecodeError(f"{where}: metadata {key!r} is not a scalar")
        out[key] = value
    return out


def _node_from_dict(raw: object, index: int) -> Node:
    where = f"nodes[{index}]"
    if not isinstance(raw, dict):
        raise ManifestDecodeError(f"{where}: node must be an object")
    unknown = set(raw) - _NODE_KEYS
    if unknown:
        raise ManifestDecodeError(f"{where}: unknown fields {sorted(unknown)}")

    kind_value = _require(raw, "kind", str, where)
    try:
        kind = NodeKind(kind_value)
    except ValueError:
        raise ManifestDecodeError(f"{where}: unknown kind {kind_value!r}") from None

    children: tuple[str, ...] = ()
    if kind is NodeKind.DIRECTORY:
        raw_children = _require(raw, "children", list, where)
        if not all(isinstance(child, str) for child in raw_children):
            raise ManifestDecodeError(f"{where}: children must be id strings")
        children = tuple(raw_children)
    elif "children" in raw:
        raise ManifestDecodeError(f"{where}: documents cannot carry children")

    return Node(
        id=_require(raw, "id", str, where),
        name=_require(raw, "name", str, where),
        kind=kind,
        path=_require(raw, "path", str, where),
        order=_require(raw, "order", int, where),
        children=children,
        metadata=_decode_metadata(raw.get("metadata"), where),
    )


def manifest_from_dict(raw: object) -> Manifest:
    """Rebuild a manifest from its decoded JSON object and validate it."""
    if not isinstance(raw, dict):
        raise ManifestDecodeError("manifest must be a JSON object")
    version = raw.get("schema_version")
    if isinstance(version, bool) or not isinstance(version, int) or version != SCHEMA_VERSION:
        raise UnsupportedSchemaVersion(version, SCHEMA_VERSION)

    root_id = _require(raw, "root", str, "manifest")
    raw_nodes = _require(raw, "nodes", list, "manifest")
    nodes: dict[str, Node] = {}
    for index, raw_node in enumerate(raw_nodes):
        node = _node_from_dict(raw_node, index)
        if node.id in nodes:
            raise ManifestDecodeError(f"duplicate node id {node.id}")
        nodes[node.id] = node
    if root_id not in nodes:
        raise ManifestDecodeError(f"root id {root_id} not present in nodes")

    manifest = Manifest(root=nodes[root_id], nodes=nodes)
    manifest.validate()
    return manifest


def loads_manifest(text: str | bytes) -> Manifest:
    """Parse manifest JSON text.

    Raises :class:`UnsupportedSchemaVersion` on a version mismatch and
    :class:`ManifestDecodeError` for malformed content.
    """
    try:
        raw = json.loads(text)
    except ValueError as exc:
        raise ManifestDecodeError(f"manifest is not valid JSON: {exc}") from exc
    return manifest_from_dict(raw)


def write_manifest(manifest: Manifest, destination: Path) -> None:
    """Write ``manifest`` atomically so readers never see a partial file."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    payload = dumps_manifest(manifest)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{destination.name}.", suffix=".tmp", dir=destination.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
            handle.write(payload)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, destination)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def read_manifest(path: Path) -> Manifest:
    return loads_manifest(path.read_text(encoding="utf-8"))


__all__ = [
    "SCHEMA_VERSION",
    "manifest_to_dict",
    "manifest_from_dict",
    "dumps_manifest",
    "loads_manifest",
    "write_manifest",
    "read_manifest",
]
