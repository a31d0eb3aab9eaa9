"""Build-time content discovery and manifest model.

This package contains no runtime/UI concerns:
- node and manifest datatypes with a flat id lookup table
- path normalization, id derivation, and deep-link addresses
- entry filters (extension allow-list, hidden files, gitignore)
- iterative filesystem traversal into a deterministic manifest
- versioned JSON serialization
"""

from __future__ import annotations

from .types import FINGERPRINT_KEY, Manifest, MetadataValue, Node, NodeKind
from .ids import (
    ROOT_ADDRESS,
    ROOT_PATH,
    address_for_path,
    node_id_for_path,
    normalize_relative_path,
    path_for_address,
)
from .filters import (
    EntryFilter,
    build_entry_filter,
    combine_filters,
    extension_filter,
    hidden_filter,
)
from .build import BuildOptions, BuildResult, BuildWarning, build_manifest, check_root
from .serialize import (
    SCHEMA_VERSION,
    dumps_manifest,
    loads_manifest,
    read_manifest,
    write_manifest,
)

__all__ = [
    "FINGERPRINT_KEY",
    "Manifest",
    "MetadataValue",
    "Node",
    "NodeKind",
    "ROOT_ADDRESS",
    "ROOT_PATH",
    "address_for_path",
    "node_id_for_path",
    "normalize_relative_path",
    "path_for_address",
    "EntryFilter",
    "build_entry_filter",
    "combine_filters",
    "extension_filter",
    "hidden_filter",
    "BuildOptions",
    "BuildResult",
    "BuildWarning",
    "build_manifest",
    "check_root",
    "SCHEMA_VERSION",
    "dumps_manifest",
    "loads_manifest",
    "read_manifest",
    "write_manifest",
]
