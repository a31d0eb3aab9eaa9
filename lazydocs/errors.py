"""Exception taxonomy shared by the builder, navigation, and content runtime.

Build errors are fatal and abort manifest generation. Load errors are carried
on resolve futures so one broken document never breaks the rest of the tree.
"""

from __future__ import annotations


class LazyDocsError(Exception):
    """Base class for all lazydocs errors."""


class BuildError(LazyDocsError):
    """Fatal manifest-build failure; no manifest is emitted."""


class RootNotFound(BuildError):
    """Build root is missing or is not a directory."""

    def __init__(self, root: object) -> None:
        super().__init__(f"root directory not found: {root}")
        self.root = root


class PermissionDenied(BuildError):
    """Filesystem refused access to a path the build cannot do without."""


class RootPermissionDenied(PermissionDenied):
    """Build root exists but cannot be listed."""

    def __init__(self, root: object, cause: OSError | None = None) -> None:
        super().__init__(f"permission denied reading root: {root}")
        self.root = root
        self.cause = cause


class ManifestError(LazyDocsError):
    """Manifest artifact is unusable."""


class UnsupportedSchemaVersion(ManifestError):
    """Serialized manifest carries a schema version this reader does not speak."""

    def __init__(self, found: object, supported: int) -> None:
        super().__init__(f"unsupported manifest schema version {found!r} (supported: {supported})")
        self.found = found
        self.supported = supported


class ManifestDecodeError(ManifestError):
    """Serialized manifest is structurally malformed."""


class ManifestIntegrityError(ManifestError):
    """Tree and lookup table disagree (orphans, dangling children, duplicates)."""


class NavigationError(LazyDocsError):
    """Navigation-store operation rejected."""


class UnknownNode(NavigationError):
    """Node id does not exist in the manifest lookup table."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"unknown node id: {node_id}")
        self.node_id = node_id


class InvalidOperation(NavigationError):
    """Operation does not apply to the node kind (e.g. toggling a document)."""


class AddressNotFound(NavigationError):
    """Deep-link address does not map to any node."""

    def __init__(self, address: str) -> None:
        super().__init__(f"no node for address: {address!r}")
        self.address = address


class LoadError(LazyDocsError):
    """Content resolution failure for one node."""

    retryable = False

    def __init__(self, message: str, *, node_id: str | None = None, path: str | None = None) -> None:
        super().__init__(message)
        self.node_id = node_id
        self.path = path


class NotADocument(LoadError):
    """Resolve was asked for a directory node."""


class ContentNotFound(LoadError):
    """Document vanished since the manifest was built."""


class TransientIOError(LoadError):
    """Retryable I/O failure, including load timeouts."""

    retryable = True


class ContentDecodeError(LoadError):
    """Bytes were retrieved but are not readable as text."""


__all__ = [
    "LazyDocsError",
    "BuildError",
    "RootNotFound",
    "PermissionDenied",
    "RootPermissionDenied",
    "ManifestError",
    "UnsupportedSchemaVersion",
    "ManifestDecodeError",
    "ManifestIntegrityError",
    "NavigationError",
    "UnknownNode",
    "InvalidOperation",
    "AddressNotFound",
    "LoadError",
    "NotADocument",
    "ContentNotFound",
    "TransientIOError",
    "ContentDecodeError",
]
