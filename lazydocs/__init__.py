"""Public package surface for lazydocs.

Exports ``main`` for programmatic CLI invocation.
The builder lives in ``lazydocs.manifest_model`` and the client runtime in
``lazydocs.runtime``.
"""

from __future__ import annotations

__version__ = "0.1.0"


def main(*args, **kwargs):
    """Lazily import CLI entrypoint to keep package imports lightweight."""
    from .cli import main as _main

    return _main(*args, **kwargs)


__all__ = ["__version__", "main"]
