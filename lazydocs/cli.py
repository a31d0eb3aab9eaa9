"""Command-line front door for lazydocs.

Builds a manifest for a content root and writes it to a file or stdout.
Also validates existing manifests and resolves a deep link to its document
body, which exercises the same runtime a client uses.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import load_build_defaults, load_config, load_resolver_config, save_config
from .errors import AddressNotFound, BuildError, LoadError, ManifestError
from .manifest_model import (
    BuildOptions,
    build_entry_filter,
    build_manifest,
    check_root,
    dumps_manifest,
    read_manifest,
    write_manifest,
)
from .runtime import ContentResolver, FileSystemContentSource, NavigationStore

logger = logging.getLogger(__name__)

_CLI_HANDLER_NAME = "lazydocs-cli"


def _configure_logging(verbose: int, quiet: bool) -> None:
    """Route package logs to stderr; warnings are the secondary channel."""
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    package_logger = logging.getLogger("lazydocs")
    for handler in list(package_logger.handlers):
        if handler.get_name() == _CLI_HANDLER_NAME:
            package_logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_CLI_HANDLER_NAME)
    handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    package_logger.addHandler(handler)
    package_logger.setLevel(level)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lazydocs",
        description="Build a navigation manifest for a tree of text documents.",
    )
    parser.add_argument("root", nargs="?", default=None, help="Content root directory.")
    parser.add_argument("-o", "--output", metavar="PATH", help="Write the manifest to PATH (default: stdout).")
    parser.add_argument(
        "--ext",
        action="append",
        default=None,
        metavar="EXT",
        help="Document extension to include (repeatable). Defaults come from config.",
    )
    parser.add_argument("--all-files", action="store_true", help="Include every file regardless of extension.")
    parser.add_argument("--show-hidden", action="store_true", default=None, help="Include dot-prefixed entries.")
    parser.add_argument(
        "--skip-gitignored",
        action="store_true",
        default=None,
        help="Omit entries ignored by git.",
    )
    parser.add_argument("--include-mtime", action="store_true", help="Record mtime_ns metadata (not reproducible).")
    parser.add_argument("--directories-first", action="store_true", help="Order directories before documents.")
    parser.add_argument("--root-name", default=None, help="Display label for the root node.")
    parser.add_argument(
        "--save-defaults",
        action="store_true",
        help="Persist --ext/--show-hidden/--skip-gitignored as config defaults.",
    )
    parser.add_argument("--check", metavar="MANIFEST", help="Validate an existing manifest and exit.")
    parser.add_argument(
        "--resolve",
        metavar="ADDRESS",
        help="Print the document behind ADDRESS using --manifest and ROOT.",
    )
    parser.add_argument("--manifest", metavar="MANIFEST", help="Manifest used by --resolve.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging (repeatable).")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log errors.")
    return parser


def _check_manifest(path: Path) -> None:
    try:
        manifest = read_manifest(path)
    except (OSError, ManifestError) as exc:
        raise SystemExit(f"lazydocs: invalid manifest {path}: {exc}") from exc
    sys.stdout.write(f"ok: {len(manifest)} nodes, {len(manifest.documents())} documents\n")


def _resolve_address(address: str, manifest_path: Path, root: Path) -> None:
    try:
        manifest = read_manifest(manifest_path)
    except (OSError, ManifestError) as exc:
        raise SystemExit(f"lazydocs: invalid manifest {manifest_path}: {exc}") from exc

    navigation = NavigationStore(manifest)
    try:
        node_id = navigation.resolve_address(address)
    except AddressNotFound as exc:
        raise SystemExit(f"lazydocs: {exc}") from exc

    with ContentResolver(manifest, FileSystemContentSource(root), config=load_resolver_config()) as resolver:
        try:
            content = resolver.resolve(node_id).result()
        except LoadError as exc:
            raise SystemExit(f"lazydocs: {exc}") from exc
    sys.stdout.write(content.text)


def _save_defaults(extensions: list[str] | None, show_hidden: bool | None, skip_gitignored: bool | None) -> None:
    config = load_config()
    if extensions is not None:
        config["extensions"] = list(extensions)
    if show_hidden is not None:
        config["show_hidden"] = show_hidden
    if skip_gitignored is not None:
        config["skip_gitignored"] = skip_gitignored
    save_config(config)


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and run one build, check, or resolve.

    Fatal errors exit non-zero with a message and write nothing. Build
    warnings are logged to stderr and do not change the exit status.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose, args.quiet)

    if args.check is not None:
        _check_manifest(Path(args.check))
        return

    if args.root is None:
        parser.error("ROOT is required")
    root = Path(args.root)

    if args.resolve is not None:
        if args.manifest is None:
            parser.error("--resolve requires --manifest")
        _resolve_address(args.resolve, Path(args.manifest), root)
        return

    defaults = load_build_defaults()
    extensions: tuple[str, ...] | None
    if args.all_files:
        extensions = None
    elif args.ext:
        extensions = tuple(args.ext)
    else:
        extensions = defaults.extensions
    show_hidden = defaults.show_hidden if args.show_hidden is None else args.show_hidden
    skip_gitignored = defaults.skip_gitignored if args.skip_gitignored is None else args.skip_gitignored

    if args.save_defaults:
        _save_defaults(args.ext, args.show_hidden, args.skip_gitignored)

    options = BuildOptions(
        include_mtime=args.include_mtime,
        directories_first=args.directories_first,
        root_name=args.root_name,
    )
    try:
        check_root(root)
        entry_filter = build_entry_filter(
            root,
            extensions=extensions,
            show_hidden=show_hidden,
            skip_gitignored=skip_gitignored,
        )
        result = build_manifest(root, entry_filter=entry_filter, options=options)
    except (BuildError, ManifestError) as exc:
        raise SystemExit(f"lazydocs: {exc}") from exc

    if args.output is None:
        sys.stdout.write(dumps_manifest(result.manifest))
    else:
        write_manifest(result.manifest, Path(args.output))
    if result.warnings:
        logger.warning("%d entries skipped", len(result.warnings))


if __name__ == "__main__":
    main()
