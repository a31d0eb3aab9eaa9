"""Persistent JSON config helpers.

Stores builder defaults (extension allow-list, hidden/gitignore handling)
and content-resolver tuning (timeouts, retries, cache bound).
Malformed or missing config falls back to defaults.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_config_dir

logger = logging.getLogger(__name__)

APP_NAME = "lazydocs"
CONFIG_FILENAME = "config.json"
DEFAULT_CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
CONFIG_PATH = DEFAULT_CONFIG_PATH

DEFAULT_EXTENSIONS: tuple[str, ...] = (".md", ".markdown", ".rst", ".txt")


@dataclass(frozen=True)
class BuildDefaults:
    """Builder options a CLI invocation starts from."""

    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    show_hidden: bool = False
    skip_gitignored: bool = False


@dataclass(frozen=True)
class ResolverConfig:
    """Content-resolver tuning.

    ``load_timeout_seconds`` bounds one shared load including its retries.
    ``retry_attempts`` counts the first attempt.
    """

    load_timeout_seconds: float = 10.0
    retry_attempts: int = 3
    backoff_initial_seconds: float = 0.1
    backoff_max_seconds: float = 2.0
    cache_max_entries: int | None = 512
    max_workers: int = 4


def load_config() -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        logger.warning("ignoring unreadable config %s: %s", CONFIG_PATH, exc)
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict[str, object]) -> None:
    """Persist config data as pretty-printed JSON.

    Filesystem errors are logged and otherwise ignored.
    """
    try:
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_PATH.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        logger.warning("could not write config %s: %s", CONFIG_PATH, exc)


def _bool(data: dict[str, object], key: str, default: bool) -> bool:
    value = data.get(key)
    return value if isinstance(value, bool) else default


def _number(data: dict[str, object], key: str, default: float, *, minimum: float, strict: bool = False) -> float:
    """Non-bool number ``>= minimum`` (``> minimum`` when ``strict``)."""
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if value < minimum or (strict and value == minimum):
        return default
    return float(value)


def _int(data: dict[str, object], key: str, default: int, *, minimum: int) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        return default
    return value


def load_build_defaults() -> BuildDefaults:
    """Builder defaults from config; invalid keys fall back individually."""
    data = load_config()
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    raw_extensions = data.get("extensions")
    if isinstance(raw_extensions, list) and all(isinstance(item, str) for item in raw_extensions):
        extensions = tuple(raw_extensions)
    return BuildDefaults(
        extensions=extensions,
        show_hidden=_bool(data, "show_hidden", False),
        skip_gitignored=_bool(data, "skip_gitignored", False),
    )


def load_resolver_config() -> ResolverConfig:
    """Resolver tuning from config; ``cache_max_entries: null`` means unbounded."""
    data = load_config()
    defaults = ResolverConfig()
    cache_max_entries = defaults.cache_max_entries
    if "cache_max_entries" in data:
        raw_bound = data["cache_max_entries"]
        if raw_bound is None:
            cache_max_entries = None
        else:
            cache_max_entries = _int(data, "cache_max_entries", defaults.cache_max_entries or 1, minimum=1)
    return ResolverConfig(
        load_timeout_seconds=_number(data, "load_timeout_seconds", defaults.load_timeout_seconds, minimum=0.0, strict=True),
        retry_attempts=_int(data, "retry_attempts", defaults.retry_attempts, minimum=1),
        backoff_initial_seconds=_number(data, "backoff_initial_seconds", defaults.backoff_initial_seconds, minimum=0.0),
        backoff_max_seconds=_number(data, "backoff_max_seconds", defaults.backoff_max_seconds, minimum=0.0),
        cache_max_entries=cache_max_entries,
        max_workers=_int(data, "max_workers", defaults.max_workers, minimum=1),
    )


__all__ = [
    "APP_NAME",
    "CONFIG_PATH",
    "DEFAULT_EXTENSIONS",
    "BuildDefaults",
    "ResolverConfig",
    "load_config",
    "save_config",
    "load_build_defaults",
    "load_resolver_config",
]
