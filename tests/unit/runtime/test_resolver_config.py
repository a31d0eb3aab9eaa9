from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from lazydocs import config


class ConfigBehaviorTests(unittest.TestCase):
    def test_missing_config_yields_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch("lazydocs.config.CONFIG_PATH", Path(tmp) / "missing.json"):
                self.assertEqual(config.load_config(), {})
                self.assertEqual(config.load_build_defaults(), config.BuildDefaults())
                self.assertEqual(config.load_resolver_config(), config.ResolverConfig())

    def test_malformed_config_is_logged_and_ignored(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "config.json"
            config_path.write_text("{broken", encoding="utf-8")
            with mock.patch("lazydocs.config.CONFIG_PATH", config_path):
                with self.assertLogs("lazydocs.config", level="WARNING"):
                    self.assertEqual(config.load_config(), {})

    def test_save_then_load_build_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "nested" / "config.json"
            with mock.patch("lazydocs.config.CONFIG_PATH", config_path):
                config.save_config({"extensions": [".md"], "show_hidden": True, "skip_gitignored": "yes"})

                defaults = config.load_build_defaults()

            self.assertEqual(defaults.extensions, (".md",))
            self.assertTrue(defaults.show_hidden)
            self.assertFalse(defaults.skip_gitignored)

    def test_resolver_config_keys_fall_back_individually(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "config.json"
            config_path.write_text(
                json.dumps(
                    {
                        "load_timeout_seconds": 0,
                        "retry_attempts": 5,
                        "backoff_initial_seconds": True,
                        "backoff_max_seconds": 1,
                        "cache_max_entries": None,
                        "max_workers": 0,
                    }
                ),
                encoding="utf-8",
            )
            with mock.patch("lazydocs.config.CONFIG_PATH", config_path):
                loaded = config.load_resolver_config()

        defaults = config.ResolverConfig()
        self.assertEqual(loaded.load_timeout_seconds, defaults.load_timeout_seconds)
        self.assertEqual(loaded.retry_attempts, 5)
        self.assertEqual(loaded.backoff_initial_seconds, defaults.backoff_initial_seconds)
        self.assertEqual(loaded.backoff_max_seconds, 1.0)
        self.assertIsNone(loaded.cache_max_entries)
        self.assertEqual(loaded.max_workers, defaults.max_workers)


if __name__ == "__main__":
    unittest.main()
