import os
import tempfile
import unittest
from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

from mapcache.core.config import (
    DEFAULT_PURGE_INTERVAL_SECONDS,
    MIN_PURGE_INTERVAL_SECONDS,
    load_settings,
    resolve_api_key,
)
from mapcache.core.web_config import WebConfig


class WebConfigTests(unittest.TestCase):
    def test_reads_basic_values(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            conf = root / "mapcache.env"
            conf.write_text(
                "\n".join(
                    [
                        "# map cache settings",
                        "RUSTMAPS_API_KEY='abc123'",
                        "RUSTMAPS_POLL_INTERVAL_SECONDS=2.5",
                        "MAP_PURGE_INTERVAL_SECONDS=3600",
                        "MAP_METADATA_DIR=./cache/meta",
                        "MAP_IMAGE_DIR=/srv/maps",
                    ]
                ),
                encoding="utf-8",
            )
            cfg = WebConfig(conf, root)
            self.assertEqual(cfg.get_str("RUSTMAPS_API_KEY", "x"), "abc123")
            self.assertEqual(cfg.get_float("RUSTMAPS_POLL_INTERVAL_SECONDS", 0.0), 2.5)
            self.assertEqual(cfg.get_int("MAP_PURGE_INTERVAL_SECONDS", 0), 3600)
            self.assertEqual(cfg.get_path("MAP_METADATA_DIR", root / "none"), root / "cache" / "meta")
            self.assertEqual(cfg.get_path("MAP_IMAGE_DIR", root / "none"), Path("/srv/maps"))

    def test_missing_file_uses_defaults_and_overrides(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            cfg = WebConfig(root / "absent.env", root, overrides={"MAP_RESET_HOUR": 18})
            self.assertEqual(cfg.get_int("MAP_RESET_HOUR", 20), 18)
            self.assertEqual(cfg.get_int("MAP_RESET_MINUTE", 0), 0)

    def test_reload_reports_changed_keys(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            conf = root / "mapcache.env"
            conf.write_text("MAP_IMAGE_DIR=a\nMAP_RESET_HOUR=20\n", encoding="utf-8")
            cfg = WebConfig(conf, root)
            conf.write_text("MAP_IMAGE_DIR=b\nMAP_RESET_HOUR=20\n", encoding="utf-8")
            self.assertEqual(cfg.reload(), ["MAP_IMAGE_DIR"])
            self.assertEqual(cfg.get_path("MAP_IMAGE_DIR", root), root / "b")


class SettingsTests(unittest.TestCase):
    def test_load_settings_applies_floors(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            conf = root / "mapcache.env"
            conf.write_text(
                "RUSTMAPS_POLL_INTERVAL_SECONDS=0.1\n"
                "RUSTMAPS_GENERATION_TIMEOUT_SECONDS=0\n"
                "MAP_PURGE_INTERVAL_SECONDS=5\n",
                encoding="utf-8",
            )
            with patch.dict(os.environ, {"RUSTMAPS_API_KEY": ""}):
                settings = load_settings(WebConfig(conf, root))
            self.assertEqual(settings.poll_interval_seconds, 1.0)
            self.assertEqual(settings.generation_timeout_seconds, 1.0)
            self.assertEqual(settings.purge_interval_seconds, MIN_PURGE_INTERVAL_SECONDS)
            self.assertEqual(settings.metadata_dir, root / "data" / "maps" / "metadata")
            self.assertEqual(settings.image_dir, root / "data" / "maps" / "global")
            self.assertEqual(settings.reset_tz.utcoffset(None), timedelta(hours=2))
            self.assertEqual((settings.reset_hour, settings.reset_minute), (20, 0))

    def test_default_purge_interval(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            settings = load_settings(WebConfig(root / "none.env", root))
            self.assertEqual(settings.purge_interval_seconds, DEFAULT_PURGE_INTERVAL_SECONDS)

    def test_api_key_prefers_environment(self):
        cfg_values = {"RUSTMAPS_API_KEY": "from-config"}

        def cfg_get_str(name, default):
            return cfg_values.get(name, default)

        with patch.dict(os.environ, {"RUSTMAPS_API_KEY": " from-env "}):
            self.assertEqual(resolve_api_key(cfg_get_str, "RUSTMAPS_API_KEY"), "from-env")
        with patch.dict(os.environ, {"RUSTMAPS_API_KEY": ""}):
            self.assertEqual(resolve_api_key(cfg_get_str, "RUSTMAPS_API_KEY"), "from-config")
        cfg_values.clear()
        with patch.dict(os.environ, {"RUSTMAPS_API_KEY": ""}):
            self.assertEqual(resolve_api_key(cfg_get_str, "RUSTMAPS_API_KEY"), "")


if __name__ == "__main__":
    unittest.main()
