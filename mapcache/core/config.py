"""Map cache runtime settings resolved from the config file and environment."""

import os
from dataclasses import dataclass
from datetime import timedelta, timezone
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_API_BASE_URL = "https://api.rustmaps.com/v4"
DEFAULT_POLL_INTERVAL_SECONDS = 10.0
DEFAULT_GENERATION_TIMEOUT_SECONDS = 300.0
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0
DEFAULT_PURGE_INTERVAL_SECONDS = 6 * 60 * 60
MIN_PURGE_INTERVAL_SECONDS = 15 * 60
DEFAULT_RESET_UTC_OFFSET_HOURS = 2
DEFAULT_RESET_HOUR = 20
DEFAULT_RESET_MINUTE = 0


@dataclass
class MapCacheSettings:
    """Resolved tunables for one map runtime."""
    metadata_dir: Path
    image_dir: Path
    log_dir: Path
    api_key: str
    api_base_url: str
    poll_interval_seconds: float
    generation_timeout_seconds: float
    request_timeout_seconds: float
    purge_interval_seconds: int
    reset_tz: object
    reset_hour: int
    reset_minute: int
    display_tz: object


def resolve_api_key(cfg_get_str, *env_names):
    """Resolve the RustMaps API key from env first, then config; blank when unset."""
    for name in env_names:
        value = (os.environ.get(name) or "").strip()
        if value:
            return value
    return (cfg_get_str("RUSTMAPS_API_KEY", "") or "").strip()


def resolve_display_tz(name):
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def load_settings(cfg):
    """Build ``MapCacheSettings`` from a ``WebConfig``."""
    data_dir = cfg.base_dir / "data" / "maps"
    offset_hours = cfg.get_float("MAP_RESET_UTC_OFFSET_HOURS", DEFAULT_RESET_UTC_OFFSET_HOURS)
    poll_interval = cfg.get_float("RUSTMAPS_POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS, minimum=1.0)
    return MapCacheSettings(
        metadata_dir=cfg.get_path("MAP_METADATA_DIR", data_dir / "metadata"),
        image_dir=cfg.get_path("MAP_IMAGE_DIR", data_dir / "global"),
        log_dir=cfg.get_path("MAP_LOG_DIR", cfg.base_dir / "logs"),
        api_key=resolve_api_key(cfg.get_str, "RUSTMAPS_API_KEY"),
        api_base_url=cfg.get_str("RUSTMAPS_API_BASE_URL", DEFAULT_API_BASE_URL).rstrip("/"),
        poll_interval_seconds=poll_interval,
        generation_timeout_seconds=max(
            poll_interval,
            cfg.get_float("RUSTMAPS_GENERATION_TIMEOUT_SECONDS", DEFAULT_GENERATION_TIMEOUT_SECONDS, minimum=1.0),
        ),
        request_timeout_seconds=cfg.get_float(
            "RUSTMAPS_REQUEST_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT_SECONDS, minimum=1.0
        ),
        purge_interval_seconds=cfg.get_int(
            "MAP_PURGE_INTERVAL_SECONDS", DEFAULT_PURGE_INTERVAL_SECONDS, minimum=MIN_PURGE_INTERVAL_SECONDS
        ),
        reset_tz=timezone(timedelta(hours=offset_hours)),
        reset_hour=min(23, cfg.get_int("MAP_RESET_HOUR", DEFAULT_RESET_HOUR, minimum=0)),
        reset_minute=min(59, cfg.get_int("MAP_RESET_MINUTE", DEFAULT_RESET_MINUTE, minimum=0)),
        display_tz=resolve_display_tz(cfg.get_str("DISPLAY_TZ", "UTC")),
    )
