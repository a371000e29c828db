"""Build the shared map cache runtime context from the settings file."""
from pathlib import Path
from types import SimpleNamespace

from mapcache.core.cache_paths import MapCachePaths
from mapcache.core.config import load_settings
from mapcache.core.image_store import ImageStore
from mapcache.core.logging_setup import build_loggers
from mapcache.core.metadata_store import MetadataStore, utc_now
from mapcache.core.web_config import WebConfig
from mapcache.services.purge_scheduler import stop_purge_scheduler
from mapcache.services.reset_schedule import ResetScheduler
from mapcache.services.rustmaps_client import RustMapsClient
from mapcache.state import PurgeSchedulerState

MAP_LOG_FILENAME = "mapcache.log"


def build_map_runtime(config_path, base_dir=None, *, overrides=None, session=None, clock=None):
    """Return a ``SimpleNamespace`` ctx wiring paths, stores, scheduler and client."""
    base_dir = Path(base_dir) if base_dir else Path(config_path).resolve().parent
    cfg = WebConfig(config_path, base_dir, overrides=overrides)
    settings = load_settings(cfg)
    log_action, log_exception = build_loggers(
        settings.display_tz,
        settings.log_dir,
        settings.log_dir / MAP_LOG_FILENAME,
    )
    clock = clock or utc_now

    paths = MapCachePaths(settings.metadata_dir, settings.image_dir)
    paths.ensure_dirs()
    metadata_store = MetadataStore(paths, log_action=log_action, clock=clock)
    image_store = ImageStore(paths, log_action=log_action)
    scheduler = ResetScheduler(
        metadata_store,
        image_store,
        reset_tz=settings.reset_tz,
        reset_hour=settings.reset_hour,
        reset_minute=settings.reset_minute,
        clock=clock,
        log_action=log_action,
    )
    client = RustMapsClient(
        api_key=settings.api_key,
        base_url=settings.api_base_url,
        session=session,
        request_timeout=settings.request_timeout_seconds,
        log_action=log_action,
    )
    log_action("runtime-ready", command=f"metadata={settings.metadata_dir} images={settings.image_dir}")
    return SimpleNamespace(
        config=cfg,
        settings=settings,
        paths=paths,
        metadata_store=metadata_store,
        image_store=image_store,
        scheduler=scheduler,
        client=client,
        log_action=log_action,
        log_exception=log_exception,
        purge_scheduler_state=PurgeSchedulerState(),
    )


def reload_config(ctx):
    """Re-read settings and point paths/client at the new values; returns changed keys."""
    changed = ctx.config.reload()
    settings = load_settings(ctx.config)
    ctx.settings = settings
    ctx.paths.configure(settings.metadata_dir, settings.image_dir)
    ctx.paths.ensure_dirs()
    ctx.client.set_api_key(settings.api_key)
    ctx.client.base_url = settings.api_base_url
    ctx.client.request_timeout = settings.request_timeout_seconds
    ctx.scheduler.reset_tz = settings.reset_tz
    ctx.scheduler.reset_hour = settings.reset_hour
    ctx.scheduler.reset_minute = settings.reset_minute
    if changed:
        ctx.log_action("config-reload", command=", ".join(changed))
    return changed


def shutdown_map_runtime(ctx, timeout=5.0):
    """Stop the purge thread and release the HTTP session."""
    stop_purge_scheduler(ctx, timeout=timeout)
    ctx.client.close()
    ctx.log_action("runtime-stopped")
