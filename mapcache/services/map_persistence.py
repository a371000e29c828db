"""Cache-first map lookup: reuse fresh cached data, otherwise resolve, download and store."""
from mapcache.core.errors import ImageFetchError
from mapcache.core.filesystem_utils import sanitize_cache_key
from mapcache.core.image_store import IMAGE_EXTENSIONS
from mapcache.core.map_models import MapCacheResult, derive_map_key, validate_world
from mapcache.services.map_generation import resolve_map
from mapcache.services.rustmaps_client import RustMapsClient


def world_cache_key(world, save_version=None):
    """Sanitized cache key for a validated world."""
    return sanitize_cache_key(derive_map_key(world.size, world.seed, save_version))


def clear_cached_map(ctx, map_key):
    """Remove the metadata record and every image file stored for ``map_key``."""
    removed = ctx.metadata_store.remove(map_key)
    for extension in IMAGE_EXTENSIONS:
        if ctx.image_store.remove(ctx.paths.image_path(map_key, extension)):
            removed = True
    return removed


def load_cached_map(ctx, map_key, now=None):
    """Return fresh cached metadata for ``map_key``; stale entries are dropped.

    Custom maps survive resets; the provider does not regenerate them.
    """
    cached = ctx.metadata_store.load(map_key)
    if cached is None:
        return None
    now = now or ctx.scheduler.clock()
    if not cached.is_custom_map and ctx.scheduler.is_stale(cached, now):
        ctx.log_action("cache-expired", command=f"key={map_key} cachedAt={cached.cached_at.isoformat()}")
        clear_cached_map(ctx, map_key)
        return None
    return cached


def _client_for(ctx, api_key):
    if not api_key or api_key == ctx.client.api_key:
        return ctx.client
    return RustMapsClient(
        api_key=api_key,
        base_url=ctx.client.base_url,
        session=ctx.client.session,
        request_timeout=ctx.client.request_timeout,
        log_action=ctx.log_action,
    )


def _store_image(ctx, client, map_key, metadata, cancel):
    existing = ctx.image_store.find(map_key)
    if existing is not None:
        return existing["path"]
    if metadata.is_custom_map or not metadata.has_image_candidate():
        return None
    try:
        download = client.download_image(metadata, cancel=cancel)
    except ImageFetchError as exc:
        ctx.log_action("image-download", command=f"key={map_key}", rejection_message=str(exc), level="warning")
        return None
    return ctx.image_store.save(map_key, download)


def fetch_and_cache_map(
    ctx,
    size,
    seed,
    *,
    staging=False,
    save_version=None,
    api_key=None,
    cancel=None,
    wait=True,
    now=None,
    sleep=None,
):
    """Return a ``MapCacheResult`` for the world, hitting RustMaps only on a cache miss.

    Resolution errors propagate unchanged; image download failures do not,
    the metadata is still cached and ``image_path`` is left empty.
    """
    world = validate_world(size, seed, staging)
    map_key = world_cache_key(world, save_version)
    cached = load_cached_map(ctx, map_key, now)
    if cached is not None:
        image = ctx.image_store.find(map_key)
        return MapCacheResult(cached, image["path"] if image else None, cached=True)

    client = _client_for(ctx, api_key)
    ctx.log_action("map-resolve", command=f"key={map_key} wait={wait}")
    metadata = resolve_map(
        client,
        world,
        cancel=cancel,
        wait=wait,
        timeout_seconds=ctx.settings.generation_timeout_seconds,
        poll_interval_seconds=ctx.settings.poll_interval_seconds,
        sleep=sleep,
        log_action=ctx.log_action,
    )
    if metadata.size is None:
        metadata.size = world.size
    if metadata.seed is None:
        metadata.seed = world.seed
    stamped = metadata.with_cache_stamp(map_key, now or ctx.scheduler.clock())
    image_path = _store_image(ctx, client, map_key, stamped, cancel)
    saved = ctx.metadata_store.save(map_key, stamped)
    return MapCacheResult(saved, image_path, cached=False)
