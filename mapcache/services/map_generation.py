"""Lookup/request/poll loop that waits for RustMaps to produce a world map.

Each pass looks the world up by size and seed (the authoritative check),
asks for generation once when the provider has never heard of it, then
polls the remembered job id as a shortcut before sleeping. By-id polling is
best effort: only an unauthorized response stops the loop from there.
"""
import time

from mapcache.core.action_logging import null_log_action
from mapcache.core.config import DEFAULT_GENERATION_TIMEOUT_SECONDS, DEFAULT_POLL_INTERVAL_SECONDS
from mapcache.core.errors import (
    Cancelled,
    GenerationPending,
    GenerationTimeout,
    MissingCredential,
    NotFound,
    RustMapsError,
    Unauthorized,
)
from mapcache.core.map_models import (
    EXISTS,
    GENERATING,
    NOT_FOUND,
    READY,
    WorldIdentifier,
    validate_world,
)

MIN_POLL_INTERVAL_SECONDS = 1.0


def _pause(seconds, cancel, sleep):
    """Wait ``seconds`` unless cancelled first."""
    if cancel is not None:
        cancel.raise_if_cancelled()
    if sleep is not None:
        sleep(seconds)
    elif cancel is not None:
        cancel.wait(seconds)
    else:
        time.sleep(seconds)
    if cancel is not None:
        cancel.raise_if_cancelled()


def _poll_job(client, job_id, cancel, log_action):
    """Return ``(job_id, metadata)`` after one by-id lookup."""
    try:
        outcome = client.lookup_by_id(job_id, cancel=cancel)
    except (Unauthorized, MissingCredential, Cancelled):
        raise
    except RustMapsError as exc:
        log_action("generation-poll", command=f"job={job_id}", rejection_message=str(exc), level="warning")
        return job_id, None
    if outcome.kind == READY and outcome.metadata.has_image_candidate():
        return job_id, outcome.metadata
    if outcome.kind == NOT_FOUND:
        return None, None
    if outcome.kind == GENERATING:
        return outcome.job_id or job_id, None
    return job_id, None


def resolve_map(
    client,
    world,
    *,
    cancel=None,
    wait=True,
    timeout_seconds=DEFAULT_GENERATION_TIMEOUT_SECONDS,
    poll_interval_seconds=DEFAULT_POLL_INTERVAL_SECONDS,
    clock=time.monotonic,
    sleep=None,
    log_action=None,
):
    """Return ready ``CachedMapMetadata`` for ``world`` or raise a ``RustMapsError``.

    ``clock`` is a monotonic seconds source and ``sleep`` an optional pause
    primitive; both exist so tests can drive time. With ``wait=False`` the
    first lookup decides: ready data is returned as-is, otherwise
    ``NotFound`` or ``GenerationPending`` is raised without polling.
    """
    log_action = log_action or null_log_action
    if isinstance(world, WorldIdentifier):
        world = validate_world(world.size, world.seed, world.staging)
    else:
        world = validate_world(*world)
    client.require_credential()

    poll_interval = max(MIN_POLL_INTERVAL_SECONDS, float(poll_interval_seconds or DEFAULT_POLL_INTERVAL_SECONDS))
    timeout = max(poll_interval, float(timeout_seconds or DEFAULT_GENERATION_TIMEOUT_SECONDS))
    deadline = clock() + timeout
    job_id = None
    requested = False
    label = f"size={world.size} seed={world.seed}"

    while True:
        outcome = client.lookup_by_size_seed(world.size, world.seed, staging=world.staging, cancel=cancel)
        if outcome.kind == READY and outcome.metadata.has_image_candidate():
            return outcome.metadata

        if not wait:
            if outcome.kind == READY:
                return outcome.metadata
            if outcome.kind == GENERATING:
                raise GenerationPending(job_id=outcome.job_id)
            raise NotFound()

        if outcome.kind == GENERATING and outcome.job_id:
            job_id = outcome.job_id
        elif outcome.kind == NOT_FOUND and not requested:
            requested = True
            generation = client.request_generation(world.size, world.seed, staging=world.staging, cancel=cancel)
            log_action("generation-request", command=f"{label} result={generation.kind} job={generation.job_id or '-'}")
            if generation.kind == EXISTS and generation.metadata and generation.metadata.has_image_candidate():
                return generation.metadata
            if generation.job_id:
                job_id = generation.job_id

        if clock() >= deadline:
            raise GenerationTimeout(f"{label} not ready after {timeout:.0f}s")

        if job_id:
            job_id, metadata = _poll_job(client, job_id, cancel, log_action)
            if metadata is not None:
                return metadata

        remaining = deadline - clock()
        if remaining <= 0:
            raise GenerationTimeout(f"{label} not ready after {timeout:.0f}s")
        _pause(min(poll_interval, remaining), cancel, sleep)
