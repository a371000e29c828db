"""Background timer that purges the map cache after each monthly wipe."""
import threading


def collect_active_sets(entries):
    """Split ``(map_key, image_path)`` pairs into the key and path sets a sweep keeps."""
    active_keys = set()
    active_files = set()
    for map_key, image_path in entries or ():
        if map_key:
            active_keys.add(map_key)
        if image_path:
            active_files.add(image_path)
    return active_keys, active_files


def run_purge_tick(ctx, active_sets_provider, now=None):
    """Purge once if the current reset point has passed; returns True when a sweep ran."""
    now = now or ctx.scheduler.clock()
    reset_point = ctx.scheduler.next_reset_point(now)
    if now < reset_point:
        return False
    active_keys, active_files = active_sets_provider()
    return ctx.scheduler.purge_if_due(reset_point, now, active_keys, active_files)


def _purge_scheduler_loop(ctx, active_sets_provider):
    state = ctx.purge_scheduler_state
    while not state.stop_event.is_set():
        try:
            run_purge_tick(ctx, active_sets_provider)
        except Exception as exc:
            ctx.log_exception("purge_scheduler_tick", exc)
        state.stop_event.wait(ctx.settings.purge_interval_seconds)


def start_purge_scheduler_once(ctx, active_sets_provider):
    """Start the purge thread for this runtime unless it is already running."""
    state = ctx.purge_scheduler_state
    with state.start_lock:
        if state.started:
            return False
        state.stop_event.clear()
        state.thread = threading.Thread(
            target=_purge_scheduler_loop,
            args=(ctx, active_sets_provider),
            daemon=True,
            name="map-cache-purge",
        )
        state.thread.start()
        state.started = True
    ctx.log_action("purge-scheduler", command=f"interval={ctx.settings.purge_interval_seconds}s")
    return True


def stop_purge_scheduler(ctx, timeout=5.0):
    state = ctx.purge_scheduler_state
    with state.start_lock:
        if not state.started:
            return
        state.stop_event.set()
        thread = state.thread
        state.started = False
        state.thread = None
    if thread is not None:
        thread.join(timeout)
