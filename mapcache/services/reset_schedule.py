"""Monthly map wipe schedule and cache purge gating."""
from datetime import datetime, timedelta, timezone

from mapcache.core.action_logging import null_log_action
from mapcache.core.metadata_store import utc_now
from mapcache.state import PurgeState

THURSDAY = 3
RESET_TZ = timezone(timedelta(hours=2))
RESET_HOUR = 20
RESET_MINUTE = 0


def first_thursday_reset(now, reset_tz=RESET_TZ, hour=RESET_HOUR, minute=RESET_MINUTE):
    """Return the first Thursday of ``now``'s month at ``hour:minute`` in ``reset_tz``, as UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(reset_tz)
    first_weekday = local.replace(day=1).weekday()
    day = 1 + (THURSDAY - first_weekday) % 7
    reset_local = datetime(local.year, local.month, day, hour, minute, tzinfo=reset_tz)
    return reset_local.astimezone(timezone.utc)


def is_stale(metadata, now, reset_point):
    """True when a reset point has passed since ``metadata`` was cached."""
    if metadata is None or metadata.cached_at is None:
        return False
    return now >= reset_point and metadata.cached_at < reset_point


class ResetScheduler:
    """Owns the wipe schedule and the last-purge marker for one process."""

    def __init__(
        self,
        metadata_store,
        image_store,
        reset_tz=RESET_TZ,
        reset_hour=RESET_HOUR,
        reset_minute=RESET_MINUTE,
        clock=None,
        log_action=None,
    ):
        self.metadata_store = metadata_store
        self.image_store = image_store
        self.reset_tz = reset_tz
        self.reset_hour = reset_hour
        self.reset_minute = reset_minute
        self.clock = clock or utc_now
        self.log_action = log_action or null_log_action
        self.purge_state = PurgeState()

    def next_reset_point(self, now=None):
        return first_thursday_reset(
            now or self.clock(),
            reset_tz=self.reset_tz,
            hour=self.reset_hour,
            minute=self.reset_minute,
        )

    def is_stale(self, metadata, now=None, reset_point=None):
        now = now or self.clock()
        if reset_point is None:
            reset_point = self.next_reset_point(now)
        return is_stale(metadata, now, reset_point)

    @property
    def last_purge_at(self):
        with self.purge_state.lock:
            return self.purge_state.last_purge_at

    def purge_if_due(self, reset_point, now, active_keys, active_files):
        """Sweep inactive cache entries once per reset point; returns True when a sweep ran."""
        if now < reset_point:
            return False
        state = self.purge_state
        with state.lock:
            if state.last_purge_at is not None and state.last_purge_at >= reset_point:
                return False
            removed_meta = self.metadata_store.sweep(set(active_keys or ()))
            removed_images = self.image_store.sweep(set(active_files or ()))
            state.last_purge_at = reset_point
            state.purge_count += 1
            purge_number = state.purge_count
        self.log_action(
            "cache-purge",
            command=(
                f"reset={reset_point.isoformat()} metadata_removed={len(removed_meta)} "
                f"images_removed={len(removed_images)} purge=#{purge_number}"
            ),
        )
        return True
