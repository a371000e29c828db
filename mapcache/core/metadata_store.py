"""JSON metadata records for cached maps, one file per cache key."""

import json
from datetime import datetime, timezone

from mapcache.core.action_logging import null_log_action
from mapcache.core.filesystem_utils import atomic_write_json, sanitize_cache_key
from mapcache.core.map_models import CachedMapMetadata


def utc_now():
    return datetime.now(timezone.utc)


class MetadataStore:
    """Load/save/remove/sweep metadata records under ``paths.metadata_root``.

    Read and write failures never reach callers: unreadable or corrupt files
    behave like a cache miss and failed writes leave the caller's in-memory
    record as the only copy. Both are logged at warning level.
    """

    def __init__(self, paths, log_action=None, clock=None):
        self.paths = paths
        self.log_action = log_action or null_log_action
        self.clock = clock or utc_now

    def load(self, key):
        """Return the cached metadata for ``key`` or ``None``."""
        path = self.paths.metadata_path(key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            self.log_action("metadata-read", command=str(path), rejection_message=str(exc), level="warning")
            return None
        try:
            record = json.loads(text)
        except ValueError as exc:
            self.log_action("metadata-parse", command=str(path), rejection_message=str(exc), level="warning")
            return None
        if not isinstance(record, dict):
            self.log_action("metadata-parse", command=str(path), rejection_message="record is not an object", level="warning")
            return None
        return CachedMapMetadata.from_record(record)

    def save(self, key, metadata):
        """Persist ``metadata``; returns the stamped record whether or not the write succeeded."""
        stamped = metadata.with_cache_stamp(
            metadata.map_key or key,
            metadata.cached_at or self.clock(),
        )
        path = self.paths.metadata_path(key)
        try:
            atomic_write_json(path, stamped.to_record())
        except OSError as exc:
            self.log_action("metadata-write", command=str(path), rejection_message=str(exc), level="warning")
        return stamped

    def remove(self, key):
        """Delete the record for ``key``; a missing file is not an error."""
        path = self.paths.metadata_path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            self.log_action("metadata-remove", command=str(path), rejection_message=str(exc), level="warning")
            return False
        return True

    def sweep(self, active_keys):
        """Delete every record whose key is not in ``active_keys``; returns removed paths."""
        root = self.paths.metadata_root
        keep = {sanitize_cache_key(key) for key in active_keys or ()}
        try:
            entries = sorted(root.iterdir())
        except FileNotFoundError:
            return []
        except OSError as exc:
            self.log_action("metadata-sweep", command=str(root), rejection_message=str(exc), level="warning")
            return []
        removed = []
        for entry in entries:
            if entry.suffix != ".json" or entry.stem in keep:
                continue
            try:
                if not entry.is_file():
                    continue
                entry.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                self.log_action("metadata-sweep", command=str(entry), rejection_message=str(exc), level="warning")
                continue
            removed.append(entry)
        if removed:
            self.log_action("metadata-sweep", command=f"removed={len(removed)} kept={len(keep)}")
        return removed
