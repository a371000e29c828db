"""On-disk locations for cached map metadata and images."""

import threading
from pathlib import Path

from mapcache.core.filesystem_utils import sanitize_cache_key

DEFAULT_METADATA_ROOT = Path("data") / "maps" / "metadata"
DEFAULT_IMAGE_ROOT = Path("data") / "maps" / "global"


class MapCachePaths:
    """Resolve cache keys to files under two reconfigurable roots."""

    def __init__(self, metadata_root=None, image_root=None):
        self._lock = threading.Lock()
        self._metadata_root = Path(metadata_root) if metadata_root else DEFAULT_METADATA_ROOT
        self._image_root = Path(image_root) if image_root else DEFAULT_IMAGE_ROOT

    def configure(self, metadata_root=None, image_root=None):
        """Swap roots; calls made afterwards see the new locations."""
        with self._lock:
            if metadata_root:
                self._metadata_root = Path(metadata_root)
            if image_root:
                self._image_root = Path(image_root)

    @property
    def metadata_root(self):
        with self._lock:
            return self._metadata_root

    @property
    def image_root(self):
        with self._lock:
            return self._image_root

    def ensure_dirs(self):
        """Create both roots if missing (idempotent)."""
        with self._lock:
            roots = (self._metadata_root, self._image_root)
        for root in roots:
            root.mkdir(parents=True, exist_ok=True)

    def metadata_path(self, key):
        return self.metadata_root / f"{sanitize_cache_key(key)}.json"

    def image_path(self, key, extension="png"):
        ext = str(extension or "png").lower().lstrip(".")
        return self.image_root / f"{sanitize_cache_key(key)}.{ext}"
