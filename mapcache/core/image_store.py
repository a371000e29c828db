"""Cached map image files, probed by extension per cache key."""

from pathlib import Path

from mapcache.core.action_logging import null_log_action
from mapcache.core.filesystem_utils import (
    atomic_write_bytes,
    format_file_size,
    is_within_dir,
    resolved_path_key,
)

IMAGE_EXTENSIONS = ("png", "jpg", "jpeg", "webp")


class ImageStore:
    """Find/save/remove/sweep image files under ``paths.image_root``."""

    def __init__(self, paths, log_action=None):
        self.paths = paths
        self.log_action = log_action or null_log_action

    def find(self, key):
        """Return ``{"path", "extension"}`` for the first existing extension, else ``None``."""
        for extension in IMAGE_EXTENSIONS:
            path = self.paths.image_path(key, extension)
            try:
                if path.is_file():
                    return {"path": path, "extension": extension}
            except OSError:
                continue
        return None

    def save(self, key, download):
        """Write a ``DownloadedImage``; returns the path or ``None`` when the write fails."""
        path = self.paths.image_path(key, download.extension)
        try:
            atomic_write_bytes(path, download.content)
        except OSError as exc:
            self.log_action("image-write", command=str(path), rejection_message=str(exc), level="warning")
            return None
        self.log_action("image-write", command=f"{path} ({format_file_size(len(download.content))})")
        return path

    def remove(self, path):
        """Delete one image file inside the image root; other paths are ignored."""
        if not path or not is_within_dir(path, self.paths.image_root):
            return False
        try:
            Path(path).unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            self.log_action("image-remove", command=str(path), rejection_message=str(exc), level="warning")
            return False
        return True

    def sweep(self, active_file_paths):
        """Delete image files not listed in ``active_file_paths``; returns removed paths."""
        root = self.paths.image_root
        keep = {resolved_path_key(path) for path in active_file_paths or () if path}
        try:
            entries = sorted(root.iterdir())
        except FileNotFoundError:
            return []
        except OSError as exc:
            self.log_action("image-sweep", command=str(root), rejection_message=str(exc), level="warning")
            return []
        removed = []
        for entry in entries:
            if entry.suffix.lstrip(".").lower() not in IMAGE_EXTENSIONS:
                continue
            if resolved_path_key(entry) in keep:
                continue
            try:
                if not entry.is_file():
                    continue
                entry.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                self.log_action("image-sweep", command=str(entry), rejection_message=str(exc), level="warning")
                continue
            removed.append(entry)
        if removed:
            self.log_action("image-sweep", command=f"removed={len(removed)} kept={len(keep)}")
        return removed
