"""Filesystem helpers for cache keys, safe paths, and atomic writes."""

import json
import re
from pathlib import Path

CACHE_KEY_MAX_LENGTH = 80
CACHE_KEY_FALLBACK = "map"
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def sanitize_cache_key(raw):
    """Return a lower-case ``[a-z0-9-]`` key of at most 80 chars (``map`` when empty)."""
    text = _NON_ALNUM_RE.sub("-", str(raw or "").lower()).strip("-")
    text = text[:CACHE_KEY_MAX_LENGTH].rstrip("-")
    return text or CACHE_KEY_FALLBACK


def format_file_size(num_bytes):
    """Format bytes into a human-readable string (B/KB/MB/GB/TB)."""
    value = float(max(0, num_bytes or 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    idx = 0
    while value >= 1024 and idx < len(units) - 1:
        value /= 1024
        idx += 1
    if idx == 0:
        return f"{int(value)} {units[idx]}"
    return f"{value:.1f} {units[idx]}"


def is_within_dir(target, base_dir):
    """Return True when ``target`` resolves to a path inside ``base_dir``."""
    if not target:
        return False
    try:
        Path(target).resolve().relative_to(Path(base_dir).resolve())
    except (OSError, ValueError):
        return False
    return True


def resolved_path_key(path):
    """Return a comparable string for ``path`` (resolved when possible)."""
    try:
        return str(Path(path).resolve())
    except OSError:
        return str(Path(path).absolute())


def atomic_write_bytes(path, content):
    """Write bytes through a sibling temp file, then replace; the temp file is removed on failure."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    temp = path.with_suffix(path.suffix + ".tmp")
    try:
        temp.write_bytes(content)
        temp.replace(path)
    except OSError:
        temp.unlink(missing_ok=True)
        raise


def atomic_write_json(path, payload):
    """Write JSON through a sibling temp file, then replace."""
    atomic_write_bytes(path, json.dumps(payload, indent=2, sort_keys=True).encode("utf-8"))
