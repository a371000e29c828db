"""Map cache event logging with request-aware client identification."""

import os
import traceback
from datetime import datetime

from flask import has_request_context, request

LOG_ROTATE_MAX_BYTES = 5 * 1024 * 1024
LOG_ROTATE_BACKUP_COUNT = 5
LOG_LEVELS = {"debug", "info", "warning", "error"}
OFF_REQUEST_CLIENT = "mapcache"
TRACEBACK_LIMIT = 700


def sanitize_log_fragment(text):
    """Collapse ``text`` onto one line with single spaces."""
    return " ".join(str(text or "").split())


def get_client_ip():
    """First proxy-reported client address, the socket peer, or ``mapcache`` off-request."""
    if not has_request_context():
        return OFF_REQUEST_CLIENT
    forwarded = (request.headers.get("X-Forwarded-For") or "").split(",")[0].strip()
    real_ip = (request.headers.get("X-Real-IP") or "").strip()
    return forwarded or real_ip or (request.remote_addr or "").strip() or OFF_REQUEST_CLIENT


def _rotate_log_file(path, max_bytes=LOG_ROTATE_MAX_BYTES, backup_count=LOG_ROTATE_BACKUP_COUNT):
    """Shift ``path`` to ``path.1`` (and older backups up by one) once it reaches ``max_bytes``."""
    if max_bytes <= 0 or backup_count <= 0:
        return
    try:
        if not path.exists() or path.stat().st_size < max_bytes:
            return
        backups = [path.with_name(f"{path.name}.{n}") for n in range(1, backup_count + 1)]
        for older, newer in zip(reversed(backups[1:]), reversed(backups[:-1])):
            if newer.exists():
                os.replace(newer, older)
        os.replace(path, backups[0])
    except OSError:
        pass


def format_log_line(display_tz, action, command=None, rejection_message=None, level="info"):
    """Render ``<ts> <client> [mapcache/<action>] [LEVEL] [command] [rejected: ...]``."""
    stamp = datetime.now(tz=display_tz).strftime("%b %d %H:%M:%S")
    client = sanitize_log_fragment(get_client_ip()) or "unknown"
    parts = [f"{stamp} <{client}> [mapcache/{sanitize_log_fragment(action) or 'unknown'}]"]
    if level in LOG_LEVELS and level != "info":
        parts.append(level.upper())
    detail = sanitize_log_fragment(command)
    if detail:
        parts.append(detail)
    reason = sanitize_log_fragment(rejection_message)
    if reason:
        parts.append(f"rejected: {reason}")
    return " ".join(parts)


def make_log_action(display_tz, log_dir, log_file):
    """Build the map cache logger closure writing to ``log_file``."""

    def log_action(action, command=None, rejection_message=None, level="info"):
        line = format_log_line(display_tz, action, command, rejection_message, level)
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            _rotate_log_file(log_file)
            with log_file.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError:
            pass

    return log_action


def make_log_exception(log_action):
    """Build ``log_exception(context, exc)`` emitting one warning line per failure."""

    def log_exception(context, exc):
        summary = f"{context}: {type(exc).__name__}"
        text = sanitize_log_fragment(exc)
        if text:
            summary = f"{summary}: {text}"
        if exc.__traceback__ is not None:
            frames = traceback.format_exception(type(exc), exc, exc.__traceback__)
            summary = f"{summary} | traceback: {sanitize_log_fragment(' | '.join(frames))[:TRACEBACK_LIMIT]}"
        log_action("error", rejection_message=summary, level="warning")

    return log_exception


def null_log_action(action, command=None, rejection_message=None, level="info"):
    """Logger used when a caller does not wire one in."""
    return None
