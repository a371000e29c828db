"""Logging setup helpers."""

from mapcache.core.action_logging import make_log_action, make_log_exception


def build_loggers(display_tz, log_dir, map_log_file):
    """Create the map cache log writer and its exception logger."""
    log_map_action = make_log_action(display_tz, log_dir, map_log_file)
    log_map_exception = make_log_exception(log_map_action)
    return log_map_action, log_map_exception
