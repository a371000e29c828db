"""Typed runtime state shared by map resolution runs and cache purges."""
import threading
from dataclasses import dataclass, field
from typing import Any, Optional

from mapcache.core.errors import Cancelled


class CancelToken:
    """Cancellation signal passed explicitly into network calls and sleeps."""

    def __init__(self):
        self._event = threading.Event()
        self.reason = ""

    def cancel(self, reason=""):
        self.reason = reason or "cancelled"
        self._event.set()

    @property
    def cancelled(self):
        return self._event.is_set()

    def raise_if_cancelled(self):
        """Raise ``Cancelled`` when the signal has fired."""
        if self._event.is_set():
            raise Cancelled(self.reason or None)

    def wait(self, seconds):
        """Sleep up to ``seconds``; return True when woken by cancellation."""
        if seconds <= 0:
            return self._event.is_set()
        return self._event.wait(seconds)


@dataclass
class PurgeState:
    """Last reset point a full cache sweep ran for, one per scheduler."""
    lock: Any = field(default_factory=threading.Lock)
    last_purge_at: Optional[Any] = None
    purge_count: int = 0


@dataclass
class PurgeSchedulerState:
    """Background purge thread lifecycle for one process."""
    start_lock: Any = field(default_factory=threading.Lock)
    started: bool = False
    stop_event: Any = field(default_factory=threading.Event)
    thread: Optional[Any] = None
