# gamemode_tray/registry.py
import logging
import threading
from typing import Dict, Tuple

import psutil

from .constants import UNKNOWN_PROCESS

logger = logging.getLogger(__name__)


def resolve_name(pid: int, fallback: str = UNKNOWN_PROCESS) -> str:
    """
    Returns the display name of a running process.

    The game may already have exited by the time its signal is handled,
    so a missing or inaccessible process yields the fallback name.
    """
    try:
        name = psutil.Process(pid).name()
    except (psutil.NoSuchProcess, psutil.AccessDenied, ValueError):
        return fallback
    return name or fallback


class Registry:
    """
    Thread-safe map of active game pids to display names.

    Every operation takes the same lock, so `current_names()` always reflects
    the latest completed mutation.
    """

    def __init__(self):
        self._games: Dict[int, str] = {}
        self._lock = threading.Lock()

    def insert_or_replace(self, pid: int, name: str) -> Tuple[str, ...]:
        """Stores (or renames) a game and returns the resulting snapshot."""
        with self._lock:
            self._games[pid] = name
            return self._snapshot()

    def remove(self, pid: int) -> Tuple[str, ...]:
        """Drops a game if present and returns the resulting snapshot."""
        with self._lock:
            self._games.pop(pid, None)
            return self._snapshot()

    def current_names(self) -> Tuple[str, ...]:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> Tuple[str, ...]:
        # Ordered by pid so equal registries give equal snapshots
        return tuple(self._games[pid] for pid in sorted(self._games))

    def __len__(self) -> int:
        with self._lock:
            return len(self._games)

    def __contains__(self, pid) -> bool:
        with self._lock:
            return pid in self._games
