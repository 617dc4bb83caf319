# gamemode_tray/controller.py
import logging
import queue
from abc import ABC, abstractmethod
from typing import Sequence, Tuple

from .constants import TOOLTIP_OFF, TOOLTIP_ON_PREFIX

logger = logging.getLogger(__name__)


def format_tooltip(names: Sequence[str]) -> str:
    if not names:
        return TOOLTIP_OFF
    return TOOLTIP_ON_PREFIX + "\n" + "\n".join(names)


class IIndicator(ABC):
    """Abstract base class for the visual game mode indicator (tray icon)."""
    @abstractmethod
    def set_icon(self, active: bool): pass
    @abstractmethod
    def set_tooltip(self, text: str): pass
    @abstractmethod
    def set_visible(self, visible: bool): pass


class IndicatorController:
    """
    Renders registry snapshots onto an indicator.

    Must only be used from the UI thread. `tick()` is meant to be called once
    per UI_TICK_MS and drains at most one snapshot, so bursts of events
    between ticks are rendered one per tick.
    """

    def __init__(self, indicator: IIndicator, snapshots: "queue.Queue[Tuple[str, ...]]"):
        self.indicator = indicator
        self.snapshots = snapshots
        self._names: Tuple[str, ...] = ()
        self.disable_game_mode()

    @property
    def active(self) -> bool:
        return bool(self._names)

    @property
    def names(self) -> Tuple[str, ...]:
        return self._names

    def tick(self) -> bool:
        """Renders the next pending snapshot, if any. Returns True if one was rendered."""
        try:
            games = self.snapshots.get_nowait()
        except queue.Empty:
            return False

        if games:
            self.enable_game_mode(games)
        else:
            self.disable_game_mode()
        return True

    def enable_game_mode(self, games: Sequence[str]):
        self._names = tuple(games)
        self.indicator.set_icon(True)
        self.indicator.set_tooltip(format_tooltip(self._names))
        logger.debug(f"Rendered game mode on: {self._names}")

    def disable_game_mode(self):
        self._names = ()
        self.indicator.set_icon(False)
        self.indicator.set_tooltip(TOOLTIP_OFF)
        logger.debug("Rendered game mode off")

    def show(self):
        self.indicator.set_visible(True)
