# gamemode_tray/monitor.py
import logging
import queue
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional, Tuple

from jeepney import HeaderFields, MatchRule, Message, MessageType, message_bus
from jeepney.io.blocking import Proxy, open_dbus_connection

from .constants import (
    BUS_CALL_TIMEOUT, BUS_POLL_TIMEOUT, GAMEMODE_INTERFACE, GAMEMODE_PATH,
    GAMEMODE_SERVICE, SIGNAL_REGISTERED, SIGNAL_UNREGISTERED,
)
from .registry import Registry, resolve_name

logger = logging.getLogger(__name__)

Snapshot = Tuple[str, ...]


# --- Abstract Interface ---
class IGameModeSource(ABC):
    """Abstract base class for sources of GameMode registration events."""
    @abstractmethod
    def connect(self) -> bool: pass
    @abstractmethod
    def loop(self): pass
    @abstractmethod
    def stop(self): pass


# --- Implementation ---
class GameModeMonitor(IGameModeSource):
    """
    Listens for GameMode's GameRegistered / GameUnregistered signals on the
    session bus.

    Each signal updates the pid -> name registry and pushes the resulting
    snapshot (a tuple of display names) onto `snapshots`. The UI thread is
    the only reader of that queue and never touches the registry itself.

    The bus connection is opened on the calling thread by `connect()` and
    afterwards used only by the listener thread started with `start()`.
    """

    def __init__(self, resolver: Callable[[int], str] = resolve_name,
                 channel: Optional["queue.Queue[Snapshot]"] = None):
        self.resolver = resolver
        self.snapshots: "queue.Queue[Snapshot]" = channel if channel is not None else queue.Queue()
        self.registry = Registry()
        self.connection = None
        self._stop = threading.Event()
        self._handlers = {
            SIGNAL_REGISTERED: self.on_game_registered,
            SIGNAL_UNREGISTERED: self.on_game_unregistered,
        }

    @staticmethod
    def match_rule(member: str) -> MatchRule:
        return MatchRule(
            type="signal",
            sender=GAMEMODE_SERVICE,
            interface=GAMEMODE_INTERFACE,
            path=GAMEMODE_PATH,
            member=member,
        )

    def connect(self) -> bool:
        try:
            self.connection = open_dbus_connection(bus="SESSION")
            bus = Proxy(message_bus, self.connection, timeout=BUS_CALL_TIMEOUT)
            for member in self._handlers:
                bus.AddMatch(self.match_rule(member))
            logger.info(f"Connected to session bus, watching {GAMEMODE_SERVICE}")
            return True
        except Exception as e:
            logger.error(f"GameMode bus connect error: {e}")
            if self.connection is not None:
                self.connection.close()
                self.connection = None
            return False

    # --- Signal handlers (listener thread) ---

    def on_game_registered(self, pid: int) -> bool:
        name = self.resolver(pid)
        snapshot = self.registry.insert_or_replace(pid, name)
        logger.info(f"Game registered: {name} (pid {pid})")
        self._publish(snapshot)
        return True

    def on_game_unregistered(self, pid: int) -> bool:
        snapshot = self.registry.remove(pid)
        logger.info(f"Game unregistered: pid {pid}")
        self._publish(snapshot)
        return True

    def _publish(self, snapshot: Snapshot):
        logger.debug(f"Publishing snapshot {snapshot}")
        self.snapshots.put(snapshot)

    def dispatch(self, message: Message) -> bool:
        """
        Routes one received bus message to its signal handler.

        Returns True if a handler ran. Messages that are not GameMode signals
        are ignored; malformed GameMode signals are logged and ignored.
        """
        header = message.header
        if header.message_type != MessageType.signal:
            return False
        if header.fields.get(HeaderFields.interface) != GAMEMODE_INTERFACE:
            return False
        member = header.fields.get(HeaderFields.member)
        handler = self._handlers.get(member)
        if handler is None:
            return False

        body = message.body
        if not body or isinstance(body[0], bool) or not isinstance(body[0], int):
            logger.warning(f"Ignoring {member} signal with unexpected body {body!r}")
            return False
        handler(body[0])
        return True

    # --- Receive loop ---

    def loop(self):
        """
        Blocking receive loop. Each wait is bounded by BUS_POLL_TIMEOUT so the
        stop flag is honoured; a timeout just means nothing was pending.

        Any other failure is fatal for this thread: there is no reconnect, so
        the indicator keeps showing the last state it rendered.
        """
        try:
            while not self._stop.is_set():
                try:
                    message = self.connection.receive(timeout=BUS_POLL_TIMEOUT)
                except TimeoutError:
                    continue
                self.dispatch(message)
        except Exception:
            if not self._stop.is_set():
                logger.exception("GameMode listener stopped, indicator will no longer update")
        finally:
            if self.connection is not None:
                self.connection.close()
                self.connection = None

    def start(self) -> threading.Thread:
        """Runs `loop()` on a daemon thread for the rest of the process lifetime."""
        thread = threading.Thread(target=self.loop, name="gamemode-listener", daemon=True)
        thread.start()
        logger.info("GameMode listener thread started")
        return thread

    def stop(self):
        self._stop.set()
