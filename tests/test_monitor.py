"""Tests for GameModeMonitor."""

import logging
import queue

import pytest
from jeepney import DBusAddress, new_signal

from gamemode_tray import monitor as monitor_mod
from gamemode_tray.constants import (
    GAMEMODE_INTERFACE, GAMEMODE_PATH, GAMEMODE_SERVICE,
)
from gamemode_tray.monitor import GameModeMonitor

GAMEMODE = DBusAddress(GAMEMODE_PATH, bus_name=GAMEMODE_SERVICE, interface=GAMEMODE_INTERFACE)
NAMES = {100: "Doom", 200: "Quake"}


def signal(member, pid, signature="io"):
    body = (pid, f"{GAMEMODE_PATH}/Games/{pid}") if signature == "io" else (pid,)
    return new_signal(GAMEMODE, member, signature, body)


def registered(pid):
    return signal("GameRegistered", pid)


def unregistered(pid):
    return signal("GameUnregistered", pid)


def drain(q):
    items = []
    while True:
        try:
            items.append(q.get_nowait())
        except queue.Empty:
            return items


class FakeConnection:
    """Replays scripted messages; stops the monitor once the script runs out."""

    def __init__(self, monitor, script):
        self.monitor = monitor
        self.script = list(script)
        self.closed = False
        self.timeouts = []

    def receive(self, *, timeout=None):
        self.timeouts.append(timeout)
        if not self.script:
            self.monitor.stop()
            raise TimeoutError
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self):
        self.closed = True


@pytest.fixture
def monitor():
    return GameModeMonitor(resolver=lambda pid: NAMES.get(pid, "Unknown"))


class TestHandlers:
    """Signal handlers update the registry and publish snapshots."""

    def test_registered_publishes_snapshot(self, monitor):
        assert monitor.on_game_registered(100) is True
        assert monitor.snapshots.get_nowait() == ("Doom",)
        assert 100 in monitor.registry

    def test_unregistered_publishes_snapshot(self, monitor):
        monitor.on_game_registered(100)
        assert monitor.on_game_unregistered(100) is True
        assert drain(monitor.snapshots) == [("Doom",), ()]

    def test_unregister_absent_still_publishes(self, monitor):
        monitor.on_game_unregistered(555)
        assert drain(monitor.snapshots) == [()]
        assert len(monitor.registry) == 0

    def test_unknown_process(self, monitor):
        monitor.on_game_registered(7)
        assert monitor.snapshots.get_nowait() == ("Unknown",)

    def test_name_resolved_only_on_registration(self):
        calls = []

        def resolver(pid):
            calls.append(pid)
            return f"game-{len(calls)}"

        monitor = GameModeMonitor(resolver=resolver)
        monitor.on_game_registered(1)
        monitor.on_game_unregistered(1)
        assert calls == [1]

    def test_shared_channel(self):
        channel = queue.Queue()
        monitor = GameModeMonitor(resolver=lambda pid: "x", channel=channel)
        monitor.on_game_registered(1)
        assert channel.get_nowait() == ("x",)


class TestDispatch:
    """Bus messages are routed by member name."""

    def test_scenario_snapshots_in_order(self, monitor):
        for message in (registered(100), registered(200), unregistered(100), unregistered(200)):
            assert monitor.dispatch(message) is True

        assert drain(monitor.snapshots) == [
            ("Doom",),
            ("Doom", "Quake"),
            ("Quake",),
            (),
        ]

    def test_single_field_body(self, monitor):
        assert monitor.dispatch(signal("GameRegistered", 100, signature="i")) is True
        assert monitor.snapshots.get_nowait() == ("Doom",)

    def test_other_member_ignored(self, monitor):
        other = new_signal(GAMEMODE, "SomethingElse", "i", (1,))
        assert monitor.dispatch(other) is False
        assert monitor.snapshots.empty()

    def test_other_interface_ignored(self, monitor):
        emitter = DBusAddress("/org/example", interface="org.example.Other")
        assert monitor.dispatch(new_signal(emitter, "GameRegistered", "i", (1,))) is False
        assert monitor.snapshots.empty()

    def test_malformed_body_logged(self, monitor, caplog):
        bad = new_signal(GAMEMODE, "GameRegistered", "s", ("nope",))
        with caplog.at_level(logging.WARNING):
            assert monitor.dispatch(bad) is False
        assert "unexpected body" in caplog.text
        assert monitor.snapshots.empty()


class TestLoop:
    """Receive loop behaviour."""

    def test_timeouts_are_retried(self, monitor):
        monitor.connection = conn = FakeConnection(monitor, [
            TimeoutError(), registered(100), TimeoutError(), unregistered(100),
        ])
        monitor.loop()

        assert drain(monitor.snapshots) == [("Doom",), ()]
        assert all(t == 1.0 for t in conn.timeouts)
        assert conn.closed
        assert monitor.connection is None

    def test_transport_failure_ends_loop(self, monitor, caplog):
        monitor.connection = conn = FakeConnection(monitor, [
            registered(100), ConnectionResetError("bus went away"), registered(200),
        ])
        with caplog.at_level(logging.ERROR):
            monitor.loop()

        assert drain(monitor.snapshots) == [("Doom",)]
        assert "listener stopped" in caplog.text
        assert conn.closed
        # The message after the failure is never read
        assert len(conn.script) == 1

    def test_start_runs_in_daemon_thread(self, monitor):
        monitor.connection = FakeConnection(monitor, [registered(200)])
        thread = monitor.start()
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert thread.daemon
        assert monitor.snapshots.get_nowait() == ("Quake",)

    def test_stop_before_loop(self, monitor):
        monitor.connection = conn = FakeConnection(monitor, [registered(100)])
        monitor.stop()
        monitor.loop()
        assert monitor.snapshots.empty()
        assert conn.closed


class TestConnect:
    """Bus connection setup."""

    def test_connect_installs_match_rules(self, monitor, monkeypatch):
        conn = FakeConnection(monitor, [])
        rules = []

        class FakeProxy:
            def __init__(self, msggen, connection, timeout=None):
                assert connection is conn
                assert timeout == 5.0

            def AddMatch(self, rule):
                rules.append(rule)

        monkeypatch.setattr(monitor_mod, "open_dbus_connection", lambda bus: conn)
        monkeypatch.setattr(monitor_mod, "Proxy", FakeProxy)

        assert monitor.connect() is True
        assert monitor.connection is conn
        assert [r.header_fields["member"] for r in rules] == ["GameRegistered", "GameUnregistered"]
        for rule in rules:
            assert rule.header_fields["sender"] == GAMEMODE_SERVICE
            assert rule.header_fields["interface"] == GAMEMODE_INTERFACE
            assert rule.header_fields["path"] == GAMEMODE_PATH

    def test_connect_failure_returns_false(self, monitor, monkeypatch, caplog):
        def refuse(bus):
            raise ConnectionRefusedError("no session bus")

        monkeypatch.setattr(monitor_mod, "open_dbus_connection", refuse)
        with caplog.at_level(logging.ERROR):
            assert monitor.connect() is False
        assert "no session bus" in caplog.text
        assert monitor.connection is None

    def test_add_match_failure_closes_connection(self, monitor, monkeypatch):
        conn = FakeConnection(monitor, [])

        class FailingProxy:
            def __init__(self, *args, **kwargs):
                pass

            def AddMatch(self, rule):
                raise OSError("denied")

        monkeypatch.setattr(monitor_mod, "open_dbus_connection", lambda bus: conn)
        monkeypatch.setattr(monitor_mod, "Proxy", FailingProxy)

        assert monitor.connect() is False
        assert conn.closed
        assert monitor.connection is None
