"""
GameMode Tray - Main Entry Point
================================

Watches the GameMode daemon on the session bus and shows whether game mode
is active, and for which games, as a system tray icon.

License: MIT
"""
import logging
import sys

from gamemode_tray.monitor import GameModeMonitor


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    monitor = GameModeMonitor()
    if not monitor.connect():
        # Without the bus there is nothing to show; don't create the tray icon
        return 1
    monitor.start()

    from gamemode_tray.ui import App
    app = App(monitor)
    app.mainloop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
