import customtkinter as ctk
import logging
import os
import threading
import pystray
from PIL import Image, ImageDraw

from .constants import (
    APP_NAME, VERSION, THEME, FONT_HEADER, FONT_BODY, FONT_SMALL,
    ICON_OFF, ICON_ON, ICON_SIZE, UI_TICK_MS,
)
from .controller import IIndicator, IndicatorController, format_tooltip
from .monitor import GameModeMonitor

logger = logging.getLogger(__name__)

# ==========================================================
# ICON LOADING
# ==========================================================

def draw_icon(active: bool) -> Image.Image:
    """
    Draws a minimalist dot icon, used when the icon asset is missing.

    Args:
        active: Accent-coloured dot if True, grey dot otherwise.
    """
    img = Image.new('RGBA', (ICON_SIZE, ICON_SIZE), color=(0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    fill = THEME["ACCENT"] if active else THEME["TEXT_SEC"]
    pad = ICON_SIZE // 8
    draw.ellipse([pad, pad, ICON_SIZE - pad, ICON_SIZE - pad], fill=fill, outline=THEME["BORDER"], width=3)
    return img


def load_icon(path: str, active: bool) -> Image.Image:
    """Opens an icon asset, falling back to a drawn icon if it is missing or unreadable."""
    if os.path.exists(path):
        try:
            img = Image.open(path)
            img.load()
            return img
        except OSError as e:
            logger.warning(f"Could not read icon {path}: {e}")
    return draw_icon(active)

# ==========================================================
# TRAY INDICATOR
# ==========================================================

class TrayIndicator(IIndicator):
    """
    pystray-backed indicator.

    State set before the tray thread is running is kept on the pystray.Icon
    and applied once the backend calls our setup hook.
    """
    def __init__(self, menu=None):
        self._images = {True: load_icon(ICON_ON, True), False: load_icon(ICON_OFF, False)}
        self._visible = False
        self._running = False
        self.icon = pystray.Icon(APP_NAME, self._images[False], APP_NAME, menu)

    def set_icon(self, active: bool):
        self.icon.icon = self._images[active]

    def set_tooltip(self, text: str):
        self.icon.title = text

    def set_visible(self, visible: bool):
        self._visible = visible
        if self._running:
            self.icon.visible = visible

    def _setup(self, icon):
        self._running = True
        icon.visible = self._visible

    def run(self):
        """Runs the tray backend in a daemon thread."""
        def loop():
            try:
                self.icon.run(setup=self._setup)
            except Exception:
                logger.exception("System tray backend failed")

        threading.Thread(target=loop, name="tray", daemon=True).start()

    def stop(self):
        if self._running:
            self.icon.stop()

# ==========================================================
# MAIN APPLICATION CLASS
# ==========================================================

class App(ctk.CTk):
    """
    Main Application Class.

    The window itself is a small status view that stays hidden until it is
    opened from the tray menu. Its Tk event loop is the UI thread: every
    UI_TICK_MS it lets the IndicatorController render one pending snapshot.
    """
    def __init__(self, monitor: GameModeMonitor):
        super().__init__()
        self.monitor = monitor

        # --- 1. Indicator & Controller ---
        menu = (
            pystray.MenuItem('Status', self.show_safe, default=True),
            pystray.MenuItem('Quit', self.quit_safe)
        )
        self.tray = TrayIndicator(menu)
        # Renders "off" synchronously, before the first tick
        self.controller = IndicatorController(self.tray, monitor.snapshots)

        # --- 2. UI Setup ---
        self.setup_window()
        self.setup_layout()
        self.refresh_status()

        # --- 3. System Integration ---
        self.protocol("WM_DELETE_WINDOW", self.withdraw)
        self.controller.show()
        self.tray.run()
        self.withdraw()

        self.check_game_mode_state()  # Start the 1 Hz update loop

    def check_game_mode_state(self):
        """Renders at most one pending snapshot, then schedules the next tick."""
        try:
            if self.controller.tick():
                self.refresh_status()
        finally:
            self.after(UI_TICK_MS, self.check_game_mode_state)

    # ==========================================================
    # LAYOUT CONSTRUCTION
    # ==========================================================

    def setup_window(self):
        """Configures basic window properties."""
        self.title(APP_NAME)
        self.geometry("320x260")
        self.resizable(False, False)
        self.configure(fg_color=THEME["BG"])
        ctk.set_appearance_mode("Dark")
        ctk.set_default_color_theme("dark-blue")

    def setup_layout(self):
        self.grid_columnconfigure(0, weight=1)

        header = ctk.CTkFrame(self, fg_color="transparent")
        header.grid(row=0, column=0, sticky="ew", padx=20, pady=(20, 10))
        ctk.CTkLabel(header, text=APP_NAME, font=FONT_HEADER, text_color=THEME["TEXT_PRI"]).pack(side="left")
        ctk.CTkLabel(header, text=VERSION, font=FONT_SMALL, text_color=THEME["TEXT_PRI"]).pack(side="left", padx=5, pady=(0, 10))

        card = ctk.CTkFrame(self, fg_color="transparent", border_width=1, border_color=THEME["BORDER"], corner_radius=8)
        card.grid(row=1, column=0, sticky="nsew", padx=20, pady=(0, 20))

        top = ctk.CTkFrame(card, fg_color="transparent")
        top.pack(fill="x", padx=15, pady=(15, 5))
        self.lbl_status_dot = ctk.CTkLabel(top, text="●", font=("Arial", 12), text_color=THEME["TEXT_SEC"])
        self.lbl_status_dot.pack(side="left", padx=(0, 5))
        self.lbl_status_text = ctk.CTkLabel(top, text="", font=FONT_BODY, text_color=THEME["TEXT_SEC"])
        self.lbl_status_text.pack(side="left")

        self.lbl_games = ctk.CTkLabel(card, text="", font=FONT_BODY, justify="left", anchor="w", text_color=THEME["TEXT_PRI"])
        self.lbl_games.pack(fill="x", padx=15, pady=(5, 15))

    def refresh_status(self):
        """Mirrors the controller's last rendered state into the status window."""
        is_game = self.controller.active
        lines = format_tooltip(self.controller.names).split("\n")
        self.lbl_status_dot.configure(text_color=THEME["ACCENT"] if is_game else THEME["TEXT_SEC"])
        self.lbl_status_text.configure(text=lines[0], text_color=THEME["TEXT_PRI"] if is_game else THEME["TEXT_SEC"])
        self.lbl_games.configure(text="\n".join(lines[1:]))

    # ==========================================================
    # SYSTEM TRAY INTEGRATION
    # ==========================================================

    # --- pystray Callbacks ---

    def show_safe(self, i=None, it=None):
        """Thread-safe method to show the status window."""
        self.after(0, self._show)

    def _show(self):
        self.deiconify()
        self.lift()
        self.focus_force()

    def quit_safe(self, i=None, it=None):
        """Thread-safe method to safely exit the application."""
        self.after(0, self._quit)

    def _quit(self):
        self.tray.stop()
        self.monitor.stop()
        self.destroy()
