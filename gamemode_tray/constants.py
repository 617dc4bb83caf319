# gamemode_tray/constants.py
APP_NAME = "GameMode Tray"
VERSION = "v0.1.0"

# --- GameMode daemon (session bus) ---
GAMEMODE_SERVICE = "com.feralinteractive.GameMode"
GAMEMODE_PATH = "/com/feralinteractive/GameMode"
GAMEMODE_INTERFACE = "com.feralinteractive.GameMode"
SIGNAL_REGISTERED = "GameRegistered"
SIGNAL_UNREGISTERED = "GameUnregistered"

# --- Timing ---
BUS_POLL_TIMEOUT = 1.0  # seconds per blocking receive
BUS_CALL_TIMEOUT = 5.0  # seconds, method calls made while connecting
UI_TICK_MS = 1000

# --- Indicator text ---
UNKNOWN_PROCESS = "Unknown"
TOOLTIP_ON_PREFIX = "Game Mode On:"
TOOLTIP_OFF = "Game Mode Off"

# --- Assets ---
ICON_OFF = "icons/game_mode_off.ico"
ICON_ON = "icons/game_mode_on.ico"
ICON_SIZE = 64

# --- Theme ---
THEME = {
    "BG": "#0A0A0A",
    "SURFACE": "#161616",
    "BORDER": "#333333",
    "TEXT_PRI": "#EDEDED",
    "TEXT_SEC": "#888888",
    "ACCENT": "#50E3C2",
    "HOVER": "#1F1F1F",
}
FONT_HEADER = ("Arial", 18, "bold")
FONT_BODY = ("Arial", 13)
FONT_SMALL = ("Arial", 10)
