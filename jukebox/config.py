"""Module 1 — Config & Constants"""
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root (one level up from jukebox/)
_ROOT = Path(__file__).parent.parent
load_dotenv(_ROOT / ".env")

# ─── Paths ────────────────────────────────────────────────────────────────────
ROOT_DIR = _ROOT
DATA_DIR = Path(os.getenv("JUKEBOX_DATA_DIR", str(Path.home() / ".local" / "share" / "jukebox"))).expanduser()
PLAYLIST_FILE = Path(os.getenv("PLAYLIST_FILE", str(DATA_DIR / "playlist.json"))).expanduser()
ERRORS_LOG = DATA_DIR / "errors.log"
APP_LOG = DATA_DIR / "jukebox.log"

# ─── YouTube catalog ──────────────────────────────────────────────────────────
YOUTUBE_API_KEY = os.getenv("YOUTUBE_API_KEY", "").strip()
YOUTUBE_API_HOST = os.getenv("YOUTUBE_API_HOST", "https://youtube.googleapis.com/youtube/v3").rstrip("/")
YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v={}"
CATALOG_TIMEOUT = float(os.getenv("CATALOG_TIMEOUT", "10"))
SEARCH_PAGE_SIZE = int(os.getenv("SEARCH_PAGE_SIZE", "50"))   # API maximum is 50

# ─── mpv ──────────────────────────────────────────────────────────────────────
MPV_BIN = os.getenv("MPV_BIN", "mpv")
MPV_SOCKET = os.getenv("MPV_SOCKET", "/tmp/jukebox-mpv.sock")
MPV_IPC_TIMEOUT = float(os.getenv("MPV_IPC_TIMEOUT", "5"))        # seconds to wait for a reply
MPV_STARTUP_TIMEOUT = float(os.getenv("MPV_STARTUP_TIMEOUT", "5"))

# ─── Runtime ──────────────────────────────────────────────────────────────────
COMMAND_QUEUE_SIZE = int(os.getenv("COMMAND_QUEUE_SIZE", "16"))
MESSAGE_QUEUE_SIZE = int(os.getenv("MESSAGE_QUEUE_SIZE", "64"))
SEEK_SECONDS = int(os.getenv("SEEK_SECONDS", "5"))
TICK_SECONDS = float(os.getenv("TICK_SECONDS", "0.2"))   # key poll / redraw interval

APP_VERSION = "0.1.0"

# ─── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()

# ─── Dev mode ─────────────────────────────────────────────────────────────────
DEV_MODE = os.getenv("DEV_MODE", "0").strip() in ("1", "true", "yes")
