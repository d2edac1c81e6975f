"""Error types and structured error logging — JSON to errors.log, no terminal formatting."""
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import APP_LOG, DATA_DIR, DEV_MODE, ERRORS_LOG, LOG_LEVEL

logger = logging.getLogger(__name__)


class JukeboxError(Exception):
    """Base exception for jukebox."""


class MpvConnectionError(JukeboxError, ConnectionError):
    """mpv socket missing, refused, closed, or silent past the reply timeout."""


class ProtocolError(JukeboxError):
    """Undecodable IPC line or a reply nobody asked for."""


class CommandError(JukeboxError):
    """mpv answered a request with an error."""

    def __init__(self, command: list, error: str):
        super().__init__(f"{command[0] if command else '?'}: {error}")
        self.command = command
        self.error = error


class CatalogError(JukeboxError):
    """Search request failed or returned something we can't read."""


_FRIENDLY_MESSAGES = {
    "search": "Search failed — no results.",
    "play": "Couldn't start playback — is mpv running?",
    "playback": "Playback command failed.",
    "duration": "Couldn't fetch song length.",
    "playlist_save": "Couldn't save the playlist.",
    "mpv_connect": "mpv is not reachable.",
    "preflight": "Startup check failed.",
}


def format_error(
    stage: str,
    raw: str = "",
    user_input: str = "",
    context: Optional[dict] = None,
) -> str:
    entry = {
        "timestamp": datetime.now().isoformat(),
        "stage": stage,
        "input": user_input,
        "context": context,
        "error": raw,
        "python": sys.version.split()[0],
    }

    _append_to_log(entry)
    logger.error("Error at %s: %s", stage, raw)

    if DEV_MODE:
        return json.dumps(entry)
    return _FRIENDLY_MESSAGES.get(stage, f"Something went wrong ({stage}).")


def _append_to_log(entry: dict):
    try:
        DATA_DIR.mkdir(parents=True, exist_ok=True)
        with open(ERRORS_LOG, "a") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError:
        pass


def setup_logging(level: str = LOG_LEVEL, log_file: Optional[Path] = APP_LOG) -> None:
    """Send jukebox logs to a file; the terminal belongs to the UI."""
    root = logging.getLogger("jukebox")
    root.setLevel(getattr(logging, level, logging.INFO))
    root.handlers.clear()
    root.propagate = False

    if log_file is None:
        root.addHandler(logging.NullHandler())
        return

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file)
    except OSError:
        handler = logging.NullHandler()
    handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
    ))
    root.addHandler(handler)
