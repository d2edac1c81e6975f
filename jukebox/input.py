"""Terminal input — raw key reading and normalisation to key names."""
import os
import select as _sel
import sys
import termios
import tty
from contextlib import contextmanager

_KEY_NAMES = {
    "\r": "enter",
    "\n": "enter",
    "\t": "tab",
    "\x7f": "backspace",
    "\x08": "backspace",
    "\x03": "ctrl-c",
    "\x04": "ctrl-d",
}

_ARROWS = {"A": "up", "B": "down", "C": "right", "D": "left"}


def parse_keys(data: str) -> list[str]:
    """Split a chunk of raw terminal input into normalised key names.

    Arrows become "up"/"down"/"left"/"right", a lone ESC is "esc", other
    escape sequences are "ignore", everything else is passed through as the
    character itself (or its name from _KEY_NAMES).
    """
    keys = []
    i = 0
    while i < len(data):
        ch = data[i]
        if ch != "\x1b":
            keys.append(_KEY_NAMES.get(ch, ch))
            i += 1
            continue
        if data[i + 1:i + 2] not in ("[", "O"):
            keys.append("esc")
            i += 1
            continue
        # CSI / SS3: parameters then one final byte
        j = i + 2
        while j < len(data) and data[j] in "0123456789;":
            j += 1
        final = data[j] if j < len(data) else ""
        plain = j == i + 2
        keys.append(_ARROWS.get(final, "ignore") if plain else "ignore")
        i = j + 1
    return keys


@contextmanager
def raw_mode():
    """Hold the terminal in cbreak mode for the whole session.

    Echo and line buffering are off. ISIG is cleared too, so Ctrl+C arrives
    as a key instead of a signal. Output processing stays on for rich.
    """
    fd = sys.stdin.fileno()
    old = termios.tcgetattr(fd)
    try:
        tty.setcbreak(fd)
        mode = termios.tcgetattr(fd)
        mode[tty.LFLAG] &= ~termios.ISIG
        termios.tcsetattr(fd, termios.TCSANOW, mode)
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old)


def read_keys(timeout: float = 0.2) -> list[str]:
    """Wait up to `timeout` seconds for input; return the keys read (maybe none).

    Expects the terminal to already be in raw_mode().
    """
    fd = sys.stdin.fileno()
    readable, _, _ = _sel.select([fd], [], [], timeout)
    if not readable:
        return []
    # one read picks up a whole escape sequence or a paste
    data = os.read(fd, 1024)
    return parse_keys(data.decode("utf-8", errors="ignore"))
