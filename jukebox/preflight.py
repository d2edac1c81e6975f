"""Startup preflight — check dependencies, start mpv, wait for its IPC socket."""
import asyncio
import logging
import os
import shutil
import subprocess
import time
from typing import Optional

from rich.console import Console

from .config import APP_VERSION, MPV_BIN, MPV_SOCKET, MPV_STARTUP_TIMEOUT, YOUTUBE_API_KEY
from .errors import format_error

logger = logging.getLogger(__name__)

console = Console()


async def run_preflight(
    socket_path: str = MPV_SOCKET,
    startup_timeout: float = MPV_STARTUP_TIMEOUT,
) -> Optional[subprocess.Popen]:
    """
    Run all startup checks and start mpv. Print results.
    Returns the mpv process, or None if anything required failed.
    """
    console.print(f"\n  [bold]♪  jukebox v{APP_VERSION}[/bold] — preflight check\n")

    checks = [
        ("Python deps", _check_python_deps),
        ("mpv binary", _check_mpv_binary),
        ("yt-dlp", _check_ytdlp),
        ("YouTube API key", _check_api_key),
    ]
    total = len(checks) + 1

    results = []
    for i, (label, fn) in enumerate(checks, 1):
        status, msg, fix = fn()
        results.append((status, label, fix))
        _print_check(i, total, label, status, msg)

    proc = None
    if all(status != "fail" for status, _, _ in results):
        status, msg, fix, proc = await _start_mpv(socket_path, startup_timeout)
        results.append((status, "mpv IPC", fix))
        _print_check(total, total, "mpv IPC", status, msg)

    failures = [(label, fix) for status, label, fix in results if status == "fail" and fix]
    hints = [(label, fix) for status, label, fix in results if status == "warn" and fix]
    for label, fix in failures + hints:
        console.print("")
        console.print(f"  [yellow]Fix for {label}:[/yellow]")
        for line in fix.strip().splitlines():
            console.print(f"    {line}")

    if failures or proc is None:
        console.print("\n  Then re-run: [bold]jukebox[/bold]\n")
        return None

    console.print("")
    return proc


def _print_check(i: int, total: int, label: str, status: str, msg: str):
    color = {"ok": "green", "warn": "yellow", "fail": "red"}[status]
    icon = "✗" if status == "fail" else "✓"
    dots = "." * max(30 - len(label), 3)
    console.print(f"  [{i}/{total}] {label} {dots} [{color}]{icon}[/{color}] [{color}]{msg}[/{color}]")


def _check_python_deps() -> tuple[str, str, str]:
    missing = []
    versions = []
    try:
        import httpx as hx
        versions.append(f"httpx {hx.__version__}")
    except ImportError:
        missing.append("httpx")

    try:
        import rich
        v = getattr(rich, "__version__", "ok")
        versions.append(f"rich {v}")
    except ImportError:
        missing.append("rich")

    try:
        import dotenv  # noqa: F401
        versions.append("python-dotenv")
    except ImportError:
        missing.append("python-dotenv")

    if missing:
        return "fail", f"missing: {', '.join(missing)}", "Run: pip install -e ."
    return "ok", ", ".join(versions), ""


def _check_mpv_binary() -> tuple[str, str, str]:
    path = shutil.which(MPV_BIN)
    if path:
        return "ok", path, ""
    return "fail", "not found", (
        f"'{MPV_BIN}' is not on PATH. Install it with:\n"
        "  sudo apt install mpv     (Debian/Ubuntu)\n"
        "  brew install mpv         (macOS)\n"
        "Or point MPV_BIN at it in .env"
    )


def _check_ytdlp() -> tuple[str, str, str]:
    # mpv needs yt-dlp (or youtube-dl) to open YouTube URLs
    for name in ("yt-dlp", "youtube-dl"):
        if shutil.which(name):
            return "ok", name, ""
    return "warn", "not found — YouTube links won't play", "Install it: pip install yt-dlp"


def _check_api_key() -> tuple[str, str, str]:
    if YOUTUBE_API_KEY:
        return "ok", "set", ""
    return "warn", "not set — search disabled", (
        "Add your YouTube Data API v3 key to .env:\n"
        "  YOUTUBE_API_KEY=..."
    )


async def _start_mpv(socket_path: str, startup_timeout: float):
    """Spawn an idle, headless mpv and wait until its socket accepts connections.

    Returns (status, msg, fix, proc); proc is None on failure.
    """
    # a stale socket from a crashed run would make us connect too early
    if os.path.exists(socket_path):
        try:
            os.unlink(socket_path)
        except OSError as e:
            logger.warning("Could not remove stale socket %s: %s", socket_path, e)

    cmd = [
        MPV_BIN,
        f"--input-ipc-server={socket_path}",
        "--no-terminal",
        "--no-video",
        "--idle",
    ]
    try:
        proc = subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    except OSError as e:
        format_error("preflight", str(e), context={"cmd": cmd})
        return "fail", "could not start", f"Running {' '.join(cmd)} failed: {e}", None

    deadline = time.monotonic() + startup_timeout
    while time.monotonic() < deadline:
        if proc.poll() is not None:
            format_error("preflight", f"mpv exited with {proc.returncode}", context={"cmd": cmd})
            return "fail", f"mpv exited ({proc.returncode})", (
                f"Try running it by hand to see why:\n  {' '.join(cmd)}"
            ), None
        if await _socket_ready(socket_path):
            logger.info("mpv started (pid %d) on %s", proc.pid, socket_path)
            return "ok", f"listening on {socket_path}", "", proc
        await asyncio.sleep(0.1)

    stop_mpv(proc, socket_path)
    format_error("preflight", "mpv socket never came up", context={"socket": socket_path})
    return "fail", f"no socket after {startup_timeout:.0f}s", (
        f"Check that {socket_path} is writable, or set MPV_SOCKET in .env"
    ), None


async def _socket_ready(socket_path: str) -> bool:
    try:
        _, writer = await asyncio.open_unix_connection(socket_path)
    except OSError:
        return False
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


def stop_mpv(proc: Optional[subprocess.Popen], socket_path: str = MPV_SOCKET):
    """Terminate mpv and remove its socket."""
    if proc is not None and proc.poll() is None:
        proc.terminate()
        try:
            proc.wait(timeout=2)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
    try:
        os.unlink(socket_path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove socket %s: %s", socket_path, e)
