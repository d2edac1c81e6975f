"""jukebox — entry point."""
import asyncio
import logging
import sys

from rich import print as rprint

from jukebox.app import MusicApp
from jukebox.channel import CommandChannel, MessageChannel
from jukebox.config import PLAYLIST_FILE
from jukebox.errors import setup_logging
from jukebox.playlist import load_playlist
from jukebox.preflight import run_preflight, stop_mpv
from jukebox.ui import print_goodbye, print_header, run_ui
from jukebox.worker import Worker

logger = logging.getLogger("jukebox.main")


async def main() -> int:
    setup_logging()
    print_header()

    mpv_proc = await run_preflight()
    if mpv_proc is None:
        return 1

    commands = CommandChannel()
    messages = MessageChannel()
    playlist = load_playlist(PLAYLIST_FILE)
    logger.info("Loaded %d songs from %s", len(playlist), PLAYLIST_FILE)

    app = MusicApp(commands, playlist=playlist)
    worker_task = asyncio.create_task(Worker(commands, messages).run())
    try:
        await run_ui(app, messages)
    finally:
        worker_task.cancel()
        try:
            await worker_task
        except asyncio.CancelledError:
            pass
        stop_mpv(mpv_proc)

    print_goodbye()
    return 0


def run():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        rprint("\n\n  [bold]Playlist saved.[/bold] Goodbye.\n")
        sys.exit(0)


if __name__ == "__main__":
    run()
