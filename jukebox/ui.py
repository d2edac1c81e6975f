"""Terminal loop — draws the app with rich Live and feeds it keys and worker messages."""
import asyncio
import logging

from rich.console import Console
from rich.live import Live

from .app import MusicApp
from .channel import MessageChannel
from .config import APP_VERSION, TICK_SECONDS
from .input import raw_mode, read_keys

logger = logging.getLogger(__name__)

console = Console()


def print_header():
    console.print(
        f"\n  [bold cyan]♪  jukebox[/bold cyan]"
        f"  [dim]v{APP_VERSION}[/dim]"
    )


def print_goodbye():
    console.print("\n  [bold cyan]♪[/bold cyan]  See you next time.\n")


async def run_ui(app: MusicApp, messages: MessageChannel, tick: float = TICK_SECONDS):
    """Run until the app asks to quit.

    Each tick: redraw, wait up to `tick` seconds for keys, apply them, then
    apply whatever the worker sent in the meantime. Worker messages never
    end the loop; only a key can.
    """
    loop = asyncio.get_running_loop()
    with raw_mode(), Live(app.render(), console=console, screen=True, auto_refresh=False) as live:
        while True:
            app.resize(console.size.height)
            live.update(app.render(), refresh=True)

            keys = await loop.run_in_executor(None, read_keys, tick)
            for key in keys:
                if not app.update(app.input(key)):
                    logger.info("Quit requested")
                    return

            for msg in messages.drain():
                app.update(msg)
