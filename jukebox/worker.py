"""Background worker — the only place that talks to mpv, YouTube, or the disk.

Commands come in over a CommandChannel, Messages go out over a
MessageChannel. Command handling and mpv event listening run as two
concurrent tasks so a slow search never holds up an end-of-track event.
"""
import asyncio
import logging
import time
from pathlib import Path
from typing import Optional

from .catalog import CatalogClient
from .channel import CommandChannel, MessageChannel
from .config import MPV_IPC_TIMEOUT, MPV_SOCKET, PLAYLIST_FILE
from .errors import CatalogError, CommandError, MpvConnectionError, ProtocolError, format_error
from .models import (
    DisplaySearchResult,
    Pause,
    Play,
    PlaybackError,
    Resume,
    SavePlaylist,
    Search,
    Seek,
    SongDuration,
    SongStarted,
    SongStopped,
    Stop,
)
from .mpv import MpvClient, PlaybackStarted, PlaybackStopped
from .playlist import save_playlist

logger = logging.getLogger(__name__)


class Worker:
    def __init__(
        self,
        commands: CommandChannel,
        messages: MessageChannel,
        catalog: Optional[CatalogClient] = None,
        socket_path: str = MPV_SOCKET,
        playlist_file: Path = PLAYLIST_FILE,
        mpv_timeout: float = MPV_IPC_TIMEOUT,
    ):
        self.commands = commands
        self.messages = messages
        self.catalog = catalog or CatalogClient()
        self.socket_path = socket_path
        self.playlist_file = playlist_file
        self.mpv_timeout = mpv_timeout
        self.mpv: Optional[MpvClient] = None

        self._connected = asyncio.Event()
        self._current_song: Optional[str] = None
        self._side_tasks: set[asyncio.Task] = set()

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def run(self):
        """Serve commands until cancelled."""
        try:
            await self._ensure_mpv()
        except MpvConnectionError as e:
            format_error("mpv_connect", str(e), context={"socket": self.socket_path})

        listener = asyncio.create_task(self._event_loop())
        try:
            await self._command_loop()
        finally:
            listener.cancel()
            for task in list(self._side_tasks):
                task.cancel()
            try:
                await listener
            except (asyncio.CancelledError, Exception):
                pass
            if self.mpv is not None:
                await self.mpv.close()
            logger.info("Worker stopped")

    async def _ensure_mpv(self) -> MpvClient:
        """Return a live mpv client, reconnecting once if the last one died."""
        if self.mpv is not None and not self.mpv.closed:
            return self.mpv
        if self.mpv is not None:
            dead, self.mpv = self.mpv, None
            await dead.close()
        self.mpv = await MpvClient.connect(self.socket_path, self.mpv_timeout)
        self._connected.set()
        return self.mpv

    # ── Commands ─────────────────────────────────────────────────────────────

    async def _command_loop(self):
        while True:
            command = await self.commands.recv()
            try:
                await self.handle(command)
            except Exception:
                logger.exception("Worker command error: %r", command)

    async def handle(self, command):
        logger.debug("Handling %r", command)
        if isinstance(command, Search):
            await self._search(command)
        elif isinstance(command, Play):
            await self._play(command.song_id)
        elif isinstance(command, Stop):
            self._current_song = None
            await self._with_mpv("playback", lambda mpv: mpv.stop())
        elif isinstance(command, Pause):
            await self._with_mpv("playback", lambda mpv: mpv.pause())
        elif isinstance(command, Resume):
            await self._with_mpv("playback", lambda mpv: mpv.play())
        elif isinstance(command, Seek):
            await self._with_mpv("playback", lambda mpv: mpv.seek(command.seconds))
        elif isinstance(command, SavePlaylist):
            self._save_playlist(command.songs)
        else:
            logger.warning("Unknown command %r", command)

    async def _search(self, command: Search):
        try:
            songs, next_page = await self.catalog.search(command.query, command.page)
        except CatalogError as e:
            format_error("search", str(e), user_input=command.query)
            songs, next_page = [], None
        except Exception as e:
            # the UI waits on this reply, so it must always be sent
            logger.exception("Search %r failed", command.query)
            format_error("search", repr(e), user_input=command.query)
            songs, next_page = [], None
        await self.messages.send(DisplaySearchResult(tuple(songs), command.page, next_page))

    async def _play(self, song_id: str):
        self._current_song = song_id
        ok = await self._with_mpv("play", lambda mpv: mpv.play_song(song_id), song_id)
        if not ok:
            return
        await self.messages.send(SongStarted(time.monotonic()))
        task = asyncio.create_task(self._fetch_duration(song_id))
        self._side_tasks.add(task)
        task.add_done_callback(self._side_tasks.discard)

    async def _fetch_duration(self, song_id: str):
        try:
            duration = await self.catalog.get_duration(song_id)
        except CatalogError as e:
            format_error("duration", str(e), user_input=song_id)
            return
        # a newer Play may have landed while we were waiting
        if duration and song_id == self._current_song:
            await self.messages.send(SongDuration(duration))

    async def _with_mpv(self, stage: str, action, user_input: str = "") -> bool:
        """Run one mpv action. IPC failures become a PlaybackError message."""
        try:
            mpv = await self._ensure_mpv()
            await action(mpv)
        except (MpvConnectionError, CommandError, ProtocolError) as e:
            msg = format_error(stage, str(e), user_input=user_input)
            await self.messages.send(PlaybackError(msg))
            return False
        return True

    def _save_playlist(self, songs):
        try:
            save_playlist(self.playlist_file, songs)
        except OSError as e:
            format_error("playlist_save", str(e), context={"path": str(self.playlist_file)})

    # ── mpv events ───────────────────────────────────────────────────────────

    async def _event_loop(self):
        while True:
            await self._connected.wait()
            mpv = self.mpv
            if mpv is None or mpv.closed:
                self._connected.clear()
                continue
            try:
                async for event in mpv.events():
                    await self._on_event(event)
            except MpvConnectionError as e:
                logger.warning("mpv event stream ended: %s", e)
            # only forget the connection if nobody has replaced it meanwhile
            if self.mpv is mpv:
                self._connected.clear()

    async def _on_event(self, event):
        if isinstance(event, PlaybackStarted):
            await self.messages.send(SongStarted(time.monotonic()))
        elif isinstance(event, PlaybackStopped):
            logger.info("Playback stopped: %s", event.reason or "?")
            await self.messages.send(SongStopped(event.reason))
        else:
            logger.debug("Ignoring mpv event %s", event.raw.get("event"))
