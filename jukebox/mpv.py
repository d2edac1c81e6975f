"""mpv JSON IPC client — one socket, replies matched by request_id, events streamed.

Wire format is newline-delimited JSON. Requests look like
``{"command": ["loadfile", url, "replace"], "request_id": 7}``; mpv answers
with ``{"request_id": 7, "data": ..., "error": "success"}`` and pushes
unsolicited ``{"event": "end-file", "reason": "eof", ...}`` lines on the same
socket. A single reader task splits the two.
"""
import asyncio
import itertools
import json
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator

from .config import MPV_IPC_TIMEOUT, MPV_SOCKET, YOUTUBE_WATCH_URL
from .errors import CommandError, MpvConnectionError, ProtocolError

logger = logging.getLogger(__name__)

_LINE_LIMIT = 1024 * 1024
_CLOSED = object()


# ── Events ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PlaybackStarted:
    pass


@dataclass(frozen=True)
class PlaybackStopped:
    reason: str


@dataclass(frozen=True)
class Unknown:
    raw: dict = field(default_factory=dict, hash=False)


MpvEvent = PlaybackStarted | PlaybackStopped | Unknown


def decode_line(line: bytes) -> dict:
    """Parse one IPC line into a JSON object, or raise ProtocolError."""
    try:
        obj = json.loads(line)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolError(f"undecodable line: {line[:80]!r}") from e
    if not isinstance(obj, dict):
        raise ProtocolError(f"expected a JSON object, got {type(obj).__name__}")
    return obj


def decode_event(obj: dict) -> MpvEvent:
    name = obj.get("event")
    if name == "start-file":
        return PlaybackStarted()
    if name == "end-file":
        return PlaybackStopped(str(obj.get("reason") or ""))
    return Unknown(obj)


def song_url(song_id: str) -> str:
    return YOUTUBE_WATCH_URL.format(song_id)


# ── Client ────────────────────────────────────────────────────────────────────

class MpvClient:
    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        timeout: float = MPV_IPC_TIMEOUT,
    ):
        self.timeout = timeout
        self._reader = reader
        self._writer = writer
        self._ids = itertools.count(1)
        self._pending: dict[int, asyncio.Future] = {}
        self._events: asyncio.Queue = asyncio.Queue()
        self._events_taken = False
        self._closed = False
        self._reader_task: asyncio.Task = asyncio.create_task(self._read_loop())

    @classmethod
    async def connect(cls, path: str = MPV_SOCKET, timeout: float = MPV_IPC_TIMEOUT) -> "MpvClient":
        """Open the control socket. Raises MpvConnectionError if it's missing or refused."""
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_unix_connection(path, limit=_LINE_LIMIT), timeout,
            )
        except asyncio.TimeoutError as e:
            raise MpvConnectionError(f"timed out connecting to mpv at {path}") from e
        except OSError as e:
            raise MpvConnectionError(f"cannot connect to mpv at {path}: {e}") from e
        logger.info("Connected to mpv at %s", path)
        return cls(reader, writer, timeout)

    @property
    def closed(self) -> bool:
        return self._closed

    # ── Request / reply ────────────────────────────────────────────────────────

    async def send_command(self, *args):
        """Send one command and return the reply's ``data`` field.

        Raises CommandError if mpv reports an error, MpvConnectionError if the
        socket is gone or no reply arrives within ``self.timeout`` seconds.
        """
        if self._closed:
            raise MpvConnectionError("mpv connection is closed")

        command = list(args)
        request_id = next(self._ids)
        fut = asyncio.get_running_loop().create_future()
        self._pending[request_id] = fut
        payload = json.dumps({"command": command, "request_id": request_id}) + "\n"

        async def _roundtrip():
            self._writer.write(payload.encode("utf-8"))
            await self._writer.drain()
            return await fut

        try:
            reply = await asyncio.wait_for(_roundtrip(), self.timeout)
        except MpvConnectionError:
            raise
        except asyncio.TimeoutError as e:
            raise MpvConnectionError(f"no reply to {command[0]!r} within {self.timeout}s") from e
        except OSError as e:
            raise MpvConnectionError(f"write to mpv failed: {e}") from e
        finally:
            self._pending.pop(request_id, None)

        error = reply.get("error")
        if error not in (None, "success"):
            raise CommandError(command, str(error))
        logger.debug("mpv %s -> %r", command[0], reply.get("data"))
        return reply.get("data")

    # ── Events ─────────────────────────────────────────────────────────────────

    def events(self) -> AsyncIterator[MpvEvent]:
        """Unsolicited events, in arrival order. Can only be iterated once.

        The iterator runs for as long as the connection lives and raises
        MpvConnectionError when it drops.
        """
        if self._events_taken:
            raise RuntimeError("events() can only be consumed once per connection")
        self._events_taken = True
        return self._iter_events()

    async def _iter_events(self):
        while True:
            item = await self._events.get()
            if item is _CLOSED:
                raise MpvConnectionError("mpv connection closed")
            yield item

    # ── Reader ─────────────────────────────────────────────────────────────────

    async def _read_loop(self):
        try:
            while True:
                try:
                    line = await self._reader.readline()
                except ValueError as e:
                    # over-long line; readline already discarded it
                    logger.warning("Skipping IPC line: %s", e)
                    continue
                if not line:
                    break
                if not line.strip():
                    continue
                try:
                    self._dispatch(decode_line(line))
                except ProtocolError as e:
                    logger.warning("Skipping IPC line: %s", e)
        except OSError as e:
            logger.warning("mpv connection error: %s", e)
        finally:
            self._mark_closed()

    def _dispatch(self, obj: dict):
        if "event" in obj:
            self._events.put_nowait(decode_event(obj))
            return
        request_id = obj.get("request_id")
        fut = None
        if isinstance(request_id, int):
            fut = self._pending.pop(request_id, None)
        if fut is None:
            raise ProtocolError(f"reply for unknown request_id {request_id!r}")
        if not fut.done():
            fut.set_result(obj)

    def _mark_closed(self):
        if self._closed:
            return
        self._closed = True
        logger.info("mpv connection closed")
        for fut in self._pending.values():
            if not fut.done():
                fut.set_exception(MpvConnectionError("mpv connection closed"))
        self._pending.clear()
        self._events.put_nowait(_CLOSED)

    async def close(self):
        if not self._reader_task.done():
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError:
            pass
        self._mark_closed()

    # ── Commands ───────────────────────────────────────────────────────────────

    async def loadfile(self, url: str, mode: str = "replace"):
        # one song in mpv at a time
        return await self.send_command("loadfile", url, mode)

    async def play(self):
        return await self.send_command("set_property", "pause", False)

    async def pause(self):
        return await self.send_command("set_property", "pause", True)

    async def stop(self):
        return await self.send_command("stop")

    async def seek(self, seconds: float, relative: bool = True):
        return await self.send_command("seek", seconds, "relative" if relative else "absolute")

    async def get_property(self, name: str):
        return await self.send_command("get_property", name)

    async def play_song(self, song_id: str) -> str:
        """Load a catalog song and start it. If loadfile fails, play is never sent."""
        url = song_url(song_id)
        await self.loadfile(url)
        await self.play()
        return url
