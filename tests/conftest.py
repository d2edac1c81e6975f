import asyncio
import json
import tempfile
from pathlib import Path

import httpx
import pytest

from jukebox.catalog import CatalogClient
from jukebox.channel import CommandChannel
from jukebox.models import SongEntry


class FakeMpv:
    """A tiny stand-in for mpv's JSON IPC server on a unix socket.

    Every command is recorded in `received` and answered with success,
    unless its name is in `errors` (answered with that error string) or in
    `silent` (never answered). A successful loadfile is followed by a
    start-file event, like the real thing.
    """

    def __init__(self, path):
        self.path = str(path)
        self.received = []
        self.errors = {}
        self.silent = set()
        self._writers = []
        self._server = None

    async def start(self):
        self._server = await asyncio.start_unix_server(self._handle, path=self.path)
        return self

    async def _handle(self, reader, writer):
        self._writers.append(writer)
        while True:
            line = await reader.readline()
            if not line:
                break
            req = json.loads(line)
            name = req["command"][0]
            self.received.append(req["command"])
            if name in self.silent:
                continue
            error = self.errors.get(name, "success")
            await self.send({"request_id": req["request_id"], "data": None, "error": error})
            if name == "loadfile" and error == "success":
                await self.send({"event": "start-file", "playlist_entry_id": 1})
        writer.close()

    async def send(self, obj):
        """Push one JSON object (or raw bytes) to every connected client."""
        data = obj if isinstance(obj, bytes) else (json.dumps(obj) + "\n").encode()
        for w in self._writers:
            w.write(data)
            await w.drain()

    async def wait_for_client(self, timeout: float = 2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not self._writers:
            if loop.time() > deadline:
                raise TimeoutError("no client connected to fake mpv")
            await asyncio.sleep(0.01)

    def commands_named(self, name: str) -> list:
        return [c for c in self.received if c[0] == name]

    def close(self):
        for w in self._writers:
            w.close()
        if self._server is not None:
            self._server.close()


@pytest.fixture(autouse=True)
def isolated_error_log(tmp_path, monkeypatch):
    """Keep format_error from writing into the real data directory."""
    from jukebox import errors
    monkeypatch.setattr(errors, "DATA_DIR", tmp_path)
    monkeypatch.setattr(errors, "ERRORS_LOG", tmp_path / "errors.log")
    monkeypatch.setattr(errors, "DEV_MODE", False)
    return tmp_path / "errors.log"


@pytest.fixture
def socket_path():
    """Short socket path; unix socket paths are limited to ~100 bytes."""
    with tempfile.TemporaryDirectory(prefix="jb") as tmpdir:
        yield str(Path(tmpdir) / "mpv.sock")


@pytest.fixture
def songs():
    return [
        SongEntry("aaa", "Lofi Beats To Study To", "Lofi Girl", 3600.0),
        SongEntry("bbb", "Rainy Night Jazz", "Cafe Music"),
        SongEntry("ccc", "Synthwave Drive", "NewRetroWave", 245.0),
    ]


@pytest.fixture
def commands():
    return CommandChannel(maxsize=64)


def search_payload(*ids, next_page=None) -> dict:
    items = [
        {
            "kind": "youtube#searchResult",
            "id": {"kind": "youtube#video", "videoId": vid},
            "snippet": {"title": f"Song {vid}", "channelTitle": f"Channel {vid}"},
        }
        for vid in ids
    ]
    data = {"kind": "youtube#searchListResponse", "items": items}
    if next_page:
        data["nextPageToken"] = next_page
    return data


def make_catalog(handler, api_key: str = "test-key") -> CatalogClient:
    return CatalogClient(
        api_key=api_key,
        host="https://yt.test/youtube/v3",
        timeout=2,
        page_size=50,
        transport=httpx.MockTransport(handler),
    )
