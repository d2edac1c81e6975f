import asyncio
import json

import pytest

from conftest import FakeMpv
from jukebox.errors import CommandError, MpvConnectionError, ProtocolError
from jukebox.mpv import (
    MpvClient,
    PlaybackStarted,
    PlaybackStopped,
    Unknown,
    decode_event,
    decode_line,
    song_url,
)


async def next_event(events, timeout: float = 2.0):
    return await asyncio.wait_for(events.__anext__(), timeout)


class TestDecoding:
    """Line and event decoding."""

    def test_decode_line(self):
        assert decode_line(b'{"event": "idle"}\n') == {"event": "idle"}

    def test_decode_line_rejects_garbage(self):
        with pytest.raises(ProtocolError):
            decode_line(b"{not json\n")
        with pytest.raises(ProtocolError):
            decode_line(b"[1, 2]\n")
        with pytest.raises(ProtocolError):
            decode_line(b"\xff\xfe\n")

    def test_decode_event(self):
        assert decode_event({"event": "start-file"}) == PlaybackStarted()
        assert decode_event({"event": "end-file", "reason": "eof"}) == PlaybackStopped("eof")
        assert decode_event({"event": "end-file"}) == PlaybackStopped("")
        unknown = decode_event({"event": "property-change", "name": "pause"})
        assert isinstance(unknown, Unknown)
        assert unknown.raw["name"] == "pause"

    def test_song_url(self):
        assert song_url("dQw4w9WgXcQ") == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


class TestRequests:
    """Commands and their replies."""

    def test_connect_to_missing_socket(self, socket_path):
        async def scenario():
            with pytest.raises(MpvConnectionError):
                await MpvClient.connect(socket_path, timeout=1)

        asyncio.run(scenario())

    def test_send_command_round_trip(self, socket_path):
        async def scenario():
            fake = await FakeMpv(socket_path).start()
            client = await MpvClient.connect(socket_path, timeout=1)
            try:
                assert await client.get_property("pause") is None
                await client.pause()
                await client.seek(-5)
            finally:
                await client.close()
                fake.close()
            return fake.received

        received = asyncio.run(scenario())
        assert received == [
            ["get_property", "pause"],
            ["set_property", "pause", True],
            ["seek", -5, "relative"],
        ]

    def test_replies_matched_by_request_id(self, socket_path):
        """Out-of-order replies still reach the right caller."""
        async def handle(reader, writer):
            first = json.loads(await reader.readline())
            second = json.loads(await reader.readline())
            for req in (second, first):
                reply = {"request_id": req["request_id"], "data": req["command"][1], "error": "success"}
                writer.write((json.dumps(reply) + "\n").encode())
            await writer.drain()
            await reader.read()

        async def scenario():
            server = await asyncio.start_unix_server(handle, path=socket_path)
            client = await MpvClient.connect(socket_path, timeout=1)
            try:
                return await asyncio.gather(
                    client.get_property("volume"),
                    client.get_property("path"),
                )
            finally:
                await client.close()
                server.close()

        assert asyncio.run(scenario()) == ["volume", "path"]

    def test_error_reply_raises_command_error(self, socket_path):
        async def scenario():
            fake = await FakeMpv(socket_path).start()
            fake.errors["loadfile"] = "invalid parameter"
            client = await MpvClient.connect(socket_path, timeout=1)
            try:
                with pytest.raises(CommandError) as exc:
                    await client.loadfile("nope")
                assert exc.value.error == "invalid parameter"
                assert exc.value.command[0] == "loadfile"
            finally:
                await client.close()
                fake.close()

        asyncio.run(scenario())

    def test_no_reply_times_out(self, socket_path):
        async def scenario():
            fake = await FakeMpv(socket_path).start()
            fake.silent.add("stop")
            client = await MpvClient.connect(socket_path, timeout=0.2)
            loop = asyncio.get_running_loop()
            start = loop.time()
            try:
                with pytest.raises(MpvConnectionError):
                    await client.stop()
                assert loop.time() - start < 1.5
                # the connection is still usable afterwards
                await client.play()
            finally:
                await client.close()
                fake.close()

        asyncio.run(scenario())

    def test_play_song_sends_loadfile_then_unpause(self, socket_path):
        async def scenario():
            fake = await FakeMpv(socket_path).start()
            client = await MpvClient.connect(socket_path, timeout=1)
            try:
                url = await client.play_song("abc123")
            finally:
                await client.close()
                fake.close()
            return url, fake.received

        url, received = asyncio.run(scenario())
        assert url == "https://www.youtube.com/watch?v=abc123"
        assert received == [
            ["loadfile", url, "replace"],
            ["set_property", "pause", False],
        ]

    def test_failed_loadfile_skips_play(self, socket_path):
        async def scenario():
            fake = await FakeMpv(socket_path).start()
            fake.errors["loadfile"] = "loading failed"
            client = await MpvClient.connect(socket_path, timeout=1)
            try:
                with pytest.raises(CommandError):
                    await client.play_song("abc123")
            finally:
                await client.close()
                fake.close()
            return fake.received

        received = asyncio.run(scenario())
        assert [c[0] for c in received] == ["loadfile"]

    def test_lost_connection_fails_pending(self, socket_path):
        async def scenario():
            fake = await FakeMpv(socket_path).start()
            fake.silent.add("stop")
            client = await MpvClient.connect(socket_path, timeout=2)
            try:
                pending = asyncio.create_task(client.stop())
                await fake.wait_for_client()
                await asyncio.sleep(0.05)
                fake.close()
                with pytest.raises(MpvConnectionError):
                    await pending
                assert client.closed
                with pytest.raises(MpvConnectionError):
                    await client.play()
            finally:
                await client.close()

        asyncio.run(scenario())


class TestEvents:
    """The unsolicited event stream."""

    def test_events_in_order_skipping_bad_lines(self, socket_path):
        async def scenario():
            fake = await FakeMpv(socket_path).start()
            client = await MpvClient.connect(socket_path, timeout=1)
            events = client.events()
            try:
                await fake.wait_for_client()
                await fake.send({"event": "start-file"})
                await fake.send(b"this is not json\n")
                await fake.send({"request_id": 999, "error": "success"})
                await fake.send({"event": "idle"})
                await fake.send({"event": "end-file", "reason": "eof"})
                return [await next_event(events) for _ in range(3)]
            finally:
                await client.close()
                fake.close()

        got = asyncio.run(scenario())
        assert got[0] == PlaybackStarted()
        assert isinstance(got[1], Unknown)
        assert got[1].raw == {"event": "idle"}
        assert got[2] == PlaybackStopped("eof")

    def test_events_interleaved_with_replies(self, socket_path):
        async def scenario():
            fake = await FakeMpv(socket_path).start()
            client = await MpvClient.connect(socket_path, timeout=1)
            events = client.events()
            try:
                await client.loadfile(song_url("x"))
                return await next_event(events)
            finally:
                await client.close()
                fake.close()

        assert asyncio.run(scenario()) == PlaybackStarted()

    def test_events_only_once(self, socket_path):
        async def scenario():
            fake = await FakeMpv(socket_path).start()
            client = await MpvClient.connect(socket_path, timeout=1)
            try:
                client.events()
                with pytest.raises(RuntimeError):
                    client.events()
            finally:
                await client.close()
                fake.close()

        asyncio.run(scenario())

    def test_events_end_with_connection_error(self, socket_path):
        async def scenario():
            fake = await FakeMpv(socket_path).start()
            client = await MpvClient.connect(socket_path, timeout=1)
            events = client.events()
            try:
                await fake.wait_for_client()
                await fake.send({"event": "end-file", "reason": "quit"})
                fake.close()
                first = await next_event(events)
                with pytest.raises(MpvConnectionError):
                    await next_event(events)
                return first
            finally:
                await client.close()

        assert asyncio.run(scenario()) == PlaybackStopped("quit")
