"""Channels between the UI loop and the worker — two bounded asyncio queues."""
import asyncio
import logging

from .config import COMMAND_QUEUE_SIZE, MESSAGE_QUEUE_SIZE

logger = logging.getLogger(__name__)


class CommandChannel:
    """UI → worker. Sends never block: a full queue drops the command."""

    def __init__(self, maxsize: int = COMMAND_QUEUE_SIZE):
        self._q: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def try_send(self, command) -> bool:
        try:
            self._q.put_nowait(command)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Command queue full, dropped %r", command)
            return False

    async def recv(self):
        return await self._q.get()

    def drain(self) -> list:
        """Non-blocking drain of all pending commands."""
        cmds = []
        while True:
            try:
                cmds.append(self._q.get_nowait())
            except asyncio.QueueEmpty:
                break
        return cmds


class MessageChannel:
    """Worker → UI. The worker awaits room, so messages are delayed, never lost."""

    def __init__(self, maxsize: int = MESSAGE_QUEUE_SIZE):
        self._q: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    async def send(self, message):
        await self._q.put(message)

    def drain(self) -> list:
        """Non-blocking drain of everything that has arrived so far."""
        msgs = []
        while True:
            try:
                msgs.append(self._q.get_nowait())
            except asyncio.QueueEmpty:
                break
        return msgs

    async def recv(self):
        return await self._q.get()
