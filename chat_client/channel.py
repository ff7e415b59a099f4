"""
Client side of the live delivery channel.

One WebSocket per identity, joined to the user's private channel on the
WebSocket service. Events are best effort: anything missed while the socket
is down has to be picked up from the REST history, which is why reconnect
listeners exist.
"""
import asyncio
import logging

import aiohttp

from chat_client.config import CHAT_WS_URL, CHANNEL_RECONNECT_MAX_DELAY, CHANNEL_HEARTBEAT
from chat_client.errors import ChannelError
from chat_client.models import Identity, LiveEvent

logger = logging.getLogger(__name__)


class LiveChannel:
    def __init__(self, identity: Identity, url: str = CHAT_WS_URL,
                 max_delay: float = CHANNEL_RECONNECT_MAX_DELAY, heartbeat: float = CHANNEL_HEARTBEAT):
        self.identity = identity
        self.url = url
        self.max_delay = max_delay
        self.heartbeat = heartbeat
        self.connected = False
        self._listeners = []
        self._reconnect_listeners = []
        self._task = None
        self._closed = False

    def subscribe(self, callback):
        """Register ``callback(event)`` for live events; returns the unsubscribe function."""
        self._listeners.append(callback)
        return lambda: self._remove(self._listeners, callback)

    def on_reconnect(self, callback):
        self._reconnect_listeners.append(callback)
        return lambda: self._remove(self._reconnect_listeners, callback)

    @staticmethod
    def _remove(listeners, callback):
        if callback in listeners:
            listeners.remove(callback)

    def start(self):
        if self._closed:
            raise ChannelError("Channel already closed")
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def close(self):
        self._closed = True
        self._listeners.clear()
        self._reconnect_listeners.clear()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.connected = False

    async def _run(self):
        delay = 1.0
        attempts = 0
        async with aiohttp.ClientSession() as session:
            while not self._closed:
                try:
                    await self._listen(session, reconnecting=attempts > 0)
                    delay = 1.0
                except ChannelError as e:
                    logger.warning("Live channel error: %s", e)
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    logger.warning("Live channel connection failed: %s", e)
                self.connected = False
                attempts += 1
                if self._closed:
                    break
                logger.info("Reconnecting live channel in %.1fs", delay)
                await asyncio.sleep(delay)
                delay = min(delay * 2, self.max_delay)

    async def _listen(self, session, reconnecting: bool):
        async with session.ws_connect(self.url, params={"token": self.identity.token}, heartbeat=self.heartbeat) as ws:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    try:
                        frame = msg.json()
                    except ValueError as e:
                        logger.warning("Ignoring undecodable live frame: %s", e)
                        continue
                    self.handle_frame(frame, reconnecting)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    raise ChannelError(f"Socket error: {ws.exception()}")

    def handle_frame(self, frame: dict, reconnecting: bool = False):
        if not isinstance(frame, dict):
            logger.warning("Ignoring live frame that is not an object: %r", frame)
            return
        kind = frame.get("type")
        if kind == "info":
            self.connected = True
            logger.info("Live channel joined: %s", frame.get("detail"))
            if reconnecting:
                self._notify(self._reconnect_listeners)
        elif kind == "error":
            raise ChannelError(frame.get("detail", "Channel rejected the connection"))
        elif kind == "message":
            try:
                event = LiveEvent.from_frame(frame)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Ignoring malformed live event: %s", e)
                return
            self._notify(self._listeners, event)

    @staticmethod
    def _notify(listeners, *args):
        for callback in list(listeners):
            try:
                callback(*args)
            except Exception:
                # A broken consumer must not take the channel down for the others
                logger.exception("Live channel listener failed")
