import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer as AppServer

from chat_client.channel import LiveChannel
from chat_client.errors import ChannelError

FRAME = {
    "type": "message",
    "message": {
        "message_id": "m-1",
        "conversation_id": "u1#u2",
        "client_id": "c-1",
        "sender": "u1",
        "recipient": "u2",
        "content": "Is this available?",
        "created_at": "2026-10-18T12:00:00.000000+00:00",
        "sender_profile": {"id": "u1", "name": "Asha Rao", "avatar": None, "stream": "CSE"},
    },
}


@pytest.fixture
def live(me):
    return LiveChannel(me, url="ws://localhost:1/ws")


def test_message_frame_reaches_listeners(live):
    events = []
    live.subscribe(events.append)

    live.handle_frame(FRAME)

    (event,) = events
    assert event.message.message_id == "m-1"
    assert event.message.created_at.year == 2026
    assert event.sender_profile.name == "Asha Rao"


def test_unsubscribe_stops_delivery(live):
    events = []
    unsubscribe = live.subscribe(events.append)
    unsubscribe()
    unsubscribe()

    live.handle_frame(FRAME)

    assert events == []


def test_info_frame_marks_connected(live):
    rejoined = []
    live.on_reconnect(lambda: rejoined.append(True))

    live.handle_frame({"type": "info", "detail": "Connected as u2"})
    assert live.connected and rejoined == []

    live.handle_frame({"type": "info", "detail": "Connected as u2"}, reconnecting=True)
    assert rejoined == [True]


def test_error_frame_raises(live):
    with pytest.raises(ChannelError, match="Authentication failed"):
        live.handle_frame({"type": "error", "detail": "Authentication failed"})


def test_malformed_event_is_skipped(live):
    events = []
    live.subscribe(events.append)

    live.handle_frame({"type": "message", "message": {"sender": "u1"}})
    live.handle_frame({"type": "message"})
    live.handle_frame({"type": "pong"})

    assert events == []


def test_broken_listener_does_not_starve_others(live):
    def broken(event):
        raise RuntimeError("boom")

    events = []
    live.subscribe(broken)
    live.subscribe(events.append)

    live.handle_frame(FRAME)

    assert len(events) == 1


def test_start_after_close_fails(live):
    async def scenario():
        await live.close()
        live.start()

    with pytest.raises(ChannelError):
        asyncio.run(scenario())


def test_close_cancels_reconnect_loop(live):
    async def scenario():
        live.start()
        await asyncio.sleep(0)
        await live.close()

    asyncio.run(scenario())

    assert live._task is None
    assert live.connected is False


def test_non_object_frames_are_skipped(live):
    live.handle_frame(["not", "an", "object"])
    live.handle_frame({"type": "message", "message": "text"})

    assert live.connected is False


def test_bad_frames_over_socket_do_not_stop_reconnects(me):
    """The first connection sends garbage and a message, then drops; the channel comes back."""
    connections = []

    async def handler(request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        connections.append(request.query.get("token"))
        await ws.send_str("not json")
        await ws.send_str("[1, 2]")
        await ws.send_json({"type": "info", "detail": "Connected as u2"})
        if len(connections) == 1:
            await ws.send_json(FRAME)
            await ws.close()
        else:
            async for _ in ws:
                pass
        return ws

    async def scenario():
        app = web.Application()
        app.router.add_get("/ws", handler)
        server = AppServer(app)
        await server.start_server()

        events, rejoined = [], asyncio.Event()
        channel = LiveChannel(me, url=str(server.make_url("/ws")), max_delay=1)
        channel.subscribe(events.append)
        channel.on_reconnect(rejoined.set)
        try:
            channel.start()
            await asyncio.wait_for(rejoined.wait(), timeout=5)
            return events, channel.connected, channel._task.done()
        finally:
            await channel.close()
            await server.close()

    events, connected, task_done = asyncio.run(scenario())

    assert connections == ["token-u2", "token-u2"]
    assert [e.message.message_id for e in events] == ["m-1"]
    assert connected is True
    assert task_done is False
