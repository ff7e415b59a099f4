import asyncio

import pytest

from chat_client.client import ChatClient
from chat_client.errors import ValidationError
from chat_client.session import SessionState


@pytest.fixture
def chat_client(me, api, tracker, channel):
    return ChatClient(me, api=api, tracker=tracker, channel=channel)


def test_list_conversations_flags_unread(chat_client, api):
    api.store("u1", "u2", "Is this available?")

    (entry,) = asyncio.run(chat_client.list_conversations())

    assert entry.other_user.id == "u1"
    assert entry.unread is True


def test_open_conversation_marks_seen(chat_client, api):
    api.store("u1", "u2", "Is this available?")

    async def scenario():
        session = await chat_client.open_conversation("u1")
        return session, await chat_client.list_conversations()

    session, (entry,) = asyncio.run(scenario())

    assert session.state == SessionState.READY
    assert entry.unread is False


def test_send_message_without_session(chat_client, api):
    saved = asyncio.run(chat_client.send_message("u1", "Picked it up, thanks"))

    assert saved.sender == "u2"
    assert api.messages[-1].content == "Picked it up, thanks"


def test_send_message_rejects_blank(chat_client, api):
    with pytest.raises(ValidationError):
        asyncio.run(chat_client.send_message("u1", "\n "))
    assert api.messages == []


def test_clear_conversation(chat_client, api):
    api.store("u1", "u2", "one")
    api.store("u3", "u2", "other chat")

    assert asyncio.run(chat_client.clear_conversation("u1")) == 1
    assert [m.content for m in api.messages] == ["other chat"]


def test_conversation_list_and_close(chat_client, api, channel):
    api.store("u3", "u2", "hello")

    async def scenario():
        chats = await chat_client.conversation_list()
        await chat_client.close()
        return chats

    chats = asyncio.run(scenario())

    assert [e.other_user.id for e in chats.entries] == ["u3"]
    assert channel.closed and api.closed
