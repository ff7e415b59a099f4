import uuid
from datetime import datetime, timedelta, timezone

import pytest

from chat_client.errors import StorageError
from chat_client.models import ChatMessage, ConversationEntry, Identity, LiveEvent, UserProfile
from chat_client.tracker import LastSeenTracker

START = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


class FakeAPI:
    """In-memory stand-in for ChatAPI holding messages for every pair."""

    def __init__(self, identity):
        self.identity = identity
        self.messages = []
        self.profiles = {
            "u1": UserProfile(id="u1", name="Asha Rao", stream="CSE"),
            "u2": UserProfile(id="u2", name="Ben Thomas", stream="ECE"),
            "u3": UserProfile(id="u3", name="Chitra"),
        }
        self.conversations = {}
        self.fail_sends = 0
        self.clock = START
        self.closed = False

    def tick(self):
        self.clock += timedelta(seconds=1)
        return self.clock

    def store(self, sender, recipient, content, client_id=None):
        message = ChatMessage(
            sender=sender, recipient=recipient, content=content, created_at=self.tick(),
            message_id=str(uuid.uuid4()), client_id=client_id,
        )
        self.messages.append(message)
        self.conversations[frozenset((sender, recipient))] = message
        return message

    async def open_conversation(self, partner_id):
        return self.profiles[partner_id], await self.history(partner_id)

    async def history(self, partner_id, after=None):
        return [m.model_copy() for m in self.messages if m.involves(self.identity.id, partner_id)]

    async def send_message(self, partner_id, content, client_id=None):
        if self.fail_sends:
            self.fail_sends -= 1
            raise StorageError("Storage unavailable")
        return self.store(self.identity.id, partner_id, content, client_id).model_copy()

    async def clear_conversation(self, partner_id):
        before = len(self.messages)
        self.messages = [m for m in self.messages if not m.involves(self.identity.id, partner_id)]
        return before - len(self.messages)

    async def list_conversations(self):
        entries = []
        for pair, last in self.conversations.items():
            (partner_id,) = pair - {self.identity.id}
            entries.append(ConversationEntry(
                conversation_id="#".join(sorted(pair)),
                other_user=self.profiles[partner_id],
                last_message_text=last.content if last else None,
                last_activity_at=last.created_at if last else START,
            ))
        return sorted(entries, key=lambda e: e.last_activity_at, reverse=True)

    async def access_chat(self, partner_id):
        pair = frozenset((self.identity.id, partner_id))
        self.conversations.setdefault(pair, None)
        return ConversationEntry(
            conversation_id="#".join(sorted(pair)),
            other_user=self.profiles[partner_id],
            last_activity_at=self.tick(),
        )

    async def search_users(self, query):
        query = query.lower()
        return [p for uid, p in self.profiles.items() if uid != self.identity.id and query in (p.name or "").lower()]

    async def close(self):
        self.closed = True


class FakeChannel:
    def __init__(self):
        self.listeners = []
        self.reconnect_listeners = []
        self.started = False
        self.closed = False

    def subscribe(self, callback):
        self.listeners.append(callback)
        return lambda: callback in self.listeners and self.listeners.remove(callback)

    def on_reconnect(self, callback):
        self.reconnect_listeners.append(callback)
        return lambda: callback in self.reconnect_listeners and self.reconnect_listeners.remove(callback)

    def start(self):
        self.started = True

    def deliver(self, message, sender_profile=None):
        event = LiveEvent(message=message, sender_profile=sender_profile)
        for callback in list(self.listeners):
            callback(event)

    def reconnect(self):
        for callback in list(self.reconnect_listeners):
            callback()

    async def close(self):
        self.closed = True
        self.listeners.clear()
        self.reconnect_listeners.clear()


@pytest.fixture
def me():
    return Identity(id="u2", token="token-u2")


@pytest.fixture
def api(me):
    return FakeAPI(me)


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def tracker(me, tmp_path):
    return LastSeenTracker(me.id, state_dir=tmp_path)
