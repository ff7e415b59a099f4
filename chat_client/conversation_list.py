import asyncio
import logging

from chat_client.errors import ChannelError, ChatError
from chat_client.models import ConversationEntry, UserProfile

logger = logging.getLogger(__name__)


class ConversationList:
    """
    All of a user's chats, newest first, with client-computed unread flags.

    Live events from other users move their chat to the top and flag it
    unread; a reconnect of the channel reloads the whole list, since events
    sent while the socket was down are gone.
    """

    def __init__(self, identity, api, tracker, channel=None, on_notify=None, on_change=None):
        self.identity = identity
        self.api = api
        self.tracker = tracker
        self.channel = channel
        self.on_notify = on_notify
        self.on_change = on_change
        self.entries = []
        self.search_results = []
        self.closed = False
        self._subscriptions = []
        self._reload_task = None

    async def mount(self):
        self.start()
        await self.load()
        return self

    def start(self):
        if self.channel is None or self._subscriptions:
            return
        try:
            self._subscriptions = [
                self.channel.subscribe(self._on_event),
                self.channel.on_reconnect(self._on_reconnect),
            ]
            self.channel.start()
        except ChannelError as e:
            logger.warning("Chat list will not update live: %s", e)

    async def load(self):
        entries = await self.api.list_conversations()
        if self.closed:
            return
        self.entries = self.tracker.mark_unread(entries)
        self._changed()

    def find(self, partner_id: str):
        return next((e for e in self.entries if e.other_user.id == partner_id), None)

    @property
    def unread_count(self) -> int:
        return sum(1 for e in self.entries if e.unread)

    async def search(self, query: str) -> list:
        query = (query or "").strip()
        if not query:
            self.search_results = []
            return []
        results = await self.api.search_users(query)
        if not self.closed:
            self.search_results = results
        return results

    async def open_chat(self, partner_id: str) -> ConversationEntry:
        """Get or create the chat with ``partner_id`` and mark it seen."""
        entry = await self.api.access_chat(partner_id)
        self.tracker.record_seen(partner_id)
        if self.closed:
            return entry

        existing = self.find(partner_id)
        if existing is not None:
            existing.unread = False
            entry = existing
        else:
            entry.unread = False
            self.entries.insert(0, entry)
        self._changed()
        return entry

    def close(self):
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []
        if self._reload_task is not None:
            self._reload_task.cancel()
            self._reload_task = None
        self.closed = True

    def _on_event(self, event):
        if self.closed:
            return
        message = event.message
        if message.sender == self.identity.id or message.recipient != self.identity.id:
            return

        entry = self.find(message.sender)
        if entry is not None:
            self.entries.remove(entry)
        else:
            profile = event.sender_profile or UserProfile(id=message.sender)
            entry = ConversationEntry(
                other_user=profile,
                last_activity_at=message.created_at,
            )

        entry.last_message_text = message.content
        entry.last_activity_at = message.created_at
        entry.unread = True
        self.entries.insert(0, entry)
        self._changed()

        if self.on_notify is not None:
            self.on_notify(event)

    def _on_reconnect(self):
        if self.closed:
            return
        if self._reload_task is not None and not self._reload_task.done():
            return
        self._reload_task = asyncio.get_running_loop().create_task(self._reload())

    async def _reload(self):
        try:
            await self.load()
        except ChatError as e:
            logger.warning("Reloading chat list after reconnect failed: %s", e)

    def _changed(self):
        if self.on_change is not None:
            self.on_change(self)
