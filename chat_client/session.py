"""
Controller for one open conversation.

Lifecycle: LOADING -> READY -> (SENDING | RECEIVING)* -> CLOSED.

Sends are optimistic: the message is shown as PENDING right away and
swapped for the stored copy once the message service confirms it. A send
that fails stays in the list marked FAILED and can be retried with
``retry``; the same client id is reused so the copies can be matched up.
"""
import uuid
import asyncio
import logging
from enum import Enum
from datetime import datetime, timezone

from chat_client.errors import ChannelError, ChatError, ValidationError
from chat_client.models import ChatMessage, SendStatus

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    SENDING = "sending"
    RECEIVING = "receiving"
    CLOSED = "closed"


class ChatSession:
    def __init__(self, identity, partner_id: str, api, tracker, channel=None, on_change=None):
        self.identity = identity
        self.partner_id = partner_id
        self.api = api
        self.tracker = tracker
        self.channel = channel
        self.on_change = on_change
        self.partner = None
        self.messages = []
        self.state = SessionState.LOADING
        self.live = False
        self._subscriptions = []
        self._refresh_task = None

    @property
    def closed(self) -> bool:
        return self.state == SessionState.CLOSED

    async def open(self):
        """Load the partner profile and history, join live updates, mark the chat seen."""
        if not self.partner_id or self.partner_id == self.identity.id:
            raise ValidationError("Cannot open a chat with yourself")

        # Subscribe before loading so nothing sent meanwhile slips between the two
        self._subscribe()
        try:
            partner, history = await self.api.open_conversation(self.partner_id)
        except ChatError:
            self._release()
            raise
        if self.closed:
            return self
        self.tracker.record_seen(self.partner_id)
        self.partner = partner
        self._merge(history)
        self.state = SessionState.READY
        self._changed()
        return self

    def _subscribe(self):
        if self.channel is None or self._subscriptions:
            return
        try:
            self._subscriptions = [
                self.channel.subscribe(self._on_event),
                self.channel.on_reconnect(self._on_reconnect),
            ]
            self.channel.start()
            self.live = True
        except ChannelError as e:
            # History still works; the chat just won't update by itself
            logger.warning("Live updates unavailable for chat with %s: %s", self.partner_id, e)
            self._release()

    def _release(self):
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []
        self.live = False
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None

    async def refresh(self):
        history = await self.api.history(self.partner_id)
        if self.closed:
            return
        self._merge(history)
        self._changed()

    async def send(self, text: str) -> ChatMessage:
        self._ensure_open()
        if not text or not text.strip():
            raise ValidationError("Message content cannot be empty")

        entry = ChatMessage(
            sender=self.identity.id,
            recipient=self.partner_id,
            content=text,
            created_at=datetime.now(timezone.utc),
            client_id=str(uuid.uuid4()),
            status=SendStatus.PENDING,
        )
        self.messages.append(entry)
        self._changed()
        return await self._deliver(entry)

    async def retry(self, client_id: str) -> ChatMessage:
        self._ensure_open()
        entry = next((m for m in self.messages if m.client_id == client_id), None)
        if entry is None or entry.status != SendStatus.FAILED:
            raise ValidationError("No failed message to retry")

        entry.status = SendStatus.PENDING
        self._changed()
        return await self._deliver(entry)

    async def _deliver(self, entry: ChatMessage) -> ChatMessage:
        self.state = SessionState.SENDING
        try:
            saved = await self.api.send_message(self.partner_id, entry.content, entry.client_id)
        except ChatError:
            if not self.closed:
                entry.status = SendStatus.FAILED
                self.state = SessionState.READY
                self._changed()
            raise

        if self.closed:
            return saved
        saved = saved.model_copy(update={"status": SendStatus.SENT})
        self.messages = [saved if m is entry else m for m in self.messages]
        self._merge([])
        self.state = SessionState.READY
        self._changed()
        return saved

    async def clear(self) -> int:
        """Delete the stored history with the partner; unsent local entries stay."""
        self._ensure_open()
        deleted = await self.api.clear_conversation(self.partner_id)
        if not self.closed:
            self.messages = [m for m in self.messages if m.status != SendStatus.SENT]
            self._changed()
        return deleted

    def close(self):
        self._release()
        self.state = SessionState.CLOSED

    def _on_reconnect(self):
        # Events sent while the socket was down are gone, fetch them instead
        if self.state in (SessionState.LOADING, SessionState.CLOSED):
            return
        if self._refresh_task is not None and not self._refresh_task.done():
            return
        self._refresh_task = asyncio.get_running_loop().create_task(self._refresh_after_reconnect())

    async def _refresh_after_reconnect(self):
        try:
            await self.refresh()
        except ChatError as e:
            logger.warning("Refreshing chat with %s after reconnect failed: %s", self.partner_id, e)

    def _on_event(self, event):
        if self.closed:
            return
        message = event.message
        # Our own sends are already in the list
        if message.sender == self.identity.id:
            return
        if not message.involves(self.identity.id, self.partner_id):
            return

        previous = self.state
        self.state = SessionState.RECEIVING
        self._merge([message])
        self.state = previous
        self._changed()

    def _merge(self, incoming):
        for message in incoming:
            for i, existing in enumerate(self.messages):
                if existing.same_as(message):
                    # Prefer the copy that carries the durable id
                    if existing.message_id is None and message.message_id is not None:
                        self.messages[i] = message
                    break
            else:
                self.messages.append(message)
        self.messages.sort(key=lambda m: m.created_at)

    def _ensure_open(self):
        if self.state in (SessionState.LOADING, SessionState.CLOSED):
            raise ValidationError(f"Chat with {self.partner_id} is {self.state.value}")

    def _changed(self):
        if self.on_change is not None:
            self.on_change(self)
