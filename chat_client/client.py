from chat_client.api import ChatAPI
from chat_client.channel import LiveChannel
from chat_client.conversation_list import ConversationList
from chat_client.errors import ValidationError
from chat_client.session import ChatSession
from chat_client.tracker import LastSeenTracker


class ChatClient:
    """Entry point for a signed-in user: REST client, live channel and last-seen state wired together."""

    def __init__(self, identity, api=None, tracker=None, channel=None):
        self.identity = identity
        self.api = api or ChatAPI(identity)
        self.tracker = tracker or LastSeenTracker(identity.id)
        self.channel = channel if channel is not None else LiveChannel(identity)

    async def list_conversations(self) -> list:
        return self.tracker.mark_unread(await self.api.list_conversations())

    async def open_conversation(self, partner_id: str, on_change=None) -> ChatSession:
        session = ChatSession(self.identity, partner_id, self.api, self.tracker, self.channel, on_change=on_change)
        return await session.open()

    async def send_message(self, partner_id: str, content: str):
        if not content or not content.strip():
            raise ValidationError("Message content cannot be empty")
        return await self.api.send_message(partner_id, content)

    async def clear_conversation(self, partner_id: str) -> int:
        return await self.api.clear_conversation(partner_id)

    async def conversation_list(self, on_notify=None, on_change=None) -> ConversationList:
        chats = ConversationList(self.identity, self.api, self.tracker, self.channel,
                                 on_notify=on_notify, on_change=on_change)
        return await chats.mount()

    async def close(self):
        await self.channel.close()
        await self.api.close()
