import asyncio
import logging

import aiohttp

from chat_client.config import CHAT_API_URL, USERS_API_URL, REQUEST_TIMEOUT
from chat_client.errors import AuthError, StorageError, ValidationError
from chat_client.models import ChatMessage, ConversationEntry, Identity, UserProfile

logger = logging.getLogger(__name__)


def error_for_status(status: int, detail: str):
    if status in (401, 403):
        return AuthError(detail or "Session expired")
    if status in (400, 404, 422):
        return ValidationError(detail or "Request rejected")
    return StorageError(detail or f"Server error {status}")


async def _detail(resp) -> str:
    try:
        body = await resp.json()
    except (aiohttp.ContentTypeError, ValueError):
        return await resp.text()
    detail = body.get("detail") if isinstance(body, dict) else body
    return detail if isinstance(detail, str) else str(detail)


class ChatAPI:
    """REST client for the message and user services, bound to one identity."""

    def __init__(self, identity: Identity, base_url: str = CHAT_API_URL, users_url: str = USERS_API_URL,
                 session: aiohttp.ClientSession = None):
        self.identity = identity
        self.base_url = base_url.rstrip("/")
        self.users_url = users_url.rstrip("/")
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def close(self):
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT))
        return self._session

    async def _request(self, method: str, url: str, **kwargs):
        headers = {"Authorization": self.identity.authorization}
        try:
            async with self._get_session().request(method, url, headers=headers, **kwargs) as resp:
                if resp.status >= 400:
                    raise error_for_status(resp.status, await _detail(resp))
                return await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise StorageError(f"Could not reach {url}") from e

    async def list_conversations(self) -> list:
        data = await self._request("GET", f"{self.base_url}/chats/")
        return [ConversationEntry(**entry) for entry in data]

    async def access_chat(self, partner_id: str) -> ConversationEntry:
        data = await self._request("POST", f"{self.base_url}/chats/", json={"user_id": partner_id})
        return ConversationEntry(**data)

    async def open_conversation(self, partner_id: str):
        data = await self._request("GET", f"{self.base_url}/chats/{partner_id}")
        return UserProfile(**data["receiver"]), [ChatMessage(**m) for m in data["messages"]]

    async def history(self, partner_id: str, after=None) -> list:
        params = {"after": after.isoformat()} if after else None
        data = await self._request("GET", f"{self.base_url}/messages/conversations/{partner_id}", params=params)
        return [ChatMessage(**m) for m in data]

    async def send_message(self, partner_id: str, content: str, client_id: str = None) -> ChatMessage:
        payload = {"to": partner_id, "content": content, "client_id": client_id}
        data = await self._request("POST", f"{self.base_url}/messages/", json=payload)
        return ChatMessage(**data)

    async def clear_conversation(self, partner_id: str) -> int:
        data = await self._request("DELETE", f"{self.base_url}/chats/{partner_id}/messages")
        return data["deleted"]

    async def get_profile(self, user_id: str) -> UserProfile:
        data = await self._request("GET", f"{self.users_url}/users/{user_id}")
        return UserProfile(**data["user"])

    async def search_users(self, query: str) -> list:
        data = await self._request("GET", f"{self.users_url}/users/search", params={"q": query})
        return [UserProfile(**u) for u in data["users"]]
