from enum import Enum
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class Identity(BaseModel):
    id: str
    token: str

    @property
    def authorization(self) -> str:
        return f"Bearer {self.token}"


class UserProfile(BaseModel):
    id: str
    name: Optional[str] = None
    avatar: Optional[str] = None
    stream: Optional[str] = None


class SendStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class ChatMessage(BaseModel):
    sender: str
    recipient: str
    content: str
    created_at: datetime
    message_id: Optional[str] = None
    client_id: Optional[str] = None
    status: SendStatus = SendStatus.SENT

    def same_as(self, other: "ChatMessage") -> bool:
        """
        Whether two copies describe the same message.

        Durable ids win, then the client id the sender attached, and only
        for copies carrying neither the (sender, content, created_at) triple.
        """
        if self.message_id and other.message_id:
            return self.message_id == other.message_id
        if self.client_id and other.client_id:
            return self.client_id == other.client_id
        return (self.sender, self.content, self.created_at) == (other.sender, other.content, other.created_at)

    def involves(self, user_a: str, user_b: str) -> bool:
        return {self.sender, self.recipient} == {user_a, user_b}


class ConversationEntry(BaseModel):
    conversation_id: Optional[str] = None
    other_user: UserProfile
    last_message_text: Optional[str] = None
    last_activity_at: datetime
    unread: bool = False


class LiveEvent(BaseModel):
    message: ChatMessage
    sender_profile: Optional[UserProfile] = None

    @classmethod
    def from_frame(cls, frame: dict) -> "LiveEvent":
        data = dict(frame["message"])
        profile = data.pop("sender_profile", None)
        return cls(message=ChatMessage(**data), sender_profile=profile)
