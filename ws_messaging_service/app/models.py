from pydantic import BaseModel
from typing import Optional

class SenderProfile(BaseModel):
    id: str
    name: Optional[str] = None
    avatar: Optional[str] = None
    stream: Optional[str] = None

class LiveMessage(BaseModel):
    message_id: Optional[str] = None
    conversation_id: Optional[str] = None
    client_id: Optional[str] = None
    sender: str
    recipient: str
    content: str
    created_at: str
    sender_profile: Optional[SenderProfile] = None

class PublishRequest(BaseModel):
    message: LiveMessage
