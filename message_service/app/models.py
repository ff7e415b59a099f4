from pydantic import BaseModel
from typing import List, Optional

class MessageCreate(BaseModel):
    to: str
    content: str
    client_id: Optional[str] = None

class MessageOut(BaseModel):
    message_id: str
    conversation_id: str
    sender: str
    recipient: str
    content: str
    created_at: str
    client_id: Optional[str] = None

class ChatAccess(BaseModel):
    user_id: str

class UserProfile(BaseModel):
    id: str
    name: Optional[str] = None
    avatar: Optional[str] = None
    stream: Optional[str] = None

class ConversationOut(BaseModel):
    conversation_id: str
    other_user: UserProfile
    last_message_text: Optional[str] = None
    last_message: Optional[MessageOut] = None
    last_activity_at: str

class ChatOut(BaseModel):
    receiver: UserProfile
    messages: List[MessageOut]

class ClearOut(BaseModel):
    deleted: int
