from typing import List
from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool

from message_service.app.dependencies import get_current_user, get_store, get_directory
from message_service.app.directory import placeholder_profile
from message_service.app.models import ChatAccess, ChatOut, ClearOut, ConversationOut
from message_service.app.store import other_participant

router = APIRouter()

# Shape a stored conversation for the user looking at it
def conversation_entry(conversation: dict, user_id: str, profiles: dict) -> dict:
    partner_id = other_participant(conversation, user_id)
    last_message = conversation.get("last_message")
    return {
        "conversation_id": conversation["conversation_id"],
        "other_user": profiles.get(partner_id) or placeholder_profile(partner_id),
        "last_message": last_message,
        "last_message_text": last_message["content"] if last_message else None,
        "last_activity_at": conversation["updated_at"],
    }

# Get all chats for logged in user, most recent first
@router.get("/", response_model=List[ConversationOut])
async def list_chats(user: dict = Depends(get_current_user), store=Depends(get_store), directory=Depends(get_directory)):
    user_id = user["user_id"]
    conversations = await run_in_threadpool(store.list_for, user_id)
    if not conversations:
        return []

    profiles = await directory.get_profiles(
        [other_participant(c, user_id) for c in conversations], user["token"]
    )
    return [conversation_entry(c, user_id, profiles) for c in conversations]

# Create or get chat between two users
@router.post("/", response_model=ConversationOut)
async def access_chat(
    data: ChatAccess,
    user: dict = Depends(get_current_user),
    store=Depends(get_store),
    directory=Depends(get_directory),
):
    user_id = user["user_id"]
    if data.user_id == user_id:
        raise HTTPException(status_code=400, detail="Cannot open a chat with yourself")

    profile = await directory.get_profile(data.user_id, user["token"])
    if profile is None:
        raise HTTPException(status_code=404, detail="User not found")

    conversation = await run_in_threadpool(store.get_or_create, user_id, data.user_id)
    return conversation_entry(conversation, user_id, {data.user_id: profile})

# Get the other user's profile together with the full message history
@router.get("/{partner_id}", response_model=ChatOut)
async def open_chat(
    partner_id: str,
    user: dict = Depends(get_current_user),
    store=Depends(get_store),
    directory=Depends(get_directory),
):
    profile = await directory.get_profile(partner_id, user["token"])
    if profile is None:
        raise HTTPException(status_code=404, detail="User not found")

    messages = await run_in_threadpool(store.history, user["user_id"], partner_id)
    return {"receiver": profile, "messages": messages}

# Delete every message between the two users, the chat itself stays
@router.delete("/{partner_id}/messages", response_model=ClearOut)
async def clear_chat(partner_id: str, user: dict = Depends(get_current_user), store=Depends(get_store)):
    if partner_id == user["user_id"]:
        raise HTTPException(status_code=400, detail="Cannot clear a chat with yourself")

    deleted = await run_in_threadpool(store.clear, user["user_id"], partner_id)
    return {"deleted": deleted}
