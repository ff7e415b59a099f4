import asyncio
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool

from message_service.app.dependencies import get_current_user, get_store, get_directory, get_publisher
from message_service.app.errors import StorageError
from message_service.app.models import MessageCreate, MessageOut

logger = logging.getLogger(__name__)

router = APIRouter()

# Save the message to db, point the conversation at it, then push it live
@router.post("/", response_model=MessageOut)
async def create_message(
    data: MessageCreate,
    user: dict = Depends(get_current_user),
    store=Depends(get_store),
    directory=Depends(get_directory),
    publisher=Depends(get_publisher),
):
    sender = user["user_id"]
    recipient = data.to
    if sender == recipient:
        raise HTTPException(status_code=400, detail="Cannot send a message to yourself")
    if not data.content.strip():
        raise HTTPException(status_code=400, detail="Message content cannot be empty")

    sender_profile, recipient_profile = await asyncio.gather(
        directory.get_profile(sender, user["token"]),
        directory.get_profile(recipient, user["token"]),
    )
    if recipient_profile is None:
        raise HTTPException(status_code=400, detail=f"Recipient '{recipient}' does not exist")

    # The conversation exists before the message so its updated_at never runs ahead of it
    conversation = await run_in_threadpool(store.get_or_create, sender, recipient)
    message = await run_in_threadpool(store.send, sender, recipient, data.content, data.client_id)

    try:
        await run_in_threadpool(store.touch, conversation["conversation_id"], message)
    except StorageError:
        # The message is stored; the chat list catches up on the next send
        logger.error(
            "Conversation %s left stale after message %s",
            conversation["conversation_id"], message["message_id"],
        )

    await publisher.publish(message, sender_profile)

    return message

# Get the conversation with the other user
@router.get("/conversations/{other_user}", response_model=List[MessageOut])
async def get_conversation(
    other_user: str,
    after: Optional[str] = None,
    user: dict = Depends(get_current_user),
    store=Depends(get_store),
):
    return await run_in_threadpool(store.history, user["user_id"], other_user, after)
