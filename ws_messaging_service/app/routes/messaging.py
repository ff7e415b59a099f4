import aiohttp
import os
import logging
from dotenv import load_dotenv
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, HTTPException, Header
from ws_messaging_service.app.connections import manager
from ws_messaging_service.app.models import PublishRequest

load_dotenv()

AUTH_PATH = os.getenv("AUTH_PATH")
INTERNAL_TOKEN = os.getenv("INTERNAL_TOKEN", "")

logger = logging.getLogger(__name__)

router = APIRouter()

# Call auth service to verify user token
async def verify_token(token: str):
    if not token:
        raise HTTPException(status_code=401, detail="Missing token")
    async with aiohttp.ClientSession() as session:
        async with session.get(AUTH_PATH, headers={"Authorization": f"Bearer {token}"}) as resp: # type: ignore
            if resp.status != 200:
                raise HTTPException(status_code=401, detail="Invalid token")
            return await resp.json()

# WS route that authenticates the user and joins the private channel keyed by the user id
# Messages are not sent over the socket, they are saved through the message service
# which publishes them back here; the socket only carries live events and keepalives
@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    token = websocket.query_params.get("token")
    if not token:
        await websocket.accept()
        await websocket.send_json({"type": "error", "detail": "Missing token"})
        await websocket.close(code=1008)
        return

    try:
        user = await verify_token(token)
    except HTTPException:
        await websocket.accept()
        await websocket.send_json({"type": "error", "detail": "Authentication failed"})
        await websocket.close(code=1008)
        return

    await websocket.accept()

    user_id = user["user_id"]
    manager.connect(user_id, websocket)

    await websocket.send_json({"type": "info", "detail": f"Connected as {user_id}"})

    try:
        while True:
            try:
                msg = await websocket.receive_json()
            except ValueError:
                msg = None
            if isinstance(msg, dict) and msg.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
                continue

            await websocket.send_json({"type": "error", "detail": "Invalid message type"})
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(user_id, websocket)

# Fan a saved message out to the receiver's and the sender's channels
# Whoever is offline misses it and picks it up from the history later
@router.post("/publish")
async def publish(data: PublishRequest, x_internal_token: str = Header("")):
    if not INTERNAL_TOKEN or x_internal_token != INTERNAL_TOKEN:
        raise HTTPException(status_code=403, detail="Invalid internal token")

    message = data.message
    event = {"type": "message", "message": message.model_dump()}

    delivered = await manager.send_to(message.recipient, event)
    delivered += await manager.send_to(message.sender, event)

    logger.debug("Message %s reached %d sockets", message.message_id, delivered)
    return {"delivered": delivered}
