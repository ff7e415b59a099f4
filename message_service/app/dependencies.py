import os
import aiohttp
from dotenv import load_dotenv
from fastapi import HTTPException, Request

from message_service.app.database import get_dynamodb
from message_service.app.directory import UserDirectory
from message_service.app.publisher import LivePublisher
from message_service.app.store import ChatStore

load_dotenv()

# .env variables
AUTH_PATH = os.getenv("AUTH_PATH")

# Call auth service to verify user token
async def get_current_user(request: Request):
    token = request.headers.get("Authorization")
    if not token:
        raise HTTPException(status_code=401, detail="Token not found")
    async with aiohttp.ClientSession() as session:
        async with session.get(AUTH_PATH, headers={"Authorization": token}) as resp: # type: ignore
            if resp.status != 200:
                raise HTTPException(status_code=401, detail="Invalid token")
            user = await resp.json()
    return {**user, "token": token}

def get_store():
    return ChatStore(get_dynamodb())

def get_directory():
    return UserDirectory()

def get_publisher():
    return LivePublisher()
