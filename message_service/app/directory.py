import os
import asyncio
import logging

import aiohttp
from dotenv import load_dotenv
from fastapi import HTTPException

load_dotenv()

logger = logging.getLogger(__name__)

USERS_PATH = os.getenv("USERS_PATH")


# Shown in chat lists when the user service no longer knows the partner
def placeholder_profile(user_id: str) -> dict:
    return {"id": user_id, "name": None, "avatar": None, "stream": None}


class UserDirectory:
    """Looks up public profiles in the user service."""

    def __init__(self, url: str = USERS_PATH):
        self.url = url

    async def _fetch(self, session, user_id: str, token: str):
        async with session.get(f"{self.url}/{user_id}", headers={"Authorization": token}) as resp:
            if resp.status == 404:
                return None
            if resp.status != 200:
                logger.error("User lookup for %s failed with %s", user_id, resp.status)
                raise HTTPException(status_code=502, detail="Failed to validate user")
            data = await resp.json()
            return data["user"]

    async def get_profile(self, user_id: str, token: str):
        async with aiohttp.ClientSession() as session:
            return await self._fetch(session, user_id, token)

    async def get_profiles(self, user_ids, token: str) -> dict:
        user_ids = list(dict.fromkeys(user_ids))
        async with aiohttp.ClientSession() as session:
            profiles = await asyncio.gather(*(self._fetch(session, uid, token) for uid in user_ids))
        return {uid: profile or placeholder_profile(uid) for uid, profile in zip(user_ids, profiles)}
