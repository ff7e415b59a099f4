import os
import asyncio
import logging

import aiohttp
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

PUBLISH_PATH = os.getenv("PUBLISH_PATH")
INTERNAL_TOKEN = os.getenv("INTERNAL_TOKEN", "")
PUBLISH_TIMEOUT = float(os.getenv("PUBLISH_TIMEOUT", "2"))


class LivePublisher:
    """
    Hands persisted messages to the WebSocket service for live fan-out.

    Delivery is best effort: a failed publish is logged and reported as
    False, the message itself is already stored.
    """

    def __init__(self, url: str = PUBLISH_PATH, token: str = INTERNAL_TOKEN, timeout: float = PUBLISH_TIMEOUT):
        self.url = url
        self.token = token
        self.timeout = timeout

    async def publish(self, message: dict, sender_profile: dict = None) -> bool:
        if not self.url:
            logger.debug("PUBLISH_PATH not set, skipping live delivery of %s", message.get("message_id"))
            return False

        payload = {"message": {**message, "sender_profile": sender_profile}}
        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.url, json=payload, headers={"X-Internal-Token": self.token}) as resp:
                    if resp.status != 200:
                        logger.warning("Live publish of %s rejected with %s", message.get("message_id"), resp.status)
                        return False
                    result = await resp.json()
                    logger.debug("Message %s delivered to %s sockets", message.get("message_id"), result.get("delivered"))
                    return True
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Live publish of %s failed: %s", message.get("message_id"), e)
            return False
