import logging
from collections import defaultdict

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    In-memory registry of open sockets, one private channel per user id.

    A user may be connected from several devices at once; every socket
    joined under the same id receives the same events.
    """

    def __init__(self):
        self.channels = defaultdict(dict)

    def connect(self, user_id: str, websocket: WebSocket):
        self.channels[user_id][id(websocket)] = websocket
        logger.info("User %s joined (%d open sockets)", user_id, len(self.channels[user_id]))

    def disconnect(self, user_id: str, websocket: WebSocket):
        sockets = self.channels.get(user_id)
        if not sockets:
            return
        sockets.pop(id(websocket), None)
        if not sockets:
            del self.channels[user_id]
        logger.info("User %s left", user_id)

    def is_connected(self, user_id: str) -> bool:
        return bool(self.channels.get(user_id))

    async def send_to(self, user_id: str, payload: dict) -> int:
        """Push ``payload`` to every socket of ``user_id``; returns how many got it."""
        delivered = 0
        for websocket in list(self.channels.get(user_id, {}).values()):
            try:
                await websocket.send_json(payload)
                delivered += 1
            except Exception as e:
                # Socket already gone; its receive loop will clean up too
                logger.warning("Dropping socket of %s after failed send: %s", user_id, e)
                self.disconnect(user_id, websocket)
        return delivered


manager = ConnectionManager()
