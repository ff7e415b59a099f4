import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

CHAT_API_URL = os.getenv("CHAT_API_URL", "http://localhost:8000")
USERS_API_URL = os.getenv("USERS_API_URL", CHAT_API_URL)
CHAT_WS_URL = os.getenv("CHAT_WS_URL", "ws://localhost:8001/ws")
CHAT_CLIENT_STATE_DIR = Path(os.getenv("CHAT_CLIENT_STATE_DIR", Path.home() / ".campus_chat"))
REQUEST_TIMEOUT = float(os.getenv("CHAT_REQUEST_TIMEOUT", "10"))
CHANNEL_RECONNECT_MAX_DELAY = float(os.getenv("CHANNEL_RECONNECT_MAX_DELAY", "30"))
CHANNEL_HEARTBEAT = float(os.getenv("CHANNEL_HEARTBEAT", "25"))
