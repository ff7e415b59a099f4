"""
Client-side last-seen bookkeeping.

Unread state is decided entirely on the client: for every conversation
partner we remember when this user last opened the chat and compare that
with the server's last activity time. Nothing is synced back to the server,
so unread flags do not follow the user to another device.
"""
import os
import json
import logging
import tempfile
from pathlib import Path
from datetime import datetime, timezone

from chat_client.config import CHAT_CLIENT_STATE_DIR

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_datetime(value) -> datetime:
    """Accept a datetime or ISO-8601 string; naive values are taken as UTC."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


class LastSeenTracker:
    def __init__(self, user_id: str, state_dir=None):
        state_dir = Path(state_dir or CHAT_CLIENT_STATE_DIR)
        self.path = state_dir / f"last_seen_{user_id}.json"
        self._seen = self._load()

    def _load(self) -> dict:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable last-seen file %s: %s", self.path, e)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Ignoring last-seen file %s without a partner mapping", self.path)
            return {}

        seen = {}
        for partner_id, stamp in raw.items():
            try:
                seen[partner_id] = to_datetime(stamp)
            except (AttributeError, TypeError, ValueError):
                logger.warning("Dropping bad last-seen entry for %s: %r", partner_id, stamp)
        return seen

    def _save(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {partner_id: stamp.isoformat() for partner_id, stamp in self._seen.items()}
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".last_seen_")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise

    def last_seen(self, partner_id: str) -> datetime:
        return self._seen.get(partner_id, EPOCH)

    def record_seen(self, partner_id: str, at=None) -> bool:
        """Move the seen time for ``partner_id`` forward; never moves it back."""
        at = to_datetime(at) if at is not None else datetime.now(timezone.utc)
        if at <= self.last_seen(partner_id):
            return False

        self._seen[partner_id] = at
        self._save()
        return True

    def is_unread(self, partner_id: str, last_activity_at) -> bool:
        if last_activity_at is None:
            return False
        return to_datetime(last_activity_at) > self.last_seen(partner_id)

    def mark_unread(self, entries) -> list:
        """Set ``unread`` on each conversation entry from its last activity."""
        for entry in entries:
            entry.unread = self.is_unread(entry.other_user.id, entry.last_activity_at)
        return entries
