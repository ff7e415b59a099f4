"""
Message store and conversation index on DynamoDB.

Messages live in the ``Messages`` table, partitioned by the conversation id
(the sorted pair of user ids) and ranged by the server-assigned ``created_at``.
The ``Conversations`` table holds one record per pair with the most recent
message, so a user's chat list never scans the messages themselves.
"""
import os
import uuid
import logging
import functools
from datetime import datetime, timedelta, timezone

from dotenv import load_dotenv
from botocore.exceptions import ClientError
from boto3.dynamodb.conditions import Key, Attr

from message_service.app.database import MESSAGES_TABLE, CONVERSATIONS_TABLE, CLIENT_ID_INDEX
from message_service.app.errors import StorageError, ValidationError

load_dotenv()

logger = logging.getLogger(__name__)

TOUCH_RETRIES = int(os.getenv("TOUCH_RETRIES", "3"))
# Attempts at finding a free created_at slot when two writes land on the same microsecond
PUT_ATTEMPTS = 5

MESSAGE_FIELDS = ("message_id", "conversation_id", "sender", "recipient", "content", "created_at", "client_id")


def conversation_key(user_a: str, user_b: str) -> str:
    return "#".join(sorted([user_a, user_b]))


def isoformat(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def utcnow() -> str:
    return isoformat(datetime.now(timezone.utc))


def _is_conditional_failure(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


# Wrap unexpected DynamoDB errors so callers only ever see StorageError
def storage_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ClientError as e:
            logger.error("%s failed: %s", func.__name__, e)
            raise StorageError(str(e)) from e
    return wrapper


def _query_all(table, **kwargs):
    items = []
    while True:
        resp = table.query(**kwargs)
        items.extend(resp.get("Items", []))
        last_key = resp.get("LastEvaluatedKey")
        if not last_key:
            return items
        kwargs["ExclusiveStartKey"] = last_key


class ChatStore:
    def __init__(self, dynamodb):
        self.messages = dynamodb.Table(MESSAGES_TABLE)
        self.conversations = dynamodb.Table(CONVERSATIONS_TABLE)

    # Messages

    @storage_errors
    def send(self, sender: str, recipient: str, content: str, client_id: str = None) -> dict:
        """
        Persist a message with a server-assigned, per-pair unique created_at.

        A resend with a client_id already stored in the conversation returns
        the stored copy instead of writing a second one.
        """
        if not recipient:
            raise ValidationError("Recipient is required")
        if sender == recipient:
            raise ValidationError("Cannot send a message to yourself")
        if not content or not content.strip():
            raise ValidationError("Message content cannot be empty")

        conversation_id = conversation_key(sender, recipient)
        if client_id:
            existing = self.find_by_client_id(conversation_id, client_id)
            if existing is not None:
                logger.info("Message %s already stored for client id %s", existing["message_id"], client_id)
                return existing

        item = {
            "conversation_id": conversation_id,
            "message_id": str(uuid.uuid4()),
            "sender": sender,
            "recipient": recipient,
            "content": content,
        }
        if client_id:
            item["client_id"] = client_id

        created_at = datetime.now(timezone.utc)
        for _ in range(PUT_ATTEMPTS):
            item["created_at"] = isoformat(created_at)
            try:
                self.messages.put_item(Item=item, ConditionExpression=Attr("created_at").not_exists())
                return item
            except ClientError as e:
                if not _is_conditional_failure(e):
                    raise
            # Same microsecond as an earlier write in this conversation, go after it
            created_at += timedelta(microseconds=1)

        raise StorageError(f"Could not assign a timestamp in {item['conversation_id']}")

    def find_by_client_id(self, conversation_id: str, client_id: str):
        resp = self.messages.query(
            IndexName=CLIENT_ID_INDEX,
            KeyConditionExpression=Key("conversation_id").eq(conversation_id) & Key("client_id").eq(client_id),
        )
        items = resp.get("Items", [])
        return items[0] if items else None

    @storage_errors
    def history(self, user_a: str, user_b: str, after: str = None) -> list:
        condition = Key("conversation_id").eq(conversation_key(user_a, user_b))
        if after:
            condition = condition & Key("created_at").gt(after)

        return _query_all(
            self.messages,
            KeyConditionExpression=condition,
            ScanIndexForward=True  # oldest → newest
        )

    @storage_errors
    def clear(self, user_a: str, user_b: str) -> int:
        conversation_id = conversation_key(user_a, user_b)
        keys = _query_all(
            self.messages,
            KeyConditionExpression=Key("conversation_id").eq(conversation_id),
            ProjectionExpression="conversation_id, created_at",
        )
        with self.messages.batch_writer() as batch:
            for key in keys:
                batch.delete_item(Key={"conversation_id": key["conversation_id"], "created_at": key["created_at"]})

        # The conversation shell stays, only its last message goes
        try:
            self.conversations.update_item(
                Key={"conversation_id": conversation_id},
                UpdateExpression="REMOVE last_message",
                ConditionExpression=Attr("conversation_id").exists(),
            )
        except ClientError as e:
            if not _is_conditional_failure(e):
                raise

        logger.info("Cleared %d messages from %s", len(keys), conversation_id)
        return len(keys)

    # Conversations

    @storage_errors
    def get_conversation(self, user_a: str, user_b: str):
        resp = self.conversations.get_item(Key={"conversation_id": conversation_key(user_a, user_b)})
        return resp.get("Item")

    @storage_errors
    def get_or_create(self, user_a: str, user_b: str) -> dict:
        if not user_a or not user_b:
            raise ValidationError("Both participants are required")
        if user_a == user_b:
            raise ValidationError("Cannot open a chat with yourself")

        first, second = sorted([user_a, user_b])
        now = utcnow()
        item = {
            "conversation_id": conversation_key(first, second),
            "user_a": first,
            "user_b": second,
            "created_at": now,
            "updated_at": now,
        }
        try:
            self.conversations.put_item(Item=item, ConditionExpression=Attr("conversation_id").not_exists())
            logger.info("Conversation %s created", item["conversation_id"])
            return item
        except ClientError as e:
            if not _is_conditional_failure(e):
                raise

        # Lost the race (or it already existed): hand back the stored record
        existing = self.get_conversation(first, second)
        if existing is None:
            raise StorageError(f"Conversation {item['conversation_id']} missing after conflicting create")
        return existing

    def touch(self, conversation_id: str, message: dict) -> bool:
        """
        Point the conversation at ``message`` unless a newer one is already there.

        Returns False when the stored ``updated_at`` is later than the message,
        raises StorageError once every retry has failed.
        """
        last_message = {k: message[k] for k in MESSAGE_FIELDS if k in message}
        last_error = None
        for attempt in range(1, TOUCH_RETRIES + 1):
            try:
                self.conversations.update_item(
                    Key={"conversation_id": conversation_id},
                    UpdateExpression="SET last_message = :m, updated_at = :t",
                    ConditionExpression="attribute_exists(conversation_id) AND updated_at <= :t",
                    ExpressionAttributeValues={":m": last_message, ":t": message["created_at"]},
                )
                return True
            except ClientError as e:
                if _is_conditional_failure(e):
                    logger.debug("Conversation %s already points at a newer message", conversation_id)
                    return False
                last_error = e
                logger.warning("Touch %s failed (attempt %d/%d): %s", conversation_id, attempt, TOUCH_RETRIES, e)

        raise StorageError(f"Could not update conversation {conversation_id}") from last_error

    @storage_errors
    def list_for(self, user_id: str) -> list:
        conversations = []
        for attribute in ("user_a", "user_b"):
            conversations.extend(_query_all(
                self.conversations,
                IndexName=f"{attribute}-updated_at-index",
                KeyConditionExpression=Key(attribute).eq(user_id),
                ScanIndexForward=False  # newest → oldest
            ))
        conversations.sort(key=lambda c: c["updated_at"], reverse=True)
        return conversations


def other_participant(conversation: dict, user_id: str) -> str:
    return conversation["user_b"] if conversation["user_a"] == user_id else conversation["user_a"]
