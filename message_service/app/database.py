import os
import logging
from functools import lru_cache

import boto3
from dotenv import load_dotenv
from botocore.exceptions import ClientError

load_dotenv()

logger = logging.getLogger(__name__)

# Check AWS credentials
AWS_ACCESS_KEY = os.getenv("AWS_ACCESS_KEY_ID")
AWS_SECRET_KEY = os.getenv("AWS_SECRET_ACCESS_KEY")
AWS_REGION = os.getenv("AWS_REGION", "eu-central-1")
DYNAMODB_ENDPOINT_URL = os.getenv("DYNAMODB_ENDPOINT_URL") or None

MESSAGES_TABLE = "Messages"
CONVERSATIONS_TABLE = "Conversations"
CLIENT_ID_INDEX = "conversation_id-client_id-index"


@lru_cache(maxsize=1)
def get_dynamodb():
    if not AWS_ACCESS_KEY or not AWS_SECRET_KEY:
        raise RuntimeError("AWS_ACCESS_KEY_ID or AWS_SECRET_ACCESS_KEY environment variable is not set.")

    return boto3.resource(
        "dynamodb",
        region_name=AWS_REGION,
        endpoint_url=DYNAMODB_ENDPOINT_URL,
        aws_access_key_id=AWS_ACCESS_KEY,
        aws_secret_access_key=AWS_SECRET_KEY
    )


# Sparse LSI on client_id, only messages sent with one are indexed
def _create_messages_table(dynamodb):
    return dynamodb.create_table(
        TableName=MESSAGES_TABLE,
        KeySchema=[
            {"AttributeName": "conversation_id", "KeyType": "HASH"},
            {"AttributeName": "created_at", "KeyType": "RANGE"}
        ],
        AttributeDefinitions=[
            {"AttributeName": "conversation_id", "AttributeType": "S"},
            {"AttributeName": "created_at", "AttributeType": "S"},
            {"AttributeName": "client_id", "AttributeType": "S"},
        ],
        LocalSecondaryIndexes=[
            {
                "IndexName": CLIENT_ID_INDEX,
                "KeySchema": [
                    {"AttributeName": "conversation_id", "KeyType": "HASH"},
                    {"AttributeName": "client_id", "KeyType": "RANGE"}
                ],
                "Projection": {"ProjectionType": "ALL"}
            }
        ],
        BillingMode="PAY_PER_REQUEST"
    )


# One GSI per participant slot, so a user's conversations can be queried newest first
def _create_conversations_table(dynamodb):
    return dynamodb.create_table(
        TableName=CONVERSATIONS_TABLE,
        KeySchema=[
            {"AttributeName": "conversation_id", "KeyType": "HASH"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "conversation_id", "AttributeType": "S"},
            {"AttributeName": "user_a", "AttributeType": "S"},
            {"AttributeName": "user_b", "AttributeType": "S"},
            {"AttributeName": "updated_at", "AttributeType": "S"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": "user_a-updated_at-index",
                "KeySchema": [
                    {"AttributeName": "user_a", "KeyType": "HASH"},
                    {"AttributeName": "updated_at", "KeyType": "RANGE"}
                ],
                "Projection": {"ProjectionType": "ALL"}
            },
            {
                "IndexName": "user_b-updated_at-index",
                "KeySchema": [
                    {"AttributeName": "user_b", "KeyType": "HASH"},
                    {"AttributeName": "updated_at", "KeyType": "RANGE"}
                ],
                "Projection": {"ProjectionType": "ALL"}
            }
        ],
        BillingMode="PAY_PER_REQUEST"
    )


# Create messages and conversations tables if they don't exist
def create_tables(dynamodb=None):
    dynamodb = dynamodb or get_dynamodb()
    creators = {
        MESSAGES_TABLE: _create_messages_table,
        CONVERSATIONS_TABLE: _create_conversations_table,
    }
    try:
        existing_tables = [t.name for t in dynamodb.tables.all()]
        for table_name, create in creators.items():
            if table_name in existing_tables:
                logger.info("Table '%s' already exists.", table_name)
                continue

            table = create(dynamodb)
            logger.info("Table '%s' created.", table_name)

            table.wait_until_exists()

            logger.info("Table '%s' ready to use.", table_name)
    except ClientError:
        logger.exception("Create table error")
        raise
