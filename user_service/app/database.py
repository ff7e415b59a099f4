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

table_name = "Users"


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


def get_users_table():
    return get_dynamodb().Table(table_name)


# Create users table if it doesn't exist
def create_table(dynamodb=None):
    dynamodb = dynamodb or get_dynamodb()
    try:
        existing_tables = [table.name for table in dynamodb.tables.all()]
        if table_name not in existing_tables:
            table = dynamodb.create_table(
                TableName=table_name,
                KeySchema=[{"AttributeName": "user_id", "KeyType": "HASH"}],
                AttributeDefinitions=[{"AttributeName": "user_id", "AttributeType": "S"}],
                BillingMode="PAY_PER_REQUEST"
            )

            logger.info("Table '%s' created.", table_name)

            table.wait_until_exists()

            logger.info("Table '%s' ready to use.", table_name)
        else:
            logger.info("Table '%s' already exists.", table_name)
    except ClientError:
        logger.exception("Create table error")
        raise
