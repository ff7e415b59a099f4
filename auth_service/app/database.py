import os
from functools import lru_cache

import boto3
from dotenv import load_dotenv

load_dotenv()

# Check AWS credentials
AWS_ACCESS_KEY = os.getenv("AWS_ACCESS_KEY_ID")
AWS_SECRET_KEY = os.getenv("AWS_SECRET_ACCESS_KEY")
AWS_REGION = os.getenv("AWS_REGION", "eu-central-1")
DYNAMODB_ENDPOINT_URL = os.getenv("DYNAMODB_ENDPOINT_URL") or None

# Owned and created by the user service
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
