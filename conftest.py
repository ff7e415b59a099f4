import os

# Service modules read their settings at import time
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_REGION", "eu-central-1")
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-central-1")
os.environ["JWT_SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["JWT_ALGORITHM"] = "HS256"
os.environ["INTERNAL_TOKEN"] = "internal-test-token"
os.environ.pop("DYNAMODB_ENDPOINT_URL", None)
os.environ.pop("PUBLISH_PATH", None)

import boto3
import pytest
from moto import mock_aws


@pytest.fixture
def dynamodb():
    with mock_aws():
        yield boto3.resource("dynamodb", region_name="eu-central-1")


@pytest.fixture
def users_table(dynamodb):
    from user_service.app.database import create_table

    create_table(dynamodb)
    table = dynamodb.Table("Users")
    for user in (
        {"user_id": "u1", "name": "Asha Rao", "email": "asha@campus.edu", "password": "x", "stream": "CSE"},
        {"user_id": "u2", "name": "Ben Thomas", "email": "ben@campus.edu", "password": "x", "stream": "ECE",
         "profile_pic": "https://img.example/ben.png"},
        {"user_id": "u3", "name": "Chitra", "email": "chitra.m@campus.edu", "password": "x"},
    ):
        table.put_item(Item=user)
    return table
