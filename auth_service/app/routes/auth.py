import os
import jwt
import logging
from dotenv import load_dotenv
from fastapi import APIRouter, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from auth_service.app.database import get_users_table
from auth_service.app.models import VerifiedUser

load_dotenv()

# .env variables
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

logger = logging.getLogger(__name__)

router = APIRouter()

# Decode JWT token, None when expired or tampered with
def decode_jwt_token(token: str):
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM]) # type: ignore
        return payload.get("sub")
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired token")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning("Rejected invalid token: %s", e)
        return None

# Token verification, used by every other service to resolve the caller
@router.get("/verify", response_model=VerifiedUser)
async def verify_token(request: Request):
    token = request.headers.get("Authorization")
    if not token or not token.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Token not found")

    token = token.split("Bearer ")[1]
    user_id = decode_jwt_token(token)
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")

    response = await run_in_threadpool(get_users_table().get_item, Key={"user_id": user_id})
    user = response.get("Item")
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    return {"user_id": user_id, "name": user.get("name"), "email": user.get("email")}
