import os
import aiohttp
from dotenv import load_dotenv
from fastapi import APIRouter, HTTPException, Request, Depends, Query
from fastapi.concurrency import run_in_threadpool
from user_service.app.database import get_users_table

load_dotenv()

AUTH_PATH = os.getenv("AUTH_PATH")
SEARCH_LIMIT = int(os.getenv("USER_SEARCH_LIMIT", "20"))

router = APIRouter()

# Call auth service to verify user token
async def get_current_user(request: Request):
    token = request.headers.get("Authorization")
    if not token:
        raise HTTPException(status_code=401, detail="Token not found")
    async with aiohttp.ClientSession() as session:
        async with session.get(AUTH_PATH, headers={"Authorization": token}) as resp: # type: ignore
            if resp.status != 200:
                raise HTTPException(status_code=401, detail="Invalid token")
            return await resp.json()

# Only the fields other users are allowed to see
def public_profile(user: dict) -> dict:
    return {
        "id": user["user_id"],
        "name": user.get("name"),
        "avatar": user.get("profile_pic"),
        "stream": user.get("stream"),
    }

def _get_user(user_id: str):
    response = get_users_table().get_item(Key={"user_id": user_id})
    return response.get("Item")

def _scan_users():
    table = get_users_table()
    kwargs = {"ProjectionExpression": "user_id, #n, email, profile_pic, stream", "ExpressionAttributeNames": {"#n": "name"}}
    items = []
    while True:
        response = table.scan(**kwargs)
        items.extend(response.get("Items", []))
        if "LastEvaluatedKey" not in response:
            return items
        kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]

# Fetch current logged in user
@router.get("/me")
async def get_me(user: dict = Depends(get_current_user)):
    full_user = await run_in_threadpool(_get_user, user["user_id"])
    if not full_user:
        raise HTTPException(status_code=404, detail="User not found")

    return {"user": {**public_profile(full_user), "email": full_user.get("email")}}

# Search users by name or email, case-insensitive
@router.get("/search")
async def search_users(q: str = Query(..., min_length=1), user_data: dict = Depends(get_current_user)):
    needle = q.strip().lower()
    if not needle:
        raise HTTPException(status_code=400, detail="Search query cannot be empty")

    items = await run_in_threadpool(_scan_users)
    matches = [
        user for user in items
        if user["user_id"] != user_data["user_id"]
        and (needle in (user.get("name") or "").lower() or needle in (user.get("email") or "").lower())
    ]
    matches.sort(key=lambda user: (user.get("name") or "").lower())

    return {"users": [public_profile(user) for user in matches[:SEARCH_LIMIT]]}

# Get another user profile
@router.get("/{user_id}")
async def get_user(user_id: str, user_data: dict = Depends(get_current_user)):
    user = await run_in_threadpool(_get_user, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    return {"user": public_profile(user)}
