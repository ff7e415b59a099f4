from pydantic import BaseModel
from typing import Optional

class VerifiedUser(BaseModel):
    user_id: str
    name: Optional[str] = None
    email: Optional[str] = None
