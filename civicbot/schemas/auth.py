# File: civicbot/schemas/auth.py

from pydantic import BaseModel, Field

class LoginIn(BaseModel):
    token: str = Field(min_length=1, max_length=512)

class AccessToken(BaseModel):
    access_token: str
    token_type: str
    expires_in: int
