from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from examprep.models.models import Tier


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    email: str
    password: str = Field(min_length=8)
    confirm_password: str
    name: Optional[str] = None
    tier: Tier = Tier.FREE


class LoginResponse(BaseModel):
    message: str
    token_set: bool


class RegisterResponse(BaseModel):
    message: str
    user_id: int


class LogoutResponse(BaseModel):
    message: str


class AuthTokenPayload(BaseModel):
    sub: str
    exp: Optional[datetime] = None
