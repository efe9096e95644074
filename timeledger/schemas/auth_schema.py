from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from .common import Role


class UserIn(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    role: Role = Role.employee


class LoginIn(BaseModel):
    username: str
    password: str


class UserOut(BaseModel):
    id: str
    username: str
    role: Role
    created_at: Optional[datetime] = None


class RegisterOut(BaseModel):
    id: str


class TokenOut(BaseModel):
    token: str
