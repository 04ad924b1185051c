import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from ..services.permissions import Position, Role
from .common import PatchModel


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    role: str
    position: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse


class MeResponse(UserResponse):
    permissions: List[str] = []


class UserCreate(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1)
    password: str = Field(min_length=6)
    role: Role = Role.STAFF
    position: Position = Position.NURSE


class UserUpdate(PatchModel):
    not_null = ("name", "role", "position", "is_active")

    name: Optional[str] = None
    role: Optional[Role] = None
    position: Optional[Position] = None
    is_active: Optional[bool] = None
