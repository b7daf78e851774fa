from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from uuid import uuid4
from datetime import datetime


class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserInDB(BaseModel):
    user_id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    email: EmailStr
    password_hash: str
    role: str = "user"
    created_at: str = Field(default_factory=lambda: datetime.utcnow().isoformat())


class UserPublic(BaseModel):
    id: str
    name: str
    email: EmailStr
    role: str
    created_at: Optional[str] = None

    @classmethod
    def from_db(cls, user: dict) -> "UserPublic":
        return cls(
            id=user["user_id"],
            name=user.get("name", ""),
            email=user["email"],
            role=user.get("role", "user"),
            created_at=user.get("created_at"),
        )


class AuthResult(BaseModel):
    token: str
    user: UserPublic
