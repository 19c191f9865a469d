"""
Pydantic request / response schemas and the records the repositories return.
Kept separate from ORM models to avoid coupling transport to storage.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, constr, field_validator

# Width of the users.email column.
MAX_EMAIL_LENGTH = 50


# ──────────────────────────── Auth ────────────────────────────────────────

class LoginRequest(BaseModel):
    # Normalised exactly as at registration, so the stored address matches.
    email: EmailStr
    password: constr(min_length=1)


class AuthData(BaseModel):
    id: str
    token: str


class PasswordChange(BaseModel):
    current: constr(min_length=1)
    new: constr(min_length=1)


# ──────────────────────────── Users ───────────────────────────────────────

class UserUpdate(BaseModel):
    name: constr(strip_whitespace=True, min_length=1, max_length=50)
    nick: constr(strip_whitespace=True, min_length=1, max_length=50)
    email: EmailStr

    @field_validator("email")
    @classmethod
    def email_fits_column(cls, v: str) -> str:
        if len(v) > MAX_EMAIL_LENGTH:
            raise ValueError(f"must be at most {MAX_EMAIL_LENGTH} characters")
        return v


class UserCreate(UserUpdate):
    password: constr(min_length=1)


class NewUser(BaseModel):
    """A user ready to persist: the password is already hashed."""
    name: str
    nick: str
    email: str
    password_hash: str


class UserRead(BaseModel):
    id: int
    name: str
    nick: str
    email: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class Credentials(BaseModel):
    id: int
    password_hash: str


# ──────────────────────────── Posts ───────────────────────────────────────

class PostUpdate(BaseModel):
    title: constr(strip_whitespace=True, min_length=1, max_length=50)
    content: constr(strip_whitespace=True, min_length=1, max_length=300)


class PostCreate(PostUpdate):
    pass


class NewPost(BaseModel):
    title: str
    content: str
    author_id: int


class PostRead(BaseModel):
    id: int
    title: str
    content: str
    author_id: int
    author_nick: Optional[str] = None
    likes: int = 0
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
