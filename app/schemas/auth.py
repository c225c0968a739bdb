"""
app/schemas/auth.py

Request/response models for dashboard authentication.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional


class RegisterRequest(BaseModel):
    """Request schema for account registration."""

    email: str = Field(..., min_length=3, description="Login email")
    password: str = Field(..., min_length=1, description="Plain password")
    name: str = Field(default="", description="Display name")

    @field_validator('email')
    @classmethod
    def clean_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError('Invalid email address')
        return v


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def clean_email(cls, v: str) -> str:
        return v.strip().lower()


class PublicUser(BaseModel):
    id: str
    email: str
    name: Optional[str] = None


class AuthResponse(BaseModel):
    """Token plus the user it was issued for."""

    token: str
    user: PublicUser
