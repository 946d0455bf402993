from typing import Any, Dict, Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from storefront.utils.validators import validate_password_strength

# Colonnes jamais exposées par l'API
PRIVATE_FIELDS = ("password", "reset_token_hash", "reset_token_expires_at")


def public_user(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Projection publique d'une ligne users (sans hash ni jeton de reset)."""
    if row is None:
        return None
    return {k: v for k, v in row.items() if k not in PRIVATE_FIELDS}


class RegisterRequest(BaseModel):
    firstname: str = Field(min_length=1, max_length=100)
    lastname: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8)
    avatar: Optional[str] = None

    @field_validator("password")
    def password_strength(cls, v: str) -> str:
        return validate_password_strength(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UpdateUserRequest(BaseModel):
    firstname: Optional[str] = Field(default=None, min_length=1, max_length=100)
    lastname: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=8)
    avatar: Optional[str] = None

    @field_validator("password")
    def password_strength(cls, v: Optional[str]) -> Optional[str]:
        return validate_password_strength(v) if v is not None else v


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    email: EmailStr
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=8)

    @field_validator("new_password")
    def password_strength(cls, v: str) -> str:
        return validate_password_strength(v)
