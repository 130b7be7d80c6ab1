from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from ..core.security import MAX_PASSWORD_BYTES


class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be blank")
        return v

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserPublic(BaseModel):
    """What clients may see of a user. Never includes the password hash."""
    id: str
    name: str
    email: str
    profile_picture: Optional[str] = None


class AuthResponse(BaseModel):
    message: str
    token: str
    user: UserPublic


class UserEnvelope(BaseModel):
    user: UserPublic


class ExternalProfile(BaseModel):
    """Identity returned by an OAuth provider."""
    provider_id: str
    email: EmailStr
    name: str
    picture: Optional[str] = None
