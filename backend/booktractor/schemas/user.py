from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .base import CamelModel


class SessionUser(CamelModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None


class SessionInfo(CamelModel):
    id: Optional[str] = None
    expires_at: Optional[datetime] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class Session(BaseModel):
    user: SessionUser
    session: SessionInfo = SessionInfo()


class Profile(CamelModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    image: Optional[str] = None


class ProfileUpdate(CamelModel):
    """Editable subset of the profile. ``email`` is not accepted here."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = Field(None, max_length=20)
    image: Optional[str] = None


# ─── Auth request bodies ────────────────────────────────────────────────────

class EmailSignIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    remember_me: bool = True


class SocialSignIn(BaseModel):
    provider: str = "google"
    callback_url: Optional[str] = None


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    # Length and confirmation are checked in the route so failures come back
    # as field_errors alongside each other.
    password: str
    confirm_password: str


class AuthResult(BaseModel):
    user: Optional[SessionUser] = None
    redirect_to: Optional[str] = None
    url: Optional[str] = None


class AccountDelete(BaseModel):
    confirm_email: EmailStr
