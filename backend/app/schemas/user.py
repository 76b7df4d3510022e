from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserSummary(BaseModel):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class UserRead(UserSummary):
    email: EmailStr
    phone: Optional[str] = None
    role: str
    is_vendor: bool
    points: int
    email_verified: bool
    phone_verified: bool
    kyc_verified: bool
    created_at: datetime


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=32)
    email: Optional[EmailStr] = None
    profile_image: Optional[str] = Field(default=None, max_length=500)


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8)


class PublicProfile(UserSummary):
    created_at: datetime
    email_verified: bool
    phone_verified: bool
    kyc_verified: bool
    is_vendor: bool
    listings_count: int = 0
