from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional

from storeapi.core.config import PASSWORD_MAX_LENGTH, PASSWORD_MIN_LENGTH


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# -------- Signup --------
class SignupBody(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)
    phone_number: Optional[str] = Field(None, alias="phoneNumber")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


# -------- Login --------
class LoginBody(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LENGTH)


class RefreshBody(CamelModel):
    refresh_token: str = Field(..., alias="refreshToken")


# -------- OTP --------
class EmailOTPRequest(BaseModel):
    email: EmailStr


class EmailOTPVerify(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=1, max_length=10)


class PhoneOTPRequest(CamelModel):
    phone_number: str = Field(..., min_length=1, alias="phoneNumber")


class PhoneOTPVerify(CamelModel):
    phone_number: str = Field(..., min_length=1, alias="phoneNumber")
    otp: str = Field(..., min_length=1, max_length=10)


# -------- Password reset --------
class PasswordResetRequest(BaseModel):
    email: EmailStr


class ResetPasswordBody(CamelModel):
    token: Optional[str] = None
    new_password: str = Field(
        ..., alias="newPassword", min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH
    )
    confirm_password: str = Field(..., alias="confirmPassword")


# -------- Users --------
class UserOut(CamelModel):
    """Public view of a user. Never carries the password hash."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    name: str
    email: str
    phone_number: Optional[str] = Field(None, serialization_alias="phoneNumber")
    provider: str
    is_verified: bool = Field(..., serialization_alias="isVerified")
    role: str
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")
    updated_at: Optional[datetime] = Field(None, serialization_alias="updatedAt")


class ProfileUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone_number: Optional[str] = Field(None, alias="phoneNumber")


class RoleUpdate(BaseModel):
    role: str
