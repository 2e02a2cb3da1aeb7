"""
Pydantic schemas for the writeup unlock flow (password check, OTP request,
OTP verification).
"""

from typing import Optional

from pydantic import EmailStr, Field, field_validator

from labsite.schemas.common import CamelModel


class VerifyPasswordRequest(CamelModel):
    machine_id: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RequestOTPRequest(CamelModel):
    email: EmailStr


class VerifyOTPRequest(CamelModel):
    email: EmailStr
    otp: str = Field(min_length=1)
    machine_id: str = Field(min_length=1)
    name: Optional[str] = None

    @field_validator("otp")
    @classmethod
    def strip_otp(cls, v: str) -> str:
        return v.strip()


class OTPSentResponse(CamelModel):
    success: bool = True
    message: str
    expires_in_minutes: int


class WriteupResponse(CamelModel):
    success: bool = True
    writeup: str
