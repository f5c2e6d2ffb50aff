"""One-time passcode request and response schemas."""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field


class GenerateOtpRequest(BaseModel):
    """Ask for a passcode to be issued to a user."""

    subject: str | None = Field(
        None,
        validation_alias=AliasChoices("subject", "userId"),
        description="User id the code is issued for",
    )
    purpose: str = Field("login", description="What the code will authorise")
    email: str | None = Field(None, description="Delivery target; defaults to the profile email")


class GenerateOtpResponse(BaseModel):
    success: bool = True
    message: str = Field(..., description="Human readable outcome")
    otp_for_testing: str | None = Field(
        None,
        description="The issued code, only when OTP_EXPOSE_CODE is enabled",
    )


class VerifyOtpRequest(BaseModel):
    """Submit a passcode for verification."""

    subject: str | None = Field(
        None,
        validation_alias=AliasChoices("subject", "userId"),
        description="User id the code was issued for",
    )
    code: str | None = Field(
        None,
        validation_alias=AliasChoices("code", "otp"),
        description="The 6-digit passcode",
    )
    purpose: str = Field("login", description="Purpose the code was issued for")


class VerifyOtpResponse(BaseModel):
    """Successful verification carrying the second-factor session token."""

    success: bool = True
    message: str
    session_token: str = Field(..., description="Send as the X-Second-Factor header")
    token_type: str = "second_factor"
    expires_at: datetime
