"""Authentication schemas."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from portal.modules.accounts.models import AccountRole, AccountStatus


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    full_name: str
    role: AccountRole
    status: AccountStatus | None = None
    email_verified: bool


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    account: AccountResponse


class TokenRequest(BaseModel):
    """A token taken from an emailed link."""

    token: str = Field(..., min_length=1)


class VerifyEmailResponse(BaseModel):
    status: AccountStatus
    message: str = "Email verified. Your application is now awaiting review."


class EmailRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)


class MessageResponse(BaseModel):
    message: str


class ValidateResetResponse(BaseModel):
    valid: bool = True
