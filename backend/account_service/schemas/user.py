from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Request bodies keep every field optional: missing fields are reported by the
# account manager as a 400 with a readable message rather than a 422.


class SubmitBase(BaseModel):
    # Codes and phone numbers often arrive as JSON numbers
    model_config = ConfigDict(coerce_numbers_to_str=True)


class RegisterSubmit(SubmitBase):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginSubmit(SubmitBase):
    email: Optional[str] = None
    password: Optional[str] = None


class ForgotPasswordSubmit(SubmitBase):
    email: Optional[str] = None


class VerifyCodeSubmit(SubmitBase):
    email: Optional[str] = None
    verificationcode: Optional[str] = None


class ResetPasswordSubmit(SubmitBase):
    password: Optional[str] = None


class EditSubmit(SubmitBase):
    id: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    profilephoto: Optional[str] = None
    phonetoken: Optional[str] = None
    phonenumber: Optional[str] = None


class DeleteSubmit(SubmitBase):
    id: Optional[str] = None


class AccountResult(BaseModel):
    """Uniform outcome of every account operation; status maps straight to the HTTP code."""

    status: int
    message: str
    token: Optional[str] = None


class AccountRecord(BaseModel):
    """Read-only snapshot of a stored account."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    username: str
    email: str
    hashed_password: str = Field(repr=False)
    phone_number: Optional[str] = None
    profile_photo: Optional[str] = None
    phone_token: Optional[str] = None
    verification_code: Optional[str] = None
    code_expiry: Optional[datetime] = None
