import datetime
import uuid
from typing import Any, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from domain.validation import ValidationResult, validate_model

ROLES = ("reader", "writer", "admin")
Role = Literal["reader", "writer", "admin"]

USERNAME_PATTERN = r"^[A-Za-z0-9_.-]+$"
PASSWORD_MIN_LENGTH = 8


class SignUpUser(BaseModel):
    username: str = Field(min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    email: EmailStr
    password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=128)
    role: Role = "reader"


class LoginUser(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class ForgetPasswordRequest(BaseModel):
    email: EmailStr


class NewPassword(BaseModel):
    password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=128)


class User(BaseModel):
    """Public view of a user; never carries credentials or one-time tokens."""
    id: str
    username: str
    email: str
    role: Role = "reader"
    verified: bool = False
    created_at: Optional[datetime.datetime] = None


class UserInDB(User):
    hashed_password: str
    email_verify_key: Optional[str] = None
    password_reset_token: Optional[str] = None
    password_reset_expires: Optional[datetime.datetime] = None

    def public(self) -> User:
        return User(**self.model_dump(include=set(User.model_fields)))


def new_user_id() -> str:
    return f"user-{uuid.uuid4().hex}"


def validate_signup(payload: Any) -> ValidationResult:
    return validate_model(SignUpUser, payload)


def validate_login(payload: Any) -> ValidationResult:
    return validate_model(LoginUser, payload)


def validate_forget_password(payload: Any) -> ValidationResult:
    return validate_model(ForgetPasswordRequest, payload)


def validate_password(payload: Any) -> ValidationResult:
    return validate_model(NewPassword, payload)
