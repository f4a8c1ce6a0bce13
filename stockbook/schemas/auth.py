from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints, field_validator, model_validator

# Stripped and required to be non-empty once stripped.
RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
NewPassword = Annotated[str, Field(min_length=8, max_length=128)]


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if not isinstance(value, str):
        return value
    return value.strip() or None


class _OptionalNamesMixin(BaseModel):
    """business_name and username are optional at sign-up; blanks mean "pick one for me"."""

    business_name: Optional[str] = Field(default=None, max_length=255)
    username: Optional[str] = Field(default=None, max_length=50)

    @field_validator("business_name", "username", mode="before")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        return _blank_to_none(value)


class RegisterIn(_OptionalNamesMixin):
    email: EmailStr
    full_name: Annotated[RequiredText, Field(max_length=100)]
    password: NewPassword

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "owner@example.com",
                "full_name": "Ana Owner",
                "password": "password123",
                "business_name": "Ana's Corner Shop",
                "username": "ana_owner",
            }
        }
    )


class LoginIn(BaseModel):
    identifier: RequiredText = Field(description="Email address or username, matched case-insensitively.")
    password: str

    model_config = ConfigDict(
        json_schema_extra={"example": {"identifier": "ana_owner", "password": "password123"}}
    )


class GoogleAuthIn(_OptionalNamesMixin):
    id_token: RequiredText


class TokenOut(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshIn(BaseModel):
    refresh_token: RequiredText

    model_config = ConfigDict(
        json_schema_extra={"example": {"refresh_token": "paste-refresh-token-here"}}
    )


class LogoutIn(RefreshIn):
    pass


class ChangePasswordIn(BaseModel):
    current_password: Annotated[str, Field(min_length=1)]
    new_password: NewPassword


class UserProfileOut(BaseModel):
    id: str
    email: EmailStr
    username: str
    full_name: Optional[str] = None
    business_name: Optional[str] = None
    base_currency: str
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "abc123",
                "email": "owner@example.com",
                "username": "ana_owner",
                "full_name": "Ana Owner",
                "business_name": "Ana's Corner Shop",
                "base_currency": "USD",
                "last_login_at": "2026-02-01T12:00:00Z",
                "created_at": "2026-02-01T12:00:00Z",
                "updated_at": "2026-02-01T12:00:00Z",
            }
        }
    )


class UpdateProfileIn(BaseModel):
    """Partial update; omitted fields keep their value but at least one must be sent."""

    full_name: Optional[RequiredText] = None
    username: Optional[RequiredText] = None
    business_name: Optional[RequiredText] = None
    base_currency: Optional[str] = None

    @field_validator("base_currency")
    @classmethod
    def validate_base_currency(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        code = value.strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError("base_currency must be a 3-letter ISO code")
        return code

    @model_validator(mode="after")
    def require_a_change(self) -> "UpdateProfileIn":
        if all(value is None for value in self.model_dump().values()):
            raise ValueError("At least one field must be provided")
        return self
