from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class RegisterIn(BaseModel):
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=8, max_length=128)
    username: str | None = Field(default=None, max_length=30, pattern=r"^\s*[A-Za-z0-9_]*\s*$")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "storekeeper@example.com",
                "full_name": "Sam Storekeeper",
                "password": "password123",
                "username": "sam_store",
            }
        }
    )

    @field_validator("full_name")
    @classmethod
    def strip_full_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("full_name is required")
        return value.strip()

    @field_validator("username")
    @classmethod
    def blank_username_is_none(cls, value: str | None) -> str | None:
        return (value or "").strip() or None


class LoginIn(BaseModel):
    identifier: str = Field(min_length=1, max_length=255, description="Email or username")
    password: str = Field(min_length=1)

    model_config = ConfigDict(
        json_schema_extra={"example": {"identifier": "storekeeper@example.com", "password": "password123"}}
    )

    @field_validator("identifier")
    @classmethod
    def strip_identifier(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("identifier is required")
        return value.strip()


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserProfileOut(BaseModel):
    id: str
    email: EmailStr
    username: str
    full_name: str | None = None
    role: str
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
