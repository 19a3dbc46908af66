from __future__ import annotations

from pydantic import Field, field_validator

from app.schemas.base import CamelModel


def _password_bcrypt_bytes(v: str) -> str:
    if len(v.encode("utf-8")) > 72:
        raise ValueError("password must be 72 bytes or fewer (bcrypt limit)")
    return v


class RegisterRequest(CamelModel):
    username: str = Field(min_length=4, max_length=100)
    password: str = Field(min_length=3, max_length=128)  # allow chars, enforce bytes below
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=32)

    @field_validator("username")
    @classmethod
    def username_not_blank(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError("username must not be blank")
        return cleaned

    @field_validator("password")
    @classmethod
    def password_bcrypt_bytes(cls, v: str) -> str:
        return _password_bcrypt_bytes(v)


class LoginRequest(CamelModel):
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1, max_length=128)


class LoginResponse(CamelModel):
    ok: bool
    username: str


class LogoutResponse(CamelModel):
    ok: bool


class PasswordChangeRequest(CamelModel):
    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=3, max_length=128)

    @field_validator("new_password")
    @classmethod
    def password_bcrypt_bytes(cls, v: str) -> str:
        return _password_bcrypt_bytes(v)
