"""
Account schemas: registration, activation, password reset.
"""

import re

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

USERNAME_PATTERN = r"^[A-Za-z0-9_]+$"
URL_PATTERN = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)
PASSWORD_SYMBOLS = "`~!@#$%^&*()-_=+{}|[]:\";'<>?,./\\"


def check_password_strength(value: str) -> str:
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain at least one uppercase letter.")
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain at least one lowercase letter.")
    if not re.search(r"\d", value):
        raise ValueError("Password must contain at least one digit.")
    if not any(ch in PASSWORD_SYMBOLS for ch in value):
        raise ValueError("Password must contain at least one latin symbol.")
    return value


def check_redirect_url(value: str | None) -> str | None:
    if value in (None, ""):
        return value
    if not URL_PATTERN.match(value):
        raise ValueError("The redirect URL must be a valid URL starting with http:// or https://.")
    return value


class AccountModel(BaseModel):
    """Accepts both the camelCase wire names and the field names."""
    model_config = ConfigDict(populate_by_name=True)


class RegisterRequest(AccountModel):
    """User registration request."""
    username: str = Field(min_length=5, max_length=30, pattern=USERNAME_PATTERN)
    display_name: str | None = Field(None, alias="displayName", max_length=50)
    email: EmailStr
    password: str = Field(min_length=8, max_length=30)
    login_redirect_url: str | None = Field(None, alias="loginRedirectURL")

    password_strength = field_validator("password")(check_password_strength)
    redirect_url_format = field_validator("login_redirect_url")(check_redirect_url)


class RegisterResponse(AccountModel):
    message: str
    user_id: int = Field(alias="userId")


class ResendActivationRequest(AccountModel):
    username_or_email: str = Field(alias="usernameOrEmail", min_length=5, max_length=255)
    login_redirect_url: str | None = Field(None, alias="loginRedirectURL")

    redirect_url_format = field_validator("login_redirect_url")(check_redirect_url)

    @field_validator("username_or_email")
    @classmethod
    def validate_key(cls, v: str) -> str:
        if "@" not in v and not re.match(USERNAME_PATTERN, v):
            raise ValueError("Username can only contain letters, numbers, and underscores.")
        return v.strip().lower()


class ActivateByCodeRequest(AccountModel):
    username: str = Field(min_length=5, max_length=30, pattern=USERNAME_PATTERN)
    activation_code: str = Field(alias="activationCode", min_length=1, max_length=64)


class ResetTokenRequest(AccountModel):
    username: str = Field(min_length=5, max_length=30, pattern=USERNAME_PATTERN)
    password_reset_page_redirect_url: str = Field(alias="passwordResetPageRedirectURL")

    redirect_url_format = field_validator("password_reset_page_redirect_url")(check_redirect_url)


class ResetPasswordRequest(AccountModel):
    username: str = Field(min_length=5, max_length=30, pattern=USERNAME_PATTERN)
    token: str = Field(min_length=1)
    data: str = Field(min_length=1)
    password: str = Field(min_length=8, max_length=30)

    password_strength = field_validator("password")(check_password_strength)
