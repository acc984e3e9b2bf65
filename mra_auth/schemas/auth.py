"""
Session and authorization schemas.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MessageResponse(BaseModel):
    message: str


class LoginRequest(BaseModel):
    """Login by username or email."""
    model_config = ConfigDict(populate_by_name=True)

    username_or_email: str = Field(alias="usernameOrEmail", min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class TokenResponse(BaseModel):
    """Issued access token."""
    model_config = ConfigDict(populate_by_name=True)

    token: str
    exp: int
    user_id: int = Field(alias="userId")


class LoginResponse(TokenResponse):
    display_name: str | None = Field(None, alias="displayName")


class CallerResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId")
    username: str
    email: str | None = None


class AuthorizeRequest(BaseModel):
    """Tuple to authorize for the bearer of the request's token."""
    dom: str = Field(min_length=1)
    obj: str = Field(min_length=1)
    act: str = Field(min_length=1)
    attrs: dict[str, Any] | None = None


class RoleDomain(BaseModel):
    role: str
    domain: str


class AuthorizeResponse(BaseModel):
    user: CallerResponse
    roles: list[RoleDomain]
    conditions: dict[str, Any]
