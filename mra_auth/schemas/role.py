"""
Role grant and policy schemas.
"""

import json
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from .user import USERNAME_PATTERN

DOMAIN_PATTERN = r"^\d+$"

Action = Literal["C", "R", "U", "D", "GC", "GR", "GU", "GD"]
Effect = Literal["allow", "deny"]
Condition = Literal["check_relationship", "check_ownership", "none"]


def parse_attributes(value: Any) -> Any:
    """Attributes arrive as an object or as a JSON string."""
    if isinstance(value, str) and value not in ("", "none"):
        try:
            value = json.loads(value)
        except ValueError:
            raise ValueError("Attributes must be a valid JSON object.")
    if value not in (None, "", "none") and not isinstance(value, dict):
        raise ValueError("Attributes must be a valid JSON object.")
    return value


class UserRoleRequest(BaseModel):
    """Grant or revoke one role; ``username`` defaults to the caller."""
    username: str | None = Field(None, min_length=5, max_length=30, pattern=USERNAME_PATTERN)
    role: str = Field(min_length=1, max_length=255)
    domain: str = Field("0", pattern=DOMAIN_PATTERN)

    @field_validator("username")
    @classmethod
    def lower_username(cls, v: str | None) -> str | None:
        return v.lower() if v else v


class PolicyFilter(BaseModel):
    """Policy query; empty fields match anything."""
    subject: str | None = None
    domain: str = Field(pattern=DOMAIN_PATTERN)
    object: str | None = None
    action: Action | Literal[""] | None = None
    condition: Condition | Literal[""] | None = None
    attributes: Any = None
    effect: Effect | Literal[""] | None = None

    attributes_format = field_validator("attributes")(parse_attributes)


class PolicyCreate(BaseModel):
    subject: str = Field(min_length=1)
    domain: str = Field(pattern=DOMAIN_PATTERN)
    object: str = Field(min_length=1)
    action: Action
    effect: Effect
    condition: Condition = "none"
    attributes: Any = None

    attributes_format = field_validator("attributes")(parse_attributes)

    @field_validator("condition", mode="before")
    @classmethod
    def default_condition(cls, v: Any) -> Any:
        return "none" if v is None else v


class PolicyResponse(BaseModel):
    subject: str
    domain: str
    object: str
    action: str
    condition: str
    attributes: str
    effect: str


class RemovedResponse(BaseModel):
    result: int
