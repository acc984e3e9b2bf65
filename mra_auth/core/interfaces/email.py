"""
Outgoing account email contract.

Backends only deliver messages. The wording of each account email lives in
``mra_auth.services.email``.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class EmailKind(str, Enum):
    ACTIVATION = "activation"
    RESET_PASSWORD = "reset_password"
    USERNAMES = "usernames"


@dataclass(frozen=True)
class Recipient:
    email: str
    name: str | None = None

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>" if self.name else self.email


@dataclass
class EmailMessage:
    kind: EmailKind
    to: list[Recipient]
    subject: str
    text: str
    html: str | None = None
    sender: Recipient | None = None


@dataclass
class Delivery:
    """Outcome reported by a backend; ``error`` is set when ``delivered`` is false."""
    message_id: str
    delivered: bool = True
    error: str | None = None


class EmailBackend(Protocol):
    async def send(self, message: EmailMessage) -> Delivery:
        ...
