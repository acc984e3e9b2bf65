"""
Protocols for swappable backends.
"""

from .email import Delivery, EmailBackend, EmailKind, EmailMessage, Recipient

__all__ = [
    "Delivery",
    "EmailBackend",
    "EmailKind",
    "EmailMessage",
    "Recipient",
]
