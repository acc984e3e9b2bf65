"""
Database models.
"""

from .base import (
    Base,
    JSONType,
    TimestampMixin,
    AuditMixin,
)
from .user import MraUser, MraTable, MraUserCustomer, MraTokenBlacklist
from .audit_log import MraAuditLog
from .casbin_rule import CasbinRule, RULE_FIELDS

__all__ = [
    # Base
    "Base",
    "JSONType",
    # Mixins
    "TimestampMixin",
    "AuditMixin",
    # Models
    "MraUser",
    "MraTable",
    "MraUserCustomer",
    "MraTokenBlacklist",
    "MraAuditLog",
    "CasbinRule",
    "RULE_FIELDS",
]
