"""
Authorization interfaces - Core abstractions.

These define the contracts shared by the enforcer, the condition
strategies, and the policy storage adapters. Route code depends on the
enforcer and on these types, never on a concrete adapter.

Policy rule layout (``casbin_rule`` table):

    p,  sub-role, domain, object, action, condition, attributes, effect
    g,  user, role, domain
    g2, role, target-domain
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


# ============================================================
# CONSTANTS
# ============================================================

CREATE = "C"
READ = "R"
UPDATE = "U"
DELETE = "D"

CRUD_ACTIONS = (CREATE, READ, UPDATE, DELETE)
GRANT_ACTIONS = tuple(f"G{action}" for action in CRUD_ACTIONS)

ALLOW = "allow"
DENY = "deny"

NO_CONDITION = "none"
NO_ATTRIBUTES = "none"

WILDCARD = "*"


class UserType(str, Enum):
    """Caller classification derived from the caller's role set."""

    PUBLIC = "public"
    ENDUSER = "enduser"
    CUSTOMER = "customer"
    INTERNAL = "internal"


# ============================================================
# POLICY RULES
# ============================================================

@dataclass(frozen=True, order=True)
class PolicyRule:
    """
    A stored rule: its type plus up to seven positional values.

    Trailing empty values are dropped so that ``("g", "bob", "enduser", "0")``
    compares equal however it was persisted.
    """

    ptype: str
    values: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        values = tuple("" if v is None else str(v) for v in self.values)
        while values and values[-1] == "":
            values = values[:-1]
        object.__setattr__(self, "values", values)

    @classmethod
    def of(cls, ptype: str, *values: Any) -> "PolicyRule":
        return cls(ptype=ptype, values=tuple(values))

    def value(self, index: int) -> str:
        """Get a positional value, empty string when absent."""
        if index < len(self.values):
            return self.values[index]
        return ""

    def matches_filter(self, field_index: int, field_values: tuple[str, ...]) -> bool:
        """Casbin-style filter: empty filter values match anything."""
        for offset, expected in enumerate(field_values):
            if expected in ("", None):
                continue
            if self.value(field_index + offset) != expected:
                return False
        return True


@dataclass(frozen=True)
class TableDescriptor:
    """Ownership metadata for an object (``mra_tables`` row)."""

    table_name: str
    owner_column: str | None = None
    creator_column: str | None = None
    updator_column: str | None = None
    domain_column: str | None = None


# ============================================================
# REQUESTS AND DECISIONS
# ============================================================

@dataclass
class AuthorizationRequest:
    """
    Ephemeral authorization tuple.

    ``attrs`` holds the proposed ``where`` filter and ``set`` payload.
    """

    sub: str
    dom: str
    obj: str
    act: str
    attrs: dict[str, Any] = field(default_factory=dict)

    @property
    def where(self) -> dict[str, Any]:
        return self.attrs.setdefault("where", {})

    @property
    def set(self) -> dict[str, Any]:
        return self.attrs.setdefault("set", {})


@dataclass
class PolicyDecision:
    """
    Result of a policy evaluation.

    Attributes:
        allowed: Whether the action is permitted
        conditions: Server-trusted ``where``/``set`` the caller must use
        rule: The rule that produced an allow, if any
        user_type: Classification the decision was made under
    """

    allowed: bool
    conditions: dict[str, Any] = field(default_factory=dict)
    rule: PolicyRule | None = None
    user_type: UserType | None = None

    @classmethod
    def allow(
        cls,
        conditions: dict[str, Any] | None = None,
        rule: PolicyRule | None = None,
        user_type: UserType | None = None,
    ) -> "PolicyDecision":
        return cls(allowed=True, conditions=conditions or {}, rule=rule, user_type=user_type)

    @classmethod
    def deny(cls, user_type: UserType | None = None) -> "PolicyDecision":
        return cls(allowed=False, user_type=user_type)


# ============================================================
# CONDITION STRATEGIES
# ============================================================

class ConditionPolicy(ABC):
    """
    Data-level check attached to a policy rule's condition field.

    Implementations are injected into the enforcer at construction and
    looked up by ``condition_type``. ``check`` must return ``False`` for
    malformed attrs rather than raise; only unexpected failures such as
    storage errors may propagate.
    """

    @property
    @abstractmethod
    def condition_type(self) -> str:
        """Value of the policy condition field this strategy handles."""
        pass

    @abstractmethod
    async def check(
        self,
        request: AuthorizationRequest,
        user_type: UserType,
        caller_id: int | None,
        table: TableDescriptor | None,
    ) -> bool:
        pass

    def narrows_owner(self) -> bool:
        """Whether read/delete filters default to the caller's rows."""
        return False


class Directory(Protocol):
    """Lookups the condition strategies need from the user database."""

    async def get_user_id(self, username: str) -> int | None: ...

    async def get_table(self, table_name: str) -> TableDescriptor | None: ...

    async def has_valid_relationship(self, user_id: int, customer_id: str) -> bool: ...

    async def get_row(self, table_name: str, column: str, value: Any) -> dict[str, Any] | None: ...


# ============================================================
# POLICY STORAGE
# ============================================================

class PolicyAdapter(ABC):
    """
    Persisted policy storage.

    Writes are expected to be idempotent: adding an existing rule or
    removing a missing one returns ``False`` instead of raising.
    """

    @abstractmethod
    async def load_policy(self) -> list[PolicyRule]:
        pass

    @abstractmethod
    async def save_policy(self, rules: list[PolicyRule]) -> None:
        """Replace the stored rule set."""
        pass

    @abstractmethod
    async def add_policy(self, rule: PolicyRule) -> bool:
        pass

    @abstractmethod
    async def remove_policy(self, rule: PolicyRule) -> bool:
        pass

    @abstractmethod
    async def remove_filtered_policy(
        self,
        ptype: str,
        field_index: int,
        *field_values: str,
    ) -> int:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass
