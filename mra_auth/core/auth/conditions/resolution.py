"""
Condition resolution and static attribute matching.

Before a rule's dynamic condition runs, the caller's proposed ``where``
and ``set`` are narrowed with server-trusted values: reads scoped by an
ownership rule default to the caller's own rows, and creator/updator
columns are stamped with the caller id.
"""

import json
from typing import Any

from ..interfaces import (
    CREATE,
    NO_ATTRIBUTES,
    READ,
    UPDATE,
    TableDescriptor,
    UserType,
)

OWNERSHIP = "check_ownership"


class MalformedAttributes(ValueError):
    """``attrs``, ``where`` or ``set`` is not a mapping."""


def split_attrs(attrs: Any) -> tuple[dict[str, Any], dict[str, Any]]:
    """Return copies of ``where`` and ``set``; missing parts are empty."""
    if attrs is None:
        return {}, {}
    if not isinstance(attrs, dict):
        raise MalformedAttributes("attrs must be an object")

    where = attrs.get("where")
    set_ = attrs.get("set")
    if where is None:
        where = {}
    if set_ is None:
        set_ = {}
    if not isinstance(where, dict) or not isinstance(set_, dict):
        raise MalformedAttributes("attrs.where and attrs.set must be objects")
    return dict(where), dict(set_)


def resolve_conditions(
    act: str,
    attrs: Any,
    condition: str,
    caller_id: int | None,
    table: TableDescriptor | None,
    user_type: UserType,
) -> dict[str, dict[str, Any]]:
    """
    Narrow the proposed attrs for one rule.

    Returns ``{"where": ..., "set": ...}``, both always present.
    Update and delete filters on the owner column are never defaulted;
    leaving them out is a deny for ownership rules.
    """
    where, set_ = split_attrs(attrs)
    if not caller_id or caller_id <= 0 or table is None:
        return {"where": where, "set": set_}

    owner = table.owner_column
    if act == READ and condition == OWNERSHIP and owner and user_type is not UserType.INTERNAL:
        where.setdefault(owner, caller_id)
    elif act == CREATE and table.creator_column:
        _stamp(set_, table.creator_column, caller_id, owner)
    elif act == UPDATE and table.updator_column:
        _stamp(set_, table.updator_column, caller_id, owner)

    return {"where": where, "set": set_}


def _stamp(values: dict[str, Any], column: str, caller_id: int, owner: str | None) -> None:
    # A client-supplied owner value is kept so the ownership check sees it
    if column == owner:
        values.setdefault(column, caller_id)
    else:
        values[column] = caller_id


def compact(resolved: dict[str, dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """Drop empty ``where``/``set`` from resolved conditions."""
    return {key: value for key, value in resolved.items() if value}


def parse_static_attrs(raw: str) -> dict[str, Any] | None:
    """Parse a rule's attributes field; ``none`` or empty means no constraint."""
    if not raw or raw == NO_ATTRIBUTES:
        return None
    parsed = json.loads(raw)
    if not isinstance(parsed, dict):
        raise ValueError(f"Policy attributes must be a JSON object: {raw!r}")
    return parsed


def attributes_match(resolved: dict[str, dict[str, Any]], raw: str) -> bool:
    """
    Deep equality between resolved attrs and a rule's static attributes.

    A rule that only names ``where`` is compared as if ``set`` were empty.
    """
    expected = parse_static_attrs(raw)
    if expected is None:
        return True
    normalized = {"where": expected.get("where") or {}, "set": expected.get("set") or {}}
    extra = set(expected) - {"where", "set"}
    if extra:
        return False
    return normalized == {"where": resolved["where"], "set": resolved["set"]}
