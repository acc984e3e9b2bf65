"""Row ownership condition (``check_ownership``)."""

from typing import Any

from ..interfaces import (
    CREATE,
    DELETE,
    READ,
    UPDATE,
    AuthorizationRequest,
    ConditionPolicy,
    TableDescriptor,
    UserType,
)
from ..registry import AuthRegistry


def _same_id(value: Any, caller_id: int | None) -> bool:
    if caller_id is None or value is None or isinstance(value, bool):
        return False
    return str(value) == str(caller_id)


@AuthRegistry.condition("check_ownership")
class OwnershipPolicy(ConditionPolicy):
    """
    Compare the table's owner column against the caller id.

    - internal callers always pass
    - public callers never pass
    - C: ``set[owner]`` must be present and equal the caller
    - R: ``where[owner]``, when present, must equal the caller
    - U: ``where[owner]`` must be present and equal; ``set[owner]``, when
      present, must equal (ownership cannot be handed to someone else)
    - D: ``where[owner]`` must be present and equal
    - any other action fails

    Tables without an owner column have nothing to compare and pass for
    the CRUD actions.
    """

    def __init__(self, **kwargs: Any):
        pass

    @property
    def condition_type(self) -> str:
        return "check_ownership"

    def narrows_owner(self) -> bool:
        return True

    async def check(
        self,
        request: AuthorizationRequest,
        user_type: UserType,
        caller_id: int | None,
        table: TableDescriptor | None,
    ) -> bool:
        if user_type is UserType.PUBLIC:
            return False
        if user_type is UserType.INTERNAL:
            return True

        attrs = request.attrs
        if not isinstance(attrs, dict):
            return False
        where = attrs.get("where") or {}
        set_ = attrs.get("set") or {}
        if not isinstance(where, dict) or not isinstance(set_, dict):
            return False

        owner = table.owner_column if table else None
        act = request.act

        if act == CREATE:
            return not owner or _same_id(set_.get(owner), caller_id)
        if act == READ:
            return not owner or owner not in where or _same_id(where[owner], caller_id)
        if act == UPDATE:
            if not owner:
                return True
            if not _same_id(where.get(owner), caller_id):
                return False
            return owner not in set_ or _same_id(set_[owner], caller_id)
        if act == DELETE:
            return not owner or _same_id(where.get(owner), caller_id)
        return False
