"""Customer relationship condition (``check_relationship``)."""

from typing import Any

from ..interfaces import (
    CREATE,
    DELETE,
    READ,
    UPDATE,
    AuthorizationRequest,
    ConditionPolicy,
    Directory,
    TableDescriptor,
    UserType,
)
from ..registry import AuthRegistry

MAX_REFERENCE_DEPTH = 5


@AuthRegistry.condition("check_relationship")
class RelationshipPolicy(ConditionPolicy):
    """
    The caller must have a valid relationship with the request domain,
    and the row must belong to that domain.

    The table's ``domain_column`` is read from ``set`` for C/U and from
    ``where`` for R/D. A column written as ``other_table.column`` means the
    value is a key into ``other_table``, whose own ``domain_column`` is
    followed until a plain column is reached.

    Configuration:
        directory: lookup of relationships, tables and referenced rows
    """

    def __init__(self, directory: Directory | None = None, **kwargs: Any):
        self.directory = directory

    @property
    def condition_type(self) -> str:
        return "check_relationship"

    async def check(
        self,
        request: AuthorizationRequest,
        user_type: UserType,
        caller_id: int | None,
        table: TableDescriptor | None,
    ) -> bool:
        if user_type is UserType.PUBLIC or caller_id is None or self.directory is None:
            return False

        attrs = request.attrs
        if not isinstance(attrs, dict):
            return False

        if request.act in (CREATE, UPDATE):
            target = attrs.get("set") or {}
        elif request.act in (READ, DELETE):
            target = attrs.get("where") or {}
        else:
            return False
        if not isinstance(target, dict):
            return False

        if not await self.directory.has_valid_relationship(caller_id, request.dom):
            return False

        domain_column = table.domain_column if table else None
        if not domain_column:
            return False
        return await self._resolve(domain_column, target, request.dom, 0)

    async def _resolve(
        self,
        domain_column: str,
        row: dict[str, Any],
        domain: str,
        depth: int,
    ) -> bool:
        if "." not in domain_column:
            value = row.get(domain_column)
            return value is not None and str(value) == domain

        if depth >= MAX_REFERENCE_DEPTH:
            return False

        table_name, column = domain_column.split(".", 1)
        key = row.get(column)
        if key is None:
            return False

        referenced = await self.directory.get_table(table_name)
        if referenced is None or not referenced.domain_column:
            return False

        referenced_row = await self.directory.get_row(table_name, column, key)
        if referenced_row is None:
            return False

        return await self._resolve(referenced.domain_column, referenced_row, domain, depth + 1)
