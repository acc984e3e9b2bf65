"""
Per-request condition evaluation.

``ConditionEvaluator`` is built once per enforcer with the injected
condition strategies. ``RequestScope`` is built per ``enforce`` call and
caches the caller id and table descriptor so that every candidate rule
shares one lookup.
"""

from typing import Any, Iterable

from ..interfaces import (
    NO_CONDITION,
    AuthorizationRequest,
    ConditionPolicy,
    Directory,
    TableDescriptor,
    UserType,
)
from .resolution import (
    MalformedAttributes,
    attributes_match,
    compact,
    resolve_conditions,
)

_UNSET: Any = object()


class UnknownCondition(Exception):
    """A rule names a condition no strategy handles."""


class ConditionEvaluator:
    """
    Dispatches a rule's condition field to its strategy.

    Usage:
        evaluator = ConditionEvaluator([OwnershipPolicy()], directory)
        scope = evaluator.scope(request, UserType.ENDUSER)
        resolved = await scope.evaluate("check_ownership", "none")
    """

    def __init__(
        self,
        strategies: Iterable[ConditionPolicy],
        directory: Directory,
        public_username: str = "public",
    ):
        self.strategies = {s.condition_type: s for s in strategies}
        self.directory = directory
        self.public_username = public_username

    def strategy(self, condition: str) -> ConditionPolicy:
        strategy = self.strategies.get(condition)
        if strategy is None:
            raise UnknownCondition(
                f"Unknown condition '{condition}'. Available: {list(self.strategies)}"
            )
        return strategy

    def scope(self, request: AuthorizationRequest, user_type: UserType) -> "RequestScope":
        return RequestScope(self, request, user_type)


class RequestScope:
    def __init__(
        self,
        evaluator: ConditionEvaluator,
        request: AuthorizationRequest,
        user_type: UserType,
    ):
        self.evaluator = evaluator
        self.request = request
        self.user_type = user_type
        self._caller_id: Any = _UNSET
        self._table: Any = _UNSET

    async def caller_id(self) -> int | None:
        if self._caller_id is _UNSET:
            if self.request.sub == self.evaluator.public_username:
                self._caller_id = None
            else:
                self._caller_id = await self.evaluator.directory.get_user_id(self.request.sub)
        return self._caller_id

    async def table(self) -> TableDescriptor | None:
        if self._table is _UNSET:
            self._table = await self.evaluator.directory.get_table(self.request.obj)
        return self._table

    async def evaluate(self, condition: str, static_attrs: str) -> dict[str, Any] | None:
        """
        Resolve and check one rule's conditions.

        Returns the compacted ``where``/``set`` on success, ``None`` when
        the rule does not hold. Malformed attrs are a plain ``None``.
        """
        condition = condition or NO_CONDITION
        strategy = None if condition == NO_CONDITION else self.evaluator.strategy(condition)

        caller_id = await self.caller_id()
        table = await self.table()
        try:
            resolved = resolve_conditions(
                self.request.act,
                self.request.attrs,
                condition,
                caller_id,
                table,
                self.user_type,
            )
        except MalformedAttributes:
            return None

        if not attributes_match(resolved, static_attrs):
            return None

        if strategy is not None:
            candidate = AuthorizationRequest(
                sub=self.request.sub,
                dom=self.request.dom,
                obj=self.request.obj,
                act=self.request.act,
                attrs=resolved,
            )
            if not await strategy.check(candidate, self.user_type, caller_id, table):
                return None

        return compact(resolved)
