"""
Matcher checks.

A model's ``m = role && domain && object && action && condition`` line is
compiled into a ``CompositeMatcher`` holding one instance of each named
check. Every check answers a single question about one policy rule.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from .interfaces import AuthorizationRequest, PolicyRule, WILDCARD
from .registry import AuthRegistry

if TYPE_CHECKING:
    from .conditions.evaluator import RequestScope
    from .model import AuthzModel
    from .roles import RoleGraph


@dataclass
class MatchContext:
    """Per-request state shared by the checks while rules are scanned."""

    request: AuthorizationRequest
    model: "AuthzModel"
    roles: "RoleGraph"
    scope: "RequestScope"
    # Conditions resolved by the last rule that passed the condition check
    resolved: dict[str, Any] = field(default_factory=dict)

    def field(self, rule: PolicyRule, name: str) -> str:
        index = self.model.policy_index(name)
        if index is None:
            return ""
        return rule.value(index)


class Matcher(ABC):
    """One named check of the matcher line."""

    name: str = ""

    @abstractmethod
    async def matches(self, rule: PolicyRule, ctx: MatchContext) -> bool:
        pass


@lru_cache(maxsize=1024)
def _key_pattern(key: str) -> re.Pattern[str]:
    return re.compile(".*".join(re.escape(part) for part in key.split(WILDCARD)))


def key_match(value: str, key: str) -> bool:
    """
    Wildcard match: ``*`` in ``key`` matches any run of characters.

    >>> key_match("mra_users", "mra_*")
    True
    """
    if key == WILDCARD or value == key:
        return True
    if WILDCARD not in key:
        return False
    return _key_pattern(key).fullmatch(value) is not None


@AuthRegistry.matcher("role")
class RoleMatch(Matcher):
    """The subject holds the rule's role in the request domain."""

    name = "role"

    def __init__(self, **kwargs: Any):
        pass

    async def matches(self, rule: PolicyRule, ctx: MatchContext) -> bool:
        role = ctx.field(rule, "sub")
        if not role:
            return False
        if role == ctx.request.sub:
            return True
        return ctx.roles.has_role(ctx.request.sub, role, ctx.request.dom)


@AuthRegistry.matcher("domain")
class DomainMatch(Matcher):
    name = "domain"

    def __init__(self, **kwargs: Any):
        pass

    async def matches(self, rule: PolicyRule, ctx: MatchContext) -> bool:
        domain = ctx.field(rule, "dom")
        return domain == WILDCARD or domain == ctx.request.dom


@AuthRegistry.matcher("object")
class ObjectMatch(Matcher):
    name = "object"

    def __init__(self, **kwargs: Any):
        pass

    async def matches(self, rule: PolicyRule, ctx: MatchContext) -> bool:
        return key_match(ctx.request.obj, ctx.field(rule, "obj"))


@AuthRegistry.matcher("action")
class ActionMatch(Matcher):
    name = "action"

    def __init__(self, **kwargs: Any):
        pass

    async def matches(self, rule: PolicyRule, ctx: MatchContext) -> bool:
        action = ctx.field(rule, "act")
        return action == WILDCARD or action == ctx.request.act


@AuthRegistry.matcher("condition")
class ConditionMatch(Matcher):
    """
    Static attributes and dynamic condition of the rule.

    On success the resolved ``where``/``set`` are left on the context for
    the enforcer to return with the decision.
    """

    name = "condition"

    def __init__(self, **kwargs: Any):
        pass

    async def matches(self, rule: PolicyRule, ctx: MatchContext) -> bool:
        resolved = await ctx.scope.evaluate(
            condition=ctx.field(rule, "cond"),
            static_attrs=ctx.field(rule, "attrs"),
        )
        if resolved is None:
            return False
        ctx.resolved = resolved
        return True


class CompositeMatcher(Matcher):
    """All checks must pass, evaluated in declared order."""

    name = "composite"

    def __init__(self, checks: list[Matcher]):
        self.checks = checks

    @classmethod
    def from_names(cls, names: tuple[str, ...] | list[str]) -> "CompositeMatcher":
        return cls([AuthRegistry.get_matcher(name) for name in names])

    async def matches(self, rule: PolicyRule, ctx: MatchContext) -> bool:
        for check in self.checks:
            if not await check.matches(rule, ctx):
                return False
        return True
