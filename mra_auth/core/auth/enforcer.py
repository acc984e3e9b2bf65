"""
Policy enforcer.

Evaluates ``(sub, dom, obj, act, attrs)`` against an immutable snapshot
of the stored rules. Mutations write through the adapter first and then
swap in a rebuilt snapshot, so a concurrent ``enforce`` sees either the
old rule set or the new one, never a mix.

Usage:
    enforcer = Enforcer(load_model(path), adapter, evaluator, classifier)
    await enforcer.load_policy()

    decision = await enforcer.enforce_ex("alice", "0", "mra_users", "R", {})
    if decision.allowed:
        where = decision.conditions.get("where", {})
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any, Iterable

from .conditions.evaluator import ConditionEvaluator
from .conditions.resolution import MalformedAttributes, split_attrs
from .interfaces import (
    ALLOW,
    DENY,
    AuthorizationRequest,
    PolicyAdapter,
    PolicyDecision,
    PolicyRule,
    UserType,
)
from .matchers import CompositeMatcher, MatchContext
from .model import AuthzModel, Effect
from .roles import RoleAssignment, RoleGraph, UserTypeClassifier

logger = logging.getLogger(__name__)

POLICY = "p"
GROUPING = "g"
BRIDGE = "g2"


@dataclass(frozen=True)
class PolicySnapshot:
    """Sorted rules plus the role graph compiled from them."""

    rules: frozenset[PolicyRule]
    policies: tuple[PolicyRule, ...]
    roles: RoleGraph

    @classmethod
    def build(cls, rules: Iterable[PolicyRule], global_domain: str) -> "PolicySnapshot":
        rule_set = frozenset(rules)
        ordered = sorted(rule_set)
        return cls(
            rules=rule_set,
            policies=tuple(r for r in ordered if r.ptype == POLICY),
            roles=RoleGraph(
                grants=(r for r in ordered if r.ptype == GROUPING),
                bridges=(r for r in ordered if r.ptype == BRIDGE),
                global_domain=global_domain,
            ),
        )


class Enforcer:
    """
    Domain-scoped RBAC enforcer with data conditions.

    Args:
        model: Compiled model (field layout, effect, checks)
        adapter: Persistent rule storage
        conditions: Dispatcher for the rules' condition field
        classifier: Role set to UserType mapping
        public_username: Subject used for unauthenticated callers
    """

    def __init__(
        self,
        model: AuthzModel,
        adapter: PolicyAdapter,
        conditions: ConditionEvaluator,
        classifier: UserTypeClassifier,
        public_username: str = "public",
    ):
        self.model = model
        self.adapter = adapter
        self.conditions = conditions
        self.classifier = classifier
        self.public_username = public_username
        self.matcher = CompositeMatcher.from_names(model.matchers)
        self._snapshot = PolicySnapshot.build((), classifier.global_domain)

    # ============================================================
    # SNAPSHOT
    # ============================================================

    @property
    def snapshot(self) -> PolicySnapshot:
        return self._snapshot

    @property
    def roles(self) -> RoleGraph:
        return self._snapshot.roles

    def _swap(self, rules: Iterable[PolicyRule]) -> None:
        self._snapshot = PolicySnapshot.build(rules, self.classifier.global_domain)

    async def load_policy(self) -> None:
        """Replace the snapshot with what storage holds."""
        rules = await self.adapter.load_policy()
        self._swap(rules)
        logger.info(f"Policy snapshot loaded: {len(self._snapshot.rules)} rules")

    async def save_policy(self) -> None:
        await self.adapter.save_policy(sorted(self._snapshot.rules))

    # ============================================================
    # ENFORCEMENT
    # ============================================================

    def user_type_for(self, sub: str) -> UserType:
        """Classify ``sub`` from its current grants."""
        if sub == self.public_username:
            return UserType.PUBLIC
        return self.classifier.classify(self.roles_for_user_in_domains(sub))

    async def enforce_ex(
        self,
        sub: str,
        dom: str,
        obj: str,
        act: str,
        attrs: Any = None,
    ) -> PolicyDecision:
        """
        Decide a request and return the resolved conditions.

        Malformed ``attrs`` are a deny. Errors from storage or from a rule
        naming an unknown condition propagate.
        """
        try:
            split_attrs(attrs)
        except MalformedAttributes:
            return PolicyDecision.deny()

        request = AuthorizationRequest(
            sub=sub,
            dom=dom,
            obj=obj,
            act=act,
            attrs=copy.deepcopy(attrs) if attrs else {},
        )
        user_type = self.user_type_for(sub)
        snapshot = self._snapshot
        ctx = MatchContext(
            request=request,
            model=self.model,
            roles=snapshot.roles,
            scope=self.conditions.scope(request, user_type),
        )

        allowed: PolicyDecision | None = None
        deny_aware = self.model.effect is Effect.ALLOW_AND_NO_DENY
        for rule in snapshot.policies:
            if not await self.matcher.matches(rule, ctx):
                continue

            effect = ctx.field(rule, "eft") or ALLOW
            if effect == DENY:
                if deny_aware:
                    logger.debug(f"Denied by rule {rule.values}")
                    return PolicyDecision.deny(user_type=user_type)
                continue

            if allowed is None:
                allowed = PolicyDecision.allow(ctx.resolved, rule=rule, user_type=user_type)
                if not deny_aware:
                    break

        if allowed is None:
            return PolicyDecision.deny(user_type=user_type)
        return allowed

    async def enforce(
        self,
        sub: str,
        dom: str,
        obj: str,
        act: str,
        attrs: Any = None,
    ) -> bool:
        decision = await self.enforce_ex(sub, dom, obj, act, attrs)
        return decision.allowed

    # ============================================================
    # MUTATIONS (write-through)
    # ============================================================

    async def add_policy(self, rule: PolicyRule) -> bool:
        """Persist a rule. Returns False if it already existed."""
        added = await self.adapter.add_policy(rule)
        if added or rule not in self._snapshot.rules:
            self._swap(self._snapshot.rules | {rule})
        return added

    async def add_policies(self, rules: Iterable[PolicyRule]) -> int:
        count = 0
        for rule in rules:
            if await self.add_policy(rule):
                count += 1
        return count

    async def remove_policy(self, rule: PolicyRule) -> bool:
        """Delete a rule. Returns False if it did not exist."""
        removed = await self.adapter.remove_policy(rule)
        if rule in self._snapshot.rules:
            self._swap(self._snapshot.rules - {rule})
        return removed

    async def remove_filtered_policy(self, ptype: str, field_index: int, *field_values: str) -> int:
        removed = await self.adapter.remove_filtered_policy(ptype, field_index, *field_values)
        doomed = set(self.get_filtered_policy(ptype, field_index, *field_values))
        if doomed:
            self._swap(self._snapshot.rules - doomed)
        return removed

    async def add_grouping_policy(self, name: str, role: str, domain: str) -> bool:
        return await self.add_policy(PolicyRule.of(GROUPING, name, role, domain))

    async def remove_grouping_policy(self, name: str, role: str, domain: str) -> bool:
        return await self.remove_policy(PolicyRule.of(GROUPING, name, role, domain))

    async def delete_roles_for_user(self, name: str, domain: str | None = None) -> int:
        """Remove every grant of ``name``, in one domain or in all of them."""
        if domain is None:
            return await self.remove_filtered_policy(GROUPING, 0, name)
        return await self.remove_filtered_policy(GROUPING, 0, name, "", domain)

    # ============================================================
    # QUERIES
    # ============================================================

    def get_filtered_policy(self, ptype: str, field_index: int, *field_values: str) -> list[PolicyRule]:
        return [
            rule
            for rule in sorted(self._snapshot.rules)
            if rule.ptype == ptype and rule.matches_filter(field_index, field_values)
        ]

    def get_roles_for_user(self, name: str, domain: str) -> list[str]:
        return self.roles.roles_for(name, domain)

    def get_users_for_role(self, role: str, domain: str) -> list[str]:
        return self.roles.users_for(role, domain)

    def get_domains_for_user(self, name: str) -> list[str]:
        return self.roles.domains_for(name)

    def roles_for_user_in_domains(self, name: str) -> list[RoleAssignment]:
        roles = self.roles
        return [
            RoleAssignment(role=role, domain=domain)
            for domain in roles.domains_for(name)
            for role in roles.roles_for(name, domain)
        ]

    # ============================================================
    # LIFECYCLE
    # ============================================================

    async def close(self) -> None:
        await self.adapter.close()
