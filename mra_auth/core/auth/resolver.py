"""
Role resolver - role grants and policy helpers on top of the enforcer.

Usernames are normalised (trimmed, lower-cased) on the way in. Every
mutation is idempotent and written through to storage before returning.
"""

import json
from typing import Any

import structlog

from .enforcer import POLICY, Enforcer
from .interfaces import (
    ALLOW,
    NO_ATTRIBUTES,
    NO_CONDITION,
    WILDCARD,
    PolicyRule,
    UserType,
)
from .roles import RoleAssignment

logger = structlog.get_logger()

POLICY_KEYS = ("subject", "domain", "object", "action", "condition", "attributes", "effect")


def normalize_username(username: str) -> str:
    return username.strip().lower()


def encode_attributes(attributes: Any) -> str:
    """Policy attributes are stored as compact JSON, or ``none``."""
    if attributes in (None, "", NO_ATTRIBUTES):
        return NO_ATTRIBUTES
    if isinstance(attributes, str):
        attributes = json.loads(attributes)
    return json.dumps(attributes, separators=(",", ":"), sort_keys=True)


def policy_to_dict(rule: PolicyRule) -> dict[str, str]:
    return {key: rule.value(i) for i, key in enumerate(POLICY_KEYS)}


class RoleResolver:
    """
    Grant and policy management.

    Usage:
        resolver = RoleResolver(enforcer)
        await resolver.add_role_for_user_in_domain("Bob ", "enduser", "0")
        resolver.list_roles_for_user_in_domains("bob")
        # [{"role": "enduser", "domain": "0"}]
    """

    def __init__(self, enforcer: Enforcer):
        self.enforcer = enforcer

    # ============================================================
    # ROLE QUERIES
    # ============================================================

    def list_roles_for_user_in_domain(self, username: str, domain: str) -> list[str]:
        return self.enforcer.get_roles_for_user(normalize_username(username), domain)

    def list_roles_for_user_in_domains(self, username: str) -> list[dict[str, str]]:
        """Every direct grant of the user as ``{role, domain}`` pairs."""
        assignments = self.enforcer.roles_for_user_in_domains(normalize_username(username))
        return [a.to_dict() for a in assignments]

    def list_roles_for_user(self, username: str) -> list[str]:
        """Distinct role names across all domains."""
        assignments = self.enforcer.roles_for_user_in_domains(normalize_username(username))
        return sorted({a.role for a in assignments})

    def has_role_for_user_in_domain(self, username: str, role: str, domain: str) -> bool:
        return role in self.list_roles_for_user_in_domain(username, domain)

    def get_user_type(self, roles: list[dict[str, str]] | list[RoleAssignment]) -> UserType:
        return self.enforcer.classifier.classify(roles)

    def get_user_type_for(self, username: str) -> UserType:
        return self.enforcer.user_type_for(normalize_username(username))

    def get_users_for_role_in_domain(self, role: str, domain: str) -> list[str]:
        return self.enforcer.get_users_for_role(role, domain)

    def get_roles_in_domain(
        self,
        role: str | None = None,
        domain: str | None = None,
    ) -> list[dict[str, str]]:
        """
        Roles that have policies in a domain.

        Rules written for every domain (``*``) count for any domain asked
        about. Both filters are optional.
        """
        found: set[tuple[str, str]] = set()
        for rule in self.enforcer.get_filtered_policy(POLICY, 0):
            rule_role, rule_domain = rule.value(0), rule.value(1)
            if role and rule_role != role:
                continue
            if domain and rule_domain not in (domain, WILDCARD):
                continue
            found.add((rule_role, rule_domain))
        return [{"role": r, "domain": d} for r, d in sorted(found)]

    def get_permissions_for_role_in_domain(self, role: str, domain: str) -> list[list[str]]:
        """``[object, action]`` pairs the role is granted in the domain."""
        return [
            [rule.value(2), rule.value(3)]
            for rule in self.enforcer.get_filtered_policy(POLICY, 0, role, domain)
        ]

    # ============================================================
    # ROLE MUTATIONS
    # ============================================================

    async def add_role_for_user_in_domain(self, username: str, role: str, domain: str) -> bool:
        username = normalize_username(username)
        added = await self.enforcer.add_grouping_policy(username, role, domain)
        if added:
            logger.info("Role granted", username=username, role=role, domain=domain)
        return added

    async def remove_role_for_user_in_domain(self, username: str, role: str, domain: str) -> bool:
        username = normalize_username(username)
        removed = await self.enforcer.remove_grouping_policy(username, role, domain)
        if removed:
            logger.info("Role revoked", username=username, role=role, domain=domain)
        return removed

    async def remove_roles_for_user_in_domain(self, username: str, domain: str) -> int:
        username = normalize_username(username)
        count = await self.enforcer.delete_roles_for_user(username, domain)
        if count:
            logger.info("Roles revoked in domain", username=username, domain=domain, count=count)
        return count

    async def remove_roles_for_user_in_all_domains(self, username: str) -> int:
        username = normalize_username(username)
        count = await self.enforcer.delete_roles_for_user(username)
        if count:
            logger.info("Roles revoked in all domains", username=username, count=count)
        return count

    # ============================================================
    # POLICY HELPERS
    # ============================================================

    async def add_policy_in_domain(
        self,
        subject: str,
        domain: str,
        object: str,
        action: str,
        condition: str | None = None,
        attributes: Any = None,
        effect: str | None = None,
    ) -> bool:
        rule = PolicyRule.of(
            POLICY,
            subject,
            domain,
            object,
            action,
            condition or NO_CONDITION,
            encode_attributes(attributes),
            effect or ALLOW,
        )
        added = await self.enforcer.add_policy(rule)
        if added:
            logger.info("Policy added", policy=policy_to_dict(rule))
        return added

    def _policy_filter(
        self,
        subject: str | None,
        domain: str | None,
        object: str | None,
        action: str | None,
        condition: str | None,
        attributes: Any,
        effect: str | None,
    ) -> tuple[str, ...]:
        encoded = "" if attributes in (None, "") else encode_attributes(attributes)
        return tuple(
            value or ""
            for value in (subject, domain, object, action, condition, encoded, effect)
        )

    def get_policies_in_domain(
        self,
        subject: str | None = None,
        domain: str | None = None,
        object: str | None = None,
        action: str | None = None,
        condition: str | None = None,
        attributes: Any = None,
        effect: str | None = None,
    ) -> list[dict[str, str]]:
        """Policies matching every given field; empty fields match anything."""
        values = self._policy_filter(subject, domain, object, action, condition, attributes, effect)
        return [policy_to_dict(rule) for rule in self.enforcer.get_filtered_policy(POLICY, 0, *values)]

    async def remove_policies_in_domain(
        self,
        subject: str | None = None,
        domain: str | None = None,
        object: str | None = None,
        action: str | None = None,
        condition: str | None = None,
        attributes: Any = None,
        effect: str | None = None,
    ) -> int:
        values = self._policy_filter(subject, domain, object, action, condition, attributes, effect)
        count = await self.enforcer.remove_filtered_policy(POLICY, 0, *values)
        if count:
            logger.info("Policies removed", filter=values, count=count)
        return count

    async def delete_policies_for_domain(self, domain: str) -> int:
        """Remove every policy (not grant) stored for ``domain``."""
        return await self.enforcer.remove_filtered_policy(POLICY, 1, domain)

