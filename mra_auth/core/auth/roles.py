"""
Role graph and user-type classification.

The graph is compiled once per policy load from the ``g`` (user/role to
role, per domain) and ``g2`` (role bridged from the global domain to other
domains) rules. Lookups during enforcement never re-scan the rule list.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from .interfaces import PolicyRule, UserType, WILDCARD

MAX_ROLE_DEPTH = 10


class RoleGraph:
    """
    Domain-scoped role inheritance.

    ``g, alice, enduser, 0`` makes alice an enduser in domain ``0``; a role
    can itself be granted another role in the same domain. ``g2, support, *``
    lets a ``support`` grant held in the global domain apply in every
    domain (or only in the named one).
    """

    def __init__(
        self,
        grants: Iterable[PolicyRule],
        bridges: Iterable[PolicyRule] = (),
        global_domain: str = "0",
    ):
        self.global_domain = global_domain
        # domain -> name -> directly granted roles
        self._links: dict[str, dict[str, set[str]]] = defaultdict(lambda: defaultdict(set))
        # name -> domains it holds grants in
        self._domains: dict[str, set[str]] = defaultdict(set)
        # role -> domains its global grant reaches
        self._bridges: dict[str, set[str]] = defaultdict(set)
        self._closure: dict[tuple[str, str], frozenset[str]] = {}
        self._effective: dict[tuple[str, str], frozenset[str]] = {}

        for rule in grants:
            name, role, domain = rule.value(0), rule.value(1), rule.value(2)
            if not name or not role:
                continue
            self._links[domain][name].add(role)
            self._domains[name].add(domain)

        for rule in bridges:
            role, target = rule.value(0), rule.value(1)
            if role and target:
                self._bridges[role].add(target)

    # ============================================================
    # DIRECT LOOKUPS
    # ============================================================

    def roles_for(self, name: str, domain: str) -> list[str]:
        """Roles granted directly to ``name`` in ``domain``."""
        return sorted(self._links.get(domain, {}).get(name, ()))

    def domains_for(self, name: str) -> list[str]:
        """Domains in which ``name`` holds at least one direct grant."""
        return sorted(self._domains.get(name, ()))

    def users_for(self, role: str, domain: str) -> list[str]:
        """Names holding ``role`` directly in ``domain``."""
        links = self._links.get(domain, {})
        return sorted(name for name, roles in links.items() if role in roles)

    def bridged_domains(self, role: str) -> frozenset[str]:
        return frozenset(self._bridges.get(role, ()))

    # ============================================================
    # TRANSITIVE LOOKUPS
    # ============================================================

    def _closure_in(self, name: str, domain: str) -> frozenset[str]:
        key = (name, domain)
        cached = self._closure.get(key)
        if cached is not None:
            return cached

        links = self._links.get(domain, {})
        seen: set[str] = set()
        frontier = set(links.get(name, ()))
        depth = 0
        while frontier and depth < MAX_ROLE_DEPTH:
            seen |= frontier
            nxt: set[str] = set()
            for role in frontier:
                nxt |= links.get(role, set())
            frontier = nxt - seen
            depth += 1

        result = frozenset(seen)
        self._closure[key] = result
        return result

    def _bridges_to(self, role: str, domain: str) -> bool:
        targets = self._bridges.get(role)
        if not targets:
            return False
        return WILDCARD in targets or domain in targets

    def effective_roles(self, name: str, domain: str) -> frozenset[str]:
        """
        Every role ``name`` holds in ``domain``.

        Includes inherited roles and global-domain roles bridged into
        ``domain`` (plus whatever those roles inherit there).
        """
        key = (name, domain)
        cached = self._effective.get(key)
        if cached is not None:
            return cached

        roles = set(self._closure_in(name, domain))
        if domain != self.global_domain:
            for role in self._closure_in(name, self.global_domain):
                if self._bridges_to(role, domain):
                    roles.add(role)
                    roles |= self._closure_in(role, domain)

        result = frozenset(roles)
        self._effective[key] = result
        return result

    def has_role(self, name: str, role: str, domain: str) -> bool:
        return role in self.effective_roles(name, domain)


# ============================================================
# USER TYPE
# ============================================================

@dataclass(frozen=True)
class RoleAssignment:
    """A ``{role, domain}`` pair as returned to API clients."""

    role: str
    domain: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "domain": self.domain}


@dataclass(frozen=True)
class UserTypeClassifier:
    """
    Pure mapping from a role set to a UserType.

    - an internal role held in the global domain -> internal
    - any grant outside the global domain -> customer
    - any other grant -> enduser
    - no grants -> public
    """

    internal_roles: frozenset[str] = field(default_factory=frozenset)
    global_domain: str = "0"

    def classify(self, roles: Iterable[RoleAssignment | dict[str, str]]) -> UserType:
        assignments = [
            r if isinstance(r, RoleAssignment) else RoleAssignment(r["role"], r["domain"])
            for r in roles
        ]
        if not assignments:
            return UserType.PUBLIC

        if any(
            a.role in self.internal_roles and a.domain == self.global_domain
            for a in assignments
        ):
            return UserType.INTERNAL

        if any(a.domain != self.global_domain for a in assignments):
            return UserType.CUSTOMER

        return UserType.ENDUSER
