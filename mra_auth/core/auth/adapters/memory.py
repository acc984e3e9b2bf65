"""
In-memory policy adapter.

For development and testing. Data is lost on restart.
"""

from typing import Iterable

from ..interfaces import PolicyAdapter, PolicyRule


class MemoryPolicyAdapter(PolicyAdapter):
    """
    Policy storage in a plain set.

    Useful for:
    - Unit testing the enforcer without a database
    - Running the service with ``AUTHZ_ADAPTER=memory``
    """

    def __init__(self, rules: Iterable[PolicyRule] = ()):
        self._rules: set[PolicyRule] = set(rules)
        self.closed = False

    async def load_policy(self) -> list[PolicyRule]:
        return sorted(self._rules)

    async def save_policy(self, rules: list[PolicyRule]) -> None:
        self._rules = set(rules)

    async def add_policy(self, rule: PolicyRule) -> bool:
        if rule in self._rules:
            return False
        self._rules.add(rule)
        return True

    async def remove_policy(self, rule: PolicyRule) -> bool:
        if rule not in self._rules:
            return False
        self._rules.discard(rule)
        return True

    async def remove_filtered_policy(
        self,
        ptype: str,
        field_index: int,
        *field_values: str,
    ) -> int:
        doomed = {
            rule
            for rule in self._rules
            if rule.ptype == ptype and rule.matches_filter(field_index, field_values)
        }
        self._rules -= doomed
        return len(doomed)

    async def close(self) -> None:
        self.closed = True
