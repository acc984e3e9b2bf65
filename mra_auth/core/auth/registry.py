"""
Authorization component registry.

Matcher checks and condition strategies register themselves by name so
that a model file can name the checks it composes, and so the default
enforcer can be assembled without a hand-written factory.

Usage:
    @AuthRegistry.matcher("object")
    class ObjectMatch(Matcher):
        ...

    # Later, get by name:
    check = AuthRegistry.get_matcher("object")
"""

from typing import Type, Callable, Any
from .interfaces import ConditionPolicy


class AuthRegistry:
    """
    Central registry for authorization components.

    Components register themselves using decorators.
    """

    _matchers: dict[str, Type[Any]] = {}
    _conditions: dict[str, Type[ConditionPolicy]] = {}

    # ============================================================
    # REGISTRATION DECORATORS
    # ============================================================

    @classmethod
    def matcher(cls, name: str) -> Callable[[Type[Any]], Type[Any]]:
        """
        Decorator to register a matcher check.

        Usage:
            @AuthRegistry.matcher("role")
            class RoleMatch(Matcher):
                ...
        """
        def decorator(matcher_class: Type[Any]) -> Type[Any]:
            cls._matchers[name] = matcher_class
            return matcher_class
        return decorator

    @classmethod
    def condition(cls, condition_type: str) -> Callable[[Type[ConditionPolicy]], Type[ConditionPolicy]]:
        """
        Decorator to register a condition strategy.

        Usage:
            @AuthRegistry.condition("check_ownership")
            class OwnershipPolicy(ConditionPolicy):
                ...
        """
        def decorator(policy_class: Type[ConditionPolicy]) -> Type[ConditionPolicy]:
            cls._conditions[condition_type] = policy_class
            return policy_class
        return decorator

    # ============================================================
    # GETTERS
    # ============================================================

    @classmethod
    def get_matcher(cls, name: str, **kwargs: Any) -> Any:
        """
        Get a matcher check by name.

        Raises:
            ValueError: If the check is not registered
        """
        matcher_class = cls._matchers.get(name)
        if not matcher_class:
            available = list(cls._matchers.keys())
            raise ValueError(
                f"Unknown matcher check: '{name}'. "
                f"Available: {available}"
            )
        return matcher_class(**kwargs)

    @classmethod
    def get_condition(cls, condition_type: str, **kwargs: Any) -> ConditionPolicy:
        """
        Get a condition strategy by type.

        Raises:
            ValueError: If the condition type is not registered
        """
        policy_class = cls._conditions.get(condition_type)
        if not policy_class:
            available = list(cls._conditions.keys())
            raise ValueError(
                f"Unknown condition type: '{condition_type}'. "
                f"Available: {available}"
            )
        return policy_class(**kwargs)

    # ============================================================
    # INTROSPECTION
    # ============================================================

    @classmethod
    def list_matchers(cls) -> list[str]:
        """List all registered matcher check names."""
        return list(cls._matchers.keys())

    @classmethod
    def list_conditions(cls) -> list[str]:
        """List all registered condition types."""
        return list(cls._conditions.keys())

    @classmethod
    def has_matcher(cls, name: str) -> bool:
        return name in cls._matchers

    @classmethod
    def has_condition(cls, condition_type: str) -> bool:
        return condition_type in cls._conditions
