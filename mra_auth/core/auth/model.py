"""
Policy model loader.

The model file uses the familiar casbin section layout:

    [request_definition]
    r = sub, dom, obj, act, attrs

    [policy_definition]
    p = sub, dom, obj, act, cond, attrs, eft

    [role_definition]
    g = _, _, _
    g2 = _, _

    [policy_effect]
    e = some(where (p.eft == allow)) && !some(where (p.eft == deny))

    [matchers]
    m = role && domain && object && action && condition

The matcher line is not an expression language. It names registered
checks that must all pass, in order, for a rule to match.
"""

import configparser
import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path


class ModelError(Exception):
    """Raised for a missing or malformed model file."""


class Effect(str, Enum):
    """How matching rules combine into a decision."""

    ANY_ALLOW = "any_allow"
    ALLOW_AND_NO_DENY = "allow_and_no_deny"


_EFFECTS = {
    "some(where(p.eft==allow))": Effect.ANY_ALLOW,
    "some(where(p.eft==allow))&&!some(where(p.eft==deny))": Effect.ALLOW_AND_NO_DENY,
}

REQUIRED_REQUEST_FIELDS = ("sub", "dom", "obj", "act")
REQUIRED_POLICY_FIELDS = ("sub", "dom", "obj", "act")


@dataclass(frozen=True)
class AuthzModel:
    """Compiled model: field layouts, role definitions, effect, checks."""

    request_fields: tuple[str, ...]
    policy_fields: tuple[str, ...]
    role_definitions: dict[str, int]
    effect: Effect
    matchers: tuple[str, ...]
    source: str = "<text>"

    def policy_index(self, name: str) -> int | None:
        """Position of a named field in a ``p`` rule, or None."""
        try:
            return self.policy_fields.index(name)
        except ValueError:
            return None

    def has_role_definition(self, ptype: str) -> bool:
        return ptype in self.role_definitions


def _split_fields(raw: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _section(parser: configparser.ConfigParser, name: str) -> configparser.SectionProxy:
    if not parser.has_section(name):
        raise ModelError(f"Model is missing section [{name}]")
    return parser[name]


def parse_model(text: str, source: str = "<text>") -> AuthzModel:
    """Compile model text. Raises ModelError on any structural problem."""
    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str  # type: ignore[assignment]
    try:
        parser.read_string(text, source=source)
    except configparser.Error as exc:
        raise ModelError(f"Cannot parse model {source}: {exc}") from exc

    request = _section(parser, "request_definition").get("r")
    if not request:
        raise ModelError("request_definition must define 'r'")
    request_fields = _split_fields(request)

    policy = _section(parser, "policy_definition").get("p")
    if not policy:
        raise ModelError("policy_definition must define 'p'")
    policy_fields = _split_fields(policy)

    for required, fields, where in (
        (REQUIRED_REQUEST_FIELDS, request_fields, "request"),
        (REQUIRED_POLICY_FIELDS, policy_fields, "policy"),
    ):
        missing = [name for name in required if name not in fields]
        if missing:
            raise ModelError(f"{where} definition is missing fields: {missing}")

    role_definitions: dict[str, int] = {}
    if parser.has_section("role_definition"):
        for ptype, raw in parser["role_definition"].items():
            arity = len(_split_fields(raw))
            if arity < 2:
                raise ModelError(f"Role definition '{ptype}' needs at least two fields")
            role_definitions[ptype] = arity
    if "g" not in role_definitions:
        raise ModelError("role_definition must define 'g'")

    effect_raw = _section(parser, "policy_effect").get("e", "")
    effect = _EFFECTS.get(re.sub(r"\s+", "", effect_raw))
    if effect is None:
        raise ModelError(f"Unsupported policy effect: {effect_raw!r}")
    if effect is Effect.ALLOW_AND_NO_DENY and "eft" not in policy_fields:
        raise ModelError("Deny-aware effect requires an 'eft' policy field")

    matcher_raw = _section(parser, "matchers").get("m", "")
    matchers = tuple(part.strip() for part in matcher_raw.split("&&") if part.strip())
    if not matchers:
        raise ModelError("matchers must define 'm'")

    # Imported here, checks register themselves on import
    from .registry import AuthRegistry
    from . import matchers as _checks  # noqa: F401

    unknown = [name for name in matchers if not AuthRegistry.has_matcher(name)]
    if unknown:
        raise ModelError(
            f"Unknown matcher checks {unknown}. "
            f"Available: {AuthRegistry.list_matchers()}"
        )

    return AuthzModel(
        request_fields=request_fields,
        policy_fields=policy_fields,
        role_definitions=role_definitions,
        effect=effect,
        matchers=matchers,
        source=source,
    )


@lru_cache
def _load_model_cached(path: str) -> AuthzModel:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ModelError(f"Cannot read model file {path}: {exc}") from exc
    return parse_model(text, source=path)


def load_model(path: str | Path) -> AuthzModel:
    """
    Load a model file.

    Compiled once per resolved path and shared by every enforcer in the
    process.
    """
    return _load_model_cached(str(Path(path).resolve()))
