"""
Authorization module - domain-scoped RBAC with data conditions.

A request ``(sub, dom, obj, act, attrs)`` is allowed when a ``p`` rule
matches the caller's roles in the domain (through ``g`` grants and ``g2``
domain bridges), the object and the action, and the rule's condition
holds. A successful decision carries the resolved ``where``/``set`` the
route must use for its own query.

Usage in routes:
----------------
    from mra_auth.core.auth import Authorize

    @router.delete("/things")
    async def delete_things(auth: Authorize):
        authorized = await auth.require("0", "things", "D", {"where": {"owner": 42}})
        await db.execute(delete(Thing).filter_by(**authorized.where))

    from mra_auth.core.auth import authorize_user, AuthzTarget

    def target(domain: str = "0") -> AuthzTarget:
        return AuthzTarget(dom=domain, obj="things", act="R")

    @router.get("/things")
    async def list_things(authorized: Annotated[Authorized, Depends(authorize_user(target))]):
        ...

Configuration:
--------------
- AUTHZ_MODEL_PATH: model file (request/policy/role definitions, effect, matchers)
- AUTHZ_POLICY_PATH: policies imported into the global domain at startup
- AUTHZ_ADAPTER: "sqlalchemy" (default) or "memory"
- AUTHZ_INTERNAL_ROLES, AUTHZ_GLOBAL_DOMAIN: user type classification

Extensibility:
--------------
    @AuthRegistry.condition("check_region")
    class RegionPolicy(ConditionPolicy):
        ...
"""

# Core interfaces
from .interfaces import (
    AuthorizationRequest,
    ConditionPolicy,
    PolicyAdapter,
    PolicyDecision,
    PolicyRule,
    TableDescriptor,
    UserType,
)

# Registry
from .registry import AuthRegistry

# Engine
from .model import AuthzModel, ModelError, load_model
from .enforcer import Enforcer
from .resolver import RoleResolver
from .roles import RoleAssignment, RoleGraph, UserTypeClassifier
from .context import AuthzContext

# Service and dependencies
from .service import AuthorizationService, Authorized, Caller
from .dependencies import (
    AuthenticatedCaller,
    Authorize,
    Authz,
    AuthzTarget,
    CurrentCaller,
    TokenClaims,
    authorize_user,
    get_authenticated_caller,
    get_authorization_service,
    get_authz,
    get_caller,
    get_token_claims,
)

__all__ = [
    # Interfaces
    "AuthorizationRequest",
    "ConditionPolicy",
    "PolicyAdapter",
    "PolicyDecision",
    "PolicyRule",
    "TableDescriptor",
    "UserType",
    # Registry
    "AuthRegistry",
    # Engine
    "AuthzModel",
    "ModelError",
    "load_model",
    "Enforcer",
    "RoleResolver",
    "RoleAssignment",
    "RoleGraph",
    "UserTypeClassifier",
    "AuthzContext",
    # Service
    "AuthorizationService",
    "Authorized",
    "Caller",
    # Dependencies
    "AuthenticatedCaller",
    "Authorize",
    "Authz",
    "AuthzTarget",
    "CurrentCaller",
    "TokenClaims",
    "authorize_user",
    "get_authenticated_caller",
    "get_authorization_service",
    "get_authz",
    "get_caller",
    "get_token_claims",
]
