"""
Role grant and policy management routes.

Every route is guarded by the ``mra_authorization`` object. Internal
callers always act in the global domain; other callers act in the domain
they name, which their own grants must cover.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from mra_auth.core.auth import (
    Authorize,
    Authorized,
    AuthzTarget,
    CurrentCaller,
    UserType,
    authorize_user,
)
from mra_auth.core.auth.interfaces import CRUD_ACTIONS
from mra_auth.core.auth.service import AuthorizationService
from mra_auth.core.auth.dependencies import get_authorization_service
from mra_auth.core.errors import AuthorizationDenied, NotFound
from mra_auth.schemas.auth import MessageResponse, RoleDomain
from mra_auth.schemas.role import (
    DOMAIN_PATTERN,
    PolicyCreate,
    PolicyFilter,
    PolicyResponse,
    RemovedResponse,
    UserRoleRequest,
)
from mra_auth.schemas.user import USERNAME_PATTERN

from .authorization import AUTHORIZATION_OBJECT

router = APIRouter()

ServiceDep = Annotated[AuthorizationService, Depends(get_authorization_service)]
DomainQuery = Annotated[str | None, Query(pattern=DOMAIN_PATTERN)]


# ============================================================
# ROLE QUERIES
# ============================================================

def domain_roles_target(
    auth: ServiceDep,
    role: Annotated[str | None, Query(max_length=255)] = None,
    domain: DomainQuery = None,
) -> AuthzTarget:
    return AuthzTarget(
        dom=auth.domain_for(domain),
        obj=AUTHORIZATION_OBJECT,
        act="R",
        attrs={"where": {"role": role, "domain": domain}},
    )


@router.get("/domain-roles", response_model=list[RoleDomain])
async def get_domain_roles(
    authorized: Annotated[Authorized, Depends(authorize_user(domain_roles_target))],
    auth: Authorize,
):
    """Roles that have policies, optionally narrowed to one role or domain."""
    where = authorized.where
    return auth.authz.resolver.get_roles_in_domain(where.get("role"), where.get("domain"))


@router.get("/my-roles", response_model=list[RoleDomain])
async def get_my_roles(caller: CurrentCaller, auth: Authorize, domain: DomainQuery = None):
    """The caller's grants, in every domain or in one."""
    resolver = auth.authz.resolver
    if not domain:
        return resolver.list_roles_for_user_in_domains(caller.username)
    return [
        {"role": role, "domain": domain}
        for role in resolver.list_roles_for_user_in_domain(caller.username, domain)
    ]


def user_roles_target(
    caller: CurrentCaller,
    username: Annotated[str | None, Query(min_length=5, max_length=30, pattern=USERNAME_PATTERN)] = None,
    domain: DomainQuery = None,
) -> AuthzTarget:
    domain = domain or "0"
    return AuthzTarget(
        dom=domain,
        obj=AUTHORIZATION_OBJECT,
        act="R",
        attrs={"where": {"username": (username or caller.username).lower(), "domain": domain}},
    )


@router.get("/user-roles", response_model=list[str])
async def get_user_roles(
    authorized: Annotated[Authorized, Depends(authorize_user(user_roles_target))],
    auth: Authorize,
):
    """Role names of a user in one domain, the caller's own by default."""
    where = authorized.where
    return auth.authz.resolver.list_roles_for_user_in_domain(where["username"], where["domain"])


# ============================================================
# ROLE GRANTS
# ============================================================

def grant_role_target(data: UserRoleRequest, auth: ServiceDep) -> AuthzTarget:
    return AuthzTarget(
        dom=auth.domain_for(data.domain),
        obj=AUTHORIZATION_OBJECT,
        act="C",
        payload=data,
    )


@router.post("/user-role", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def add_user_role(
    authorized: Annotated[Authorized, Depends(authorize_user(grant_role_target))],
    auth: Authorize,
):
    data: UserRoleRequest = authorized.payload
    resolver = auth.authz.resolver
    defined = resolver.get_roles_in_domain(data.role, data.domain)
    if authorized.user_type is not UserType.INTERNAL:
        if data.role in auth.authz.config.internal_roles:
            raise AuthorizationDenied()
        # Rules written for every domain belong to staff roles
        defined = [r for r in defined if r["domain"] == data.domain]
    if not defined:
        raise NotFound("The role does not exist in the domain.")

    username = data.username or authorized.caller.username
    await resolver.add_role_for_user_in_domain(username, data.role, data.domain)
    await auth.audit.update_event_log(
        auth.request,
        {"success": f"Added role {data.role} in domain {data.domain} for the user {username}."},
    )
    return {"message": "Role has been added successfully. User must relogin to have the new role."}


def revoke_role_target(data: UserRoleRequest, auth: ServiceDep) -> AuthzTarget:
    return AuthzTarget(
        dom=auth.domain_for(data.domain),
        obj=AUTHORIZATION_OBJECT,
        act="D",
        attrs={"where": {"username": data.username or auth.caller.username}},
        payload=data,
    )


@router.delete("/user-role", response_model=MessageResponse)
async def remove_user_role(
    authorized: Annotated[Authorized, Depends(authorize_user(revoke_role_target))],
    auth: Authorize,
):
    data: UserRoleRequest = authorized.payload
    username = authorized.where["username"]
    await auth.authz.resolver.remove_role_for_user_in_domain(username, data.role, data.domain)
    await auth.audit.update_event_log(
        auth.request,
        {"success": f"Removed role {data.role} in domain {data.domain} for the user {username}."},
    )
    return {"message": "Role has been removed successfully."}


# ============================================================
# POLICIES
# ============================================================

def policy_target(act: str):
    def target(data: PolicyFilter, auth: ServiceDep) -> AuthzTarget:
        return AuthzTarget(
            dom=auth.domain_for(data.domain),
            obj=AUTHORIZATION_OBJECT,
            act=act,
            payload=data,
        )

    return target


@router.post("/policies", response_model=list[PolicyResponse])
async def get_policies(
    authorized: Annotated[Authorized, Depends(authorize_user(policy_target("R")))],
    auth: Authorize,
):
    """Query policies; POST so the filter can carry JSON attributes."""
    data: PolicyFilter = authorized.payload
    return auth.authz.resolver.get_policies_in_domain(
        data.subject,
        data.domain,
        data.object,
        data.action,
        data.condition,
        data.attributes,
        data.effect,
    )


def create_policy_target(data: PolicyCreate, auth: ServiceDep) -> AuthzTarget:
    return AuthzTarget(
        dom=auth.domain_for(data.domain),
        obj=AUTHORIZATION_OBJECT,
        act="C",
        payload=data,
    )


@router.post("/policy", response_model=MessageResponse)
async def create_policy(
    authorized: Annotated[Authorized, Depends(authorize_user(create_policy_target))],
    auth: Authorize,
):
    """
    Add a policy.

    Non-internal callers may only add ``check_relationship`` policies, and
    only for objects they hold the matching grant action on (``GR`` to
    hand out ``R``, and so on).
    """
    data: PolicyCreate = authorized.payload
    if authorized.user_type is not UserType.INTERNAL:
        if data.condition != "check_relationship":
            details = "Customer users must set condition to 'check_relationship'."
            await auth.audit.update_event_log(
                auth.request, {"message": "User is not authorized.", "details": details}
            )
            raise AuthorizationDenied(details=details)

        grant = f"G{data.action}" if data.action in CRUD_ACTIONS else data.action
        await auth.require(data.domain, data.object, grant)

    await auth.authz.resolver.add_policy_in_domain(
        data.subject,
        data.domain,
        data.object,
        data.action,
        data.condition,
        data.attributes,
        data.effect,
    )
    return {"message": "Policy added successfully."}


@router.delete("/policies", response_model=RemovedResponse)
async def delete_policies(
    authorized: Annotated[Authorized, Depends(authorize_user(policy_target("D")))],
    auth: Authorize,
):
    """Remove matching policies unless someone still holds the subject role."""
    data: PolicyFilter = authorized.payload
    resolver = auth.authz.resolver
    if data.subject and resolver.get_users_for_role_in_domain(data.subject, data.domain):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"message": "Some users are using this policy and cannot be changed or removed."},
        )

    result = await resolver.remove_policies_in_domain(
        data.subject,
        data.domain,
        data.object,
        data.action,
        data.condition,
        data.attributes,
        data.effect,
    )
    return {"result": result}
