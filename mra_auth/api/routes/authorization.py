"""
Authorization decision routes.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from mra_auth.core.auth import (
    Authorize,
    Authorized,
    AuthzTarget,
    CurrentCaller,
    authorize_user,
)
from mra_auth.core.errors import AuthenticationFailed, NotFound
from mra_auth.schemas.auth import AuthorizeRequest, AuthorizeResponse, RoleDomain
from mra_auth.schemas.role import DOMAIN_PATTERN

router = APIRouter()

AUTHORIZATION_OBJECT = "mra_authorization"


@router.post("/authorize", response_model=AuthorizeResponse)
async def authorize(data: AuthorizeRequest, auth: Authorize):
    """
    Decide ``(caller, dom, obj, act, attrs)``.

    The returned ``conditions`` are the server-trusted ``where``/``set``
    the caller must use instead of what it sent.
    """
    authorized = await auth.require(data.dom, data.obj, data.act, data.attrs)
    return {
        "user": authorized.caller.to_dict(),
        "roles": authorized.roles,
        "conditions": authorized.conditions,
    }


def roles_target(
    caller: CurrentCaller,
    username: Annotated[str | None, Query(max_length=255)] = None,
    domain: Annotated[str | None, Query(pattern=DOMAIN_PATTERN)] = None,
) -> AuthzTarget:
    if caller.is_public and username and username.strip().lower() != caller.username:
        raise AuthenticationFailed("You must provide a valid JWT token.")
    username = (username or caller.username).strip().lower()
    domain = domain or "0"
    return AuthzTarget(
        dom=domain,
        obj=AUTHORIZATION_OBJECT,
        act="R",
        attrs={"where": {"username": username, "domain": domain}},
    )


@router.get("/roles", response_model=list[RoleDomain])
async def get_roles(
    authorized: Annotated[Authorized, Depends(authorize_user(roles_target))],
    auth: Authorize,
):
    """Roles of a user in one domain, the caller's own by default."""
    where = authorized.where
    roles = auth.authz.resolver.list_roles_for_user_in_domain(where["username"], where["domain"])
    if not roles:
        raise NotFound("User role not found")
    return [{"role": role, "domain": where["domain"]} for role in roles]
