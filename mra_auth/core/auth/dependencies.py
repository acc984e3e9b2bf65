"""
FastAPI dependencies for authentication and authorization.

Usage:
    from mra_auth.core.auth import CurrentCaller, Authorize, authorize_user

    @router.get("/my-roles")
    async def handler(caller: CurrentCaller):
        ...

    @router.post("/things")
    async def handler(auth: Authorize):
        authorized = await auth.require("0", "things", "C", {"set": {...}})

    @router.get("/user-roles")
    async def handler(authorized: Annotated[Authorized, Depends(authorize_user(target))]):
        where = authorized.where
"""

from dataclasses import dataclass
from typing import Annotated, Any, Callable

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from mra_auth.api.dependencies.database import get_db
from mra_auth.core.errors import AuthenticationFailed
from mra_auth.services.auth import AuthService

from .context import AuthzContext
from .service import AuthorizationService, Authorized, Caller


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/v1/login", auto_error=False)


@dataclass
class AuthzTarget:
    """The tuple a route wants authorized, plus whatever input it parsed."""

    dom: str
    obj: str
    act: str
    attrs: dict[str, Any] | None = None
    payload: Any = None


# ============================================================
# COMPONENTS
# ============================================================

def get_authz(request: Request) -> AuthzContext:
    """The enforcer context built in the application lifespan."""
    return request.app.state.authz


# ============================================================
# CALLER DEPENDENCIES
# ============================================================

async def get_caller(
    token: Annotated[str | None, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
    authz: Annotated[AuthzContext, Depends(get_authz)],
) -> Caller:
    """
    Identity of the request.

    Falls back to the public pseudo-user for a missing, invalid or
    blacklisted token, and for a token whose user id no longer belongs to
    its username.
    """
    public = Caller.public(authz.config.public_username)
    if not token:
        return public

    auth_service = AuthService(db)
    claims = auth_service.decode_token(token)
    if claims is None or await auth_service.is_token_blacklisted(token):
        return public

    username = claims.get("username")
    if not isinstance(username, str):
        return public
    user_id = await auth_service.get_user_id(username)
    if user_id is None or str(user_id) != str(claims.get("userId")):
        return public

    return Caller(user_id=user_id, username=username, email=claims.get("email"))


async def get_token_claims(
    token: Annotated[str | None, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict[str, Any]:
    """
    Claims of a valid, non-blacklisted token.

    Raises:
        AuthenticationFailed: 401
    """
    return await AuthService(db).verify_access_token(token)


async def get_authenticated_caller(
    caller: Annotated[Caller, Depends(get_caller)],
    token: Annotated[str | None, Depends(oauth2_scheme)],
) -> Caller:
    """
    Like ``get_caller`` but refuses the public fallback.

    Raises:
        AuthenticationFailed: 401
    """
    if caller.is_public:
        if not token:
            raise AuthenticationFailed("You must provide a valid JWT token.")
        raise AuthenticationFailed()
    return caller


# ============================================================
# AUTHORIZATION
# ============================================================

async def get_authorization_service(
    request: Request,
    caller: Annotated[Caller, Depends(get_caller)],
    authz: Annotated[AuthzContext, Depends(get_authz)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AuthorizationService:
    """
    Get authorization service for the current caller.

    Usage:
        async def handler(auth: Authorize):
            await auth.require(dom, obj, act, attrs)
    """
    return AuthorizationService(request, caller, authz, db)


def authorize_user(builder: Callable[..., Any]) -> Callable[..., Any]:
    """
    Dependency factory that authorizes the tuple ``builder`` produces.

    ``builder`` is itself a FastAPI dependency returning an ``AuthzTarget``,
    so it can declare the query or body parameters it needs. Invalid input
    fails validation before anything is authorized.

    On allow the dependency returns ``Authorized`` and sets
    ``request.state.user``, ``.roles`` and ``.conditions``. On deny it
    raises 403; on unexpected errors 500.
    """

    async def dependency(
        target: Annotated[AuthzTarget, Depends(builder)],
        auth: Annotated[AuthorizationService, Depends(get_authorization_service)],
    ) -> Authorized:
        return await auth.require(
            target.dom,
            target.obj,
            target.act,
            target.attrs,
            payload=target.payload,
        )

    return dependency


# ============================================================
# TYPE ALIASES FOR CLEAN SIGNATURES
# ============================================================

# Caller, public fallback
CurrentCaller = Annotated[Caller, Depends(get_caller)]

# Caller, 401 when unauthenticated
AuthenticatedCaller = Annotated[Caller, Depends(get_authenticated_caller)]

# Verified token claims, 401 otherwise
TokenClaims = Annotated[dict[str, Any], Depends(get_token_claims)]

# Enforcer context
Authz = Annotated[AuthzContext, Depends(get_authz)]

# Authorization service
Authorize = Annotated[AuthorizationService, Depends(get_authorization_service)]
