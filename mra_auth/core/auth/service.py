"""
Authorization service - per-request facade over the enforcer.

Binds the resolved caller to the process-wide enforcer, records every
decision in the audit log and publishes the outcome on ``request.state``.

Usage:
    # In route handlers:
    async def handler(auth: Authorize):
        decision = await auth.require("0", "mra_users", "R", {"where": {}})
        where = decision.conditions.get("where", {})
"""

from dataclasses import dataclass, field
from typing import Any

import structlog
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from mra_auth.core.errors import AuthorizationDenied, InternalError, ServiceError
from mra_auth.services.audit import AuditLogService

from .context import AuthzContext
from .interfaces import PolicyDecision, UserType

logger = structlog.get_logger()


@dataclass
class Caller:
    """Identity behind a request; the public pseudo-user when unauthenticated."""

    user_id: int
    username: str
    email: str | None = None

    @property
    def is_public(self) -> bool:
        return self.user_id == 0

    def to_dict(self) -> dict[str, Any]:
        return {"userId": self.user_id, "username": self.username, "email": self.email}

    @classmethod
    def public(cls, username: str = "public") -> "Caller":
        return cls(user_id=0, username=username, email=None)


@dataclass
class Authorized:
    """An allowed request: who asked, with which roles, under which conditions."""

    caller: Caller
    decision: PolicyDecision
    roles: list[dict[str, str]] = field(default_factory=list)
    payload: Any = None

    @property
    def conditions(self) -> dict[str, Any]:
        return self.decision.conditions

    @property
    def where(self) -> dict[str, Any]:
        return self.decision.conditions.get("where", {})

    @property
    def set(self) -> dict[str, Any]:
        return self.decision.conditions.get("set", {})

    @property
    def user_type(self) -> UserType | None:
        return self.decision.user_type


class AuthorizationService:
    """
    Default authorization service implementation.

    ``authorize`` returns the decision and never raises for a deny;
    ``require`` turns a deny into ``AuthorizationDenied`` (403) and any
    unexpected failure into ``InternalError`` (500). Both are audited
    before they propagate.
    """

    def __init__(
        self,
        request: Request,
        caller: Caller,
        authz: AuthzContext,
        db: AsyncSession,
    ):
        self.request = request
        self.caller = caller
        self.authz = authz
        self.db = db
        self.audit = AuditLogService(db)

    @property
    def user_type(self) -> UserType:
        return self.authz.resolver.get_user_type_for(self.caller.username)

    def roles(self) -> list[dict[str, str]]:
        return self.authz.resolver.list_roles_for_user_in_domains(self.caller.username)

    def domain_for(self, requested: str | None) -> str:
        """Internal callers always act in the global domain."""
        global_domain = self.authz.config.global_domain
        if self.user_type is UserType.INTERNAL or not requested:
            return global_domain
        return requested

    async def authorize(
        self,
        dom: str,
        obj: str,
        act: str,
        attrs: Any = None,
    ) -> PolicyDecision:
        """Decide a request for the bound caller. Does not raise on deny."""
        await self.audit.create_event_log(self.request, self.caller.user_id)
        decision = await self.authz.enforcer.enforce_ex(self.caller.username, dom, obj, act, attrs)
        logger.debug(
            "Authorization decided",
            username=self.caller.username,
            dom=dom,
            obj=obj,
            act=act,
            allowed=decision.allowed,
        )
        return decision

    async def require(
        self,
        dom: str,
        obj: str,
        act: str,
        attrs: Any = None,
        payload: Any = None,
    ) -> Authorized:
        """
        Authorize or raise.

        Raises:
            AuthorizationDenied: 403, always with the same message
            InternalError: 500 for anything unexpected
        """
        try:
            decision = await self.authorize(dom, obj, act, attrs)
        except ServiceError:
            raise
        except Exception as exc:
            logger.exception("Authorization failed", obj=obj, act=act)
            await self._record({"error": "Error in authorize user.", "details": str(exc)})
            raise InternalError() from exc

        if not decision.allowed:
            await self._record({"error": "User is not authorized."})
            raise AuthorizationDenied()

        roles = self.roles()
        self.request.state.user = self.caller.to_dict()
        self.request.state.roles = roles
        self.request.state.conditions = decision.conditions
        await self.audit.update_event_log(
            self.request, {"success": "User has been authorized.", "conditions": decision.conditions}
        )
        return Authorized(caller=self.caller, decision=decision, roles=roles, payload=payload)

    async def can(self, dom: str, obj: str, act: str, attrs: Any = None) -> bool:
        decision = await self.authorize(dom, obj, act, attrs)
        return decision.allowed

    async def _record(self, comments: Any) -> None:
        # The request is about to fail and roll back; keep the audit row.
        await self.audit.update_event_log(self.request, comments)
        await self.db.commit()
