"""
Service dependencies.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from mra_auth.core.auth.dependencies import get_authz
from mra_auth.core.auth.context import AuthzContext
from mra_auth.core.config import settings
from mra_auth.services.auth import AuthService
from mra_auth.services.email import EmailService, get_email_backend
from mra_auth.services.user import UserService

from .database import get_db


def get_email_service(request: Request) -> EmailService:
    """Email service created at startup, or a fresh one from settings."""
    service = getattr(request.app.state, "email", None)
    if service is None:
        service = EmailService(get_email_backend(settings.email), settings.email)
        request.app.state.email = service
    return service


async def get_auth_service(db: AsyncSession = Depends(get_db)) -> AuthService:
    """Get auth service instance (login, tokens)."""
    return AuthService(db)


async def get_user_service(
    db: AsyncSession = Depends(get_db),
    authz: AuthzContext = Depends(get_authz),
    email: EmailService = Depends(get_email_service),
) -> UserService:
    """Get user service instance (accounts)."""
    return UserService(db, resolver=authz.resolver, email=email)


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
UserServiceDep = Annotated[UserService, Depends(get_user_service)]
