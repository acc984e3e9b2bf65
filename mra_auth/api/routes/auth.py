"""
Session routes: login, logout, token verification and refresh.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from mra_auth.api.dependencies.services import AuthServiceDep
from mra_auth.core.auth import TokenClaims
from mra_auth.core.auth.dependencies import oauth2_scheme
from mra_auth.schemas.auth import LoginRequest, LoginResponse, MessageResponse, TokenResponse

router = APIRouter()

BearerToken = Annotated[str | None, Depends(oauth2_scheme)]


@router.post("/login", response_model=LoginResponse)
async def login(data: LoginRequest, auth_service: AuthServiceDep):
    """Login with username or email and password."""
    user, issued = await auth_service.login(data.username_or_email, data.password)
    return {**issued.to_dict(), "displayName": user.display_name}


@router.post("/logout", response_model=MessageResponse)
async def logout(token: BearerToken, auth_service: AuthServiceDep):
    """Revoke the bearer token until it expires."""
    await auth_service.logout(token)
    return {"message": "Successfully logged out."}


@router.post("/verify_token")
async def verify_token(claims: TokenClaims) -> dict[str, Any]:
    """Claims of the bearer token, 401 if it is invalid or revoked."""
    return claims


@router.post("/refresh_token", response_model=TokenResponse)
async def refresh_token(token: BearerToken, auth_service: AuthServiceDep):
    """Exchange the bearer token for a fresh one."""
    issued = await auth_service.refresh(token)
    return issued.to_dict()
