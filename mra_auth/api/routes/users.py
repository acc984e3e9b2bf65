"""
Account routes: registration, activation, password reset, deregistration.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import EmailStr

from mra_auth.api.dependencies.services import UserServiceDep
from mra_auth.core.auth import (
    AuthenticatedCaller,
    Authorized,
    AuthzTarget,
    UserType,
    authorize_user,
)
from mra_auth.core.auth.dependencies import get_authorization_service
from mra_auth.core.auth.service import AuthorizationService
from mra_auth.core.errors import ExpectationFailed, NotFound
from mra_auth.schemas.auth import MessageResponse
from mra_auth.schemas.role import DOMAIN_PATTERN
from mra_auth.schemas.user import (
    USERNAME_PATTERN,
    ActivateByCodeRequest,
    RegisterRequest,
    RegisterResponse,
    ResendActivationRequest,
    ResetPasswordRequest,
    ResetTokenRequest,
)
from mra_auth.services.user import ActivationResult, append_username

router = APIRouter()

USERS_OBJECT = "mra_users"

ServiceDep = Annotated[AuthorizationService, Depends(get_authorization_service)]


# ============================================================
# REGISTRATION
# ============================================================

@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest, user_service: UserServiceDep):
    """Create an inactive account and email its activation link."""
    user = await user_service.register(
        username=data.username,
        email=data.email,
        password=data.password,
        display_name=data.display_name,
        login_redirect_url=data.login_redirect_url,
    )
    return {"message": "User registered successfully.", "userId": user.user_id}


@router.post("/resend-activation", response_model=MessageResponse)
async def resend_activation(data: ResendActivationRequest, user_service: UserServiceDep):
    """Same answer whether or not an account matched."""
    await user_service.resend_activation(data.username_or_email, data.login_redirect_url)
    return {
        "message": "A new activation link has been sent if there is a registered user "
        "related to the provided email or username."
    }


async def deregister_target(
    caller: AuthenticatedCaller,
    auth: ServiceDep,
    user_service: UserServiceDep,
    username: Annotated[str | None, Query(min_length=5, max_length=30, pattern=USERNAME_PATTERN)] = None,
    domain: Annotated[str | None, Query(pattern=DOMAIN_PATTERN)] = None,
) -> AuthzTarget:
    internal = auth.user_type is UserType.INTERNAL
    customer_id = domain if internal or (domain and domain != "0") else None
    if internal or not domain:
        domain = auth.authz.config.global_domain

    username = (username or caller.username).lower()
    user_id = await user_service.get_user_id(username)
    if user_id is None:
        raise NotFound("There is no such a username.")

    return AuthzTarget(
        dom=domain,
        obj=USERS_OBJECT,
        act="D",
        attrs={"where": {"username": username, "user_id": user_id, "customer_id": customer_id}},
    )


@router.delete("/deregister", response_model=MessageResponse)
async def deregister(
    authorized: Annotated[Authorized, Depends(authorize_user(deregister_target))],
    user_service: UserServiceDep,
):
    """Delete an account; the conditions decide which rows may go."""
    if not await user_service.deregister(authorized.where):
        raise NotFound("There is no such a username.")
    return {"message": "User has been removed successfully."}


# ============================================================
# ACTIVATION
# ============================================================

def activation_response(result: str, invalid_message: str) -> JSONResponse:
    if result == ActivationResult.ALREADY_ACTIVE:
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content={"message": "Account has been already activated."},
        )
    if result == ActivationResult.INVALID:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"message": invalid_message},
        )
    return JSONResponse(content={"message": "Account is activated successfully."})


@router.get("/activate")
async def activate(
    user_service: UserServiceDep,
    username: Annotated[str, Query(min_length=5, max_length=30, pattern=USERNAME_PATTERN)],
    token: Annotated[str, Query(min_length=1)],
    data: Annotated[str, Query(min_length=1)],
):
    """Activation link target; redirects to the login page when the link carries one."""
    result, redirect_url = await user_service.activate_by_link(username, token, data)
    if result == ActivationResult.ACTIVATED and redirect_url:
        return RedirectResponse(append_username(redirect_url, username), status_code=status.HTTP_302_FOUND)
    return activation_response(result, "Activation link is invalid.")


@router.post("/activate-by-code")
async def activate_by_code(data: ActivateByCodeRequest, user_service: UserServiceDep):
    result = await user_service.activate(data.username, data.activation_code)
    return activation_response(result, "Activation code is invalid.")


# ============================================================
# PASSWORD RESET
# ============================================================

@router.post("/reset_token", response_model=MessageResponse)
async def reset_token(data: ResetTokenRequest, user_service: UserServiceDep):
    """Email a reset link. Same answer whether or not the user exists."""
    await user_service.request_password_reset(data.username, data.password_reset_page_redirect_url)
    return {
        "message": "If an account with the provided username exists, a reset token has been "
        "successfully generated and sent to the associated email address."
    }


@router.put("/reset_password", response_model=MessageResponse)
async def reset_password(data: ResetPasswordRequest, user_service: UserServiceDep):
    if not await user_service.reset_password(data.username, data.token, data.data, data.password):
        raise ExpectationFailed("Couldn't reset password.")
    return {"message": "Password has been reset."}


# ============================================================
# USERNAMES
# ============================================================

@router.get("/usernames", response_model=MessageResponse)
async def send_usernames(email: Annotated[EmailStr, Query()], user_service: UserServiceDep):
    """Email every username registered with an address."""
    await user_service.send_usernames(email)
    return {
        "message": "If there are any usernames associated with the provided email address, "
        "a list of them has been sent to that email address."
    }
