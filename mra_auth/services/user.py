"""
User account service.

Registration, activation, password reset, username reminders and
deregistration. Authorization of these flows is the caller's job; this
service only touches accounts.
"""

from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlencode

import structlog
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from mra_auth.core.auth.resolver import RoleResolver, normalize_username
from mra_auth.core.config import settings
from mra_auth.core.errors import ValidationFailed
from mra_auth.models import MraUser
from mra_auth.services.auth import AuthService
from mra_auth.services.crypto import decrypt_payload, encrypt_payload, generate_code
from mra_auth.services.email import EmailService

logger = structlog.get_logger()

RESERVED_USERNAMES = frozenset({
    "admin", "admindata", "officer", "agent", "enduser", "administrator",
    "manager", "staff", "employee", "user",
})

DEFAULT_ROLE = "enduser"


def reserved_usernames() -> frozenset[str]:
    """Fixed names plus every configured internal role and the public pseudo-user."""
    return RESERVED_USERNAMES | {role.lower() for role in settings.authz.internal_roles} | {
        settings.authz.public_username.lower()
    }


class ActivationResult:
    ACTIVATED = "activated"
    ALREADY_ACTIVE = "already_active"
    INVALID = "invalid"


def _as_aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def append_username(url: str, username: str) -> str:
    """Add ``username`` to a redirect URL's query string."""
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode({'username': username})}"


class UserService:
    """User account management."""

    def __init__(
        self,
        db: AsyncSession,
        resolver: RoleResolver | None = None,
        email: EmailService | None = None,
    ):
        self.db = db
        self.resolver = resolver
        self.email = email

    # ============================================================
    # LOOKUPS
    # ============================================================

    async def get_by_id(self, user_id: int) -> MraUser | None:
        return await self.db.get(MraUser, user_id)

    async def get_by_username(self, username: str) -> MraUser | None:
        stmt = select(MraUser).where(MraUser.username == normalize_username(username))
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_id(self, username: str) -> int | None:
        stmt = select(MraUser.user_id).where(MraUser.username == normalize_username(username))
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> list[MraUser]:
        stmt = (
            select(MraUser)
            .where(MraUser.email == email.strip().lower())
            .order_by(MraUser.user_id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    # ============================================================
    # REGISTRATION
    # ============================================================

    def activation_link(self, username: str, code: str, redirect_url: str = "") -> str:
        payload = encrypt_payload(code, redirect_url)
        query = urlencode({"username": username, "token": payload.token, "data": payload.data})
        return f"{settings.auth.base_url.rstrip('/')}/v1/activate?{query}"

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        display_name: str | None = None,
        login_redirect_url: str | None = None,
    ) -> MraUser:
        """
        Create an inactive account with the default role and send its
        activation email.

        Raises:
            ValidationFailed: reserved or taken username
        """
        original = username.strip()
        username = normalize_username(username)
        if username in reserved_usernames():
            raise ValidationFailed("Username cannot be a reserved word.")
        if await self.get_user_id(username) is not None:
            raise ValidationFailed("Username already exists.")

        user = MraUser(
            username=username,
            email=email.strip().lower(),
            password_hash=AuthService.hash_password(password),
            display_name=display_name or original,
            activation_code=generate_code(),
        )
        self.db.add(user)
        await self.db.flush()

        if self.resolver is not None:
            await self.resolver.add_role_for_user_in_domain(
                username, DEFAULT_ROLE, settings.authz.global_domain
            )
        await self._send_activation(user, original, login_redirect_url or "")

        logger.info("User registered", user_id=user.user_id, username=username)
        return user

    async def _send_activation(self, user: MraUser, link_username: str, redirect_url: str) -> None:
        if self.email is None or not user.activation_code:
            return
        link = self.activation_link(link_username, user.activation_code, redirect_url)
        await self.email.send_verification_email(
            user.username, user.display_name, user.email, link, user.activation_code
        )

    async def resend_activation(self, username_or_email: str, login_redirect_url: str | None = None) -> int:
        """Resend links to every unconfirmed, non-suspended account matching the key."""
        key = username_or_email.strip().lower()
        stmt = select(MraUser).where(
            or_(MraUser.username == key, MraUser.email == key),
            MraUser.confirmation_at.is_(None),
            MraUser.activation_code.is_not(None),
            MraUser.suspended_at.is_(None),
            MraUser.deleted_at.is_(None),
        )
        result = await self.db.execute(stmt)
        users = list(result.scalars().all())
        for user in users:
            await self._send_activation(user, user.username, login_redirect_url or "")
        return len(users)

    # ============================================================
    # ACTIVATION
    # ============================================================

    def _activation_expired(self, user: MraUser) -> bool:
        created = _as_aware(user.created_at)
        if created is None:
            return False
        deadline = created + timedelta(days=settings.auth.activation_valid_days)
        return datetime.now(timezone.utc) > deadline

    async def activate(self, username: str, code: str) -> str:
        """Confirm an account by its activation code. Returns an ``ActivationResult``."""
        user = await self.get_by_username(username)
        if user is None:
            return ActivationResult.INVALID
        if user.confirmation_at is not None:
            return ActivationResult.ALREADY_ACTIVE
        if not code or user.activation_code != code or self._activation_expired(user):
            return ActivationResult.INVALID

        user.confirmation_at = datetime.now(timezone.utc)
        user.activation_code = None
        await self.db.flush()
        logger.info("User activated", user_id=user.user_id)
        return ActivationResult.ACTIVATED

    async def activate_by_link(self, username: str, token: str, data: str) -> tuple[str, str]:
        """Decrypt an activation link and activate. Returns ``(result, redirect_url)``."""
        payload = decrypt_payload(token, data)
        result = await self.activate(username, payload["code"])
        return result, payload["redirectURL"]

    # ============================================================
    # PASSWORD RESET
    # ============================================================

    async def request_password_reset(self, username: str, redirect_url: str) -> bool:
        """Store a fresh reset token and email the link. Unknown users are ignored."""
        user = await self.get_by_username(username)
        if user is None or user.deleted_at is not None:
            return False

        user.reset_token = generate_code()
        user.reset_token_created_at = datetime.now(timezone.utc)
        await self.db.flush()

        payload = encrypt_payload(user.reset_token)
        link = append_username(redirect_url, user.username)
        link = f"{link}&{urlencode({'token': payload.token, 'data': payload.data})}"
        if self.email is not None:
            await self.email.send_reset_password_email(user.username, user.display_name, user.email, link)
        logger.info("Password reset requested", user_id=user.user_id)
        return True

    async def reset_password(self, username: str, token: str, data: str, password: str) -> bool:
        user = await self.get_by_username(username)
        if user is None or not user.reset_token:
            return False

        code = decrypt_payload(token, data)["code"]
        created = _as_aware(user.reset_token_created_at)
        if not code or code != user.reset_token or created is None:
            return False
        if datetime.now(timezone.utc) > created + timedelta(days=settings.auth.reset_token_valid_days):
            return False

        user.password_hash = AuthService.hash_password(password)
        user.password_changed_at = datetime.now(timezone.utc)
        user.reset_token = None
        user.reset_token_created_at = None
        await self.db.flush()
        logger.info("Password reset", user_id=user.user_id)
        return True

    # ============================================================
    # USERNAMES
    # ============================================================

    async def send_usernames(self, email: str) -> int:
        users = await self.get_by_email(email)
        if users and self.email is not None:
            await self.email.send_usernames_email([u.username for u in users], users[0].email)
        return len(users)

    # ============================================================
    # DEREGISTRATION
    # ============================================================

    async def delete_where(self, where: dict[str, Any]) -> int:
        """
        Delete the accounts matching every column in ``where``.

        ``None`` matches NULL. Unknown columns match nothing.
        """
        if not where:
            return 0
        clauses = []
        for column, value in where.items():
            attr = MraUser.__table__.c.get(column)
            if attr is None:
                logger.warning("Unknown column in delete filter", column=column)
                return 0
            clauses.append(attr.is_(None) if value is None else attr == value)

        result = await self.db.execute(delete(MraUser).where(*clauses))
        return result.rowcount or 0

    async def deregister(self, where: dict[str, Any]) -> int:
        """Delete the account selected by ``where`` and revoke all of its roles."""
        count = await self.delete_where(where)
        username = where.get("username")
        if count and username and self.resolver is not None:
            await self.resolver.remove_roles_for_user_in_all_domains(username)
        logger.info("User deregistered", username=username, count=count)
        return count
