"""
Authentication service.

Password hashing, JWT issuance/verification, logout blacklist and login.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mra_auth.core.config import settings
from mra_auth.core.errors import AuthenticationFailed, Conflict, Forbidden, NotFound
from mra_auth.models import MraTokenBlacklist, MraUser

logger = structlog.get_logger()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

INVALID_CREDENTIALS = "Username or password is incorrect."


@dataclass
class IssuedToken:
    """A signed access token and its decoded claims."""
    token: str
    exp: int
    user_id: int

    def to_dict(self) -> dict[str, Any]:
        return {"token": self.token, "exp": self.exp, "userId": self.user_id}


class AuthService:
    """Authentication service."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============================================================
    # PASSWORDS
    # ============================================================

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a password."""
        return pwd_context.hash(password)

    @staticmethod
    def verify_password(plain: str, hashed: str) -> bool:
        """Verify password against hash."""
        try:
            return pwd_context.verify(plain, hashed)
        except ValueError:
            # Unknown or corrupt hash
            return False

    # ============================================================
    # TOKENS
    # ============================================================

    @staticmethod
    def create_access_token(user_id: int, username: str, email: str | None) -> IssuedToken:
        """
        Create JWT access token with ``userId``, ``username`` and ``email`` claims.

        ``jti`` keeps tokens issued within the same second distinct.
        """
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.auth.access_token_expire_minutes
        )
        payload = {
            "userId": user_id,
            "username": username,
            "email": email,
            "iat": int(datetime.now(timezone.utc).timestamp()),
            "exp": int(expire.timestamp()),
            "jti": uuid.uuid4().hex,
        }
        token = jwt.encode(
            payload,
            settings.auth.secret_key,
            algorithm=settings.auth.algorithm,
        )
        return IssuedToken(token=token, exp=payload["exp"], user_id=user_id)

    @staticmethod
    def decode_token(token: str | None) -> dict[str, Any] | None:
        """Verified claims, or None for a missing, malformed or expired token."""
        if not token or not token.strip():
            return None
        try:
            return jwt.decode(
                token.strip(),
                settings.auth.secret_key,
                algorithms=[settings.auth.algorithm],
            )
        except JWTError:
            return None

    async def get_user_id(self, username: str) -> int | None:
        result = await self.db.execute(
            select(MraUser.user_id).where(MraUser.username == username.strip().lower())
        )
        return result.scalar_one_or_none()

    async def is_token_blacklisted(self, token: str) -> bool:
        if not token or not token.strip():
            return True
        result = await self.db.execute(
            select(MraTokenBlacklist.token).where(MraTokenBlacklist.token == token.strip())
        )
        return result.first() is not None

    async def blacklist_token(self, token: str, expiry: int) -> bool:
        """Record a logged-out token. Returns False if it was already recorded."""
        if not token or not token.strip():
            return False
        if await self.is_token_blacklisted(token):
            return False
        self.db.add(MraTokenBlacklist(token=token.strip(), expiry=int(expiry)))
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            return False
        return True

    async def verify_access_token(self, token: str | None) -> dict[str, Any]:
        """
        Claims of a valid, non-revoked token.

        Raises:
            AuthenticationFailed: missing, invalid, expired or blacklisted
        """
        if not token:
            raise AuthenticationFailed("You must provide a valid JWT token.")
        claims = self.decode_token(token)
        if claims is None or await self.is_token_blacklisted(token):
            raise AuthenticationFailed()
        return claims

    async def refresh(self, token: str) -> IssuedToken:
        """Issue a new token for the same identity and revoke the old one."""
        claims = await self.verify_access_token(token)
        issued = self.create_access_token(claims["userId"], claims["username"], claims.get("email"))
        await self.blacklist_token(token, claims["exp"])
        return issued

    async def logout(self, token: str) -> None:
        claims = await self.verify_access_token(token)
        await self.blacklist_token(token, claims["exp"])
        logger.info("User logged out", user_id=claims.get("userId"))

    # ============================================================
    # LOGIN
    # ============================================================

    async def login(self, username_or_email: str, password: str) -> tuple[MraUser, IssuedToken]:
        """
        Authenticate by username or email.

        One email can own several accounts; the first one whose password
        matches and that is usable wins.

        Raises:
            AuthenticationFailed: no account matches the password
            Conflict: email not confirmed yet
            NotFound: account deleted
            Forbidden: account suspended
        """
        key = username_or_email.strip().lower()
        stmt = (
            select(MraUser)
            .where(or_(MraUser.username == key, MraUser.email == key))
            .order_by(MraUser.user_id)
        )
        result = await self.db.execute(stmt)
        users = result.scalars().all()

        found = False
        unconfirmed = deleted = False
        for user in users:
            if not self.verify_password(password, user.password_hash):
                continue
            found = True
            if user.confirmation_at is None:
                unconfirmed = True
            elif user.deleted_at is not None:
                deleted = True
            elif user.suspended_at is not None:
                continue
            else:
                logger.info("User logged in", user_id=user.user_id)
                return user, self.create_access_token(user.user_id, user.username, user.email)

        if not found:
            logger.info("Login failed", key=key)
            raise AuthenticationFailed(INVALID_CREDENTIALS)
        if unconfirmed:
            raise Conflict("You must first confirm your email address.")
        if deleted:
            raise NotFound("User has been deleted.")
        raise Forbidden("User has been suspended.")
