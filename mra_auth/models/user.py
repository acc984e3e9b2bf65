"""
User account models.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import AuditMixin, Base, TimestampMixin


class MraUser(Base, TimestampMixin, AuditMixin):
    """User account. Usernames are stored trimmed and lower-cased."""

    __tablename__ = "mra_users"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(30), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Lifecycle
    activation_code: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    confirmation_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reset_token: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    reset_token_created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    password_changed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    suspended_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    suspension_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    customer_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    is_internal: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    @property
    def is_active(self) -> bool:
        return (
            self.confirmation_at is not None
            and self.activation_code is None
            and self.deleted_at is None
            and self.suspended_at is None
        )

    def __repr__(self) -> str:
        return f"<MraUser {self.username}>"


class MraTable(Base):
    """Ownership metadata for tables the authorization layer guards."""

    __tablename__ = "mra_tables"

    table_name: Mapped[str] = mapped_column(String(255), primary_key=True)
    owner_column: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    creator_column: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    updator_column: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    domain_column: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<MraTable {self.table_name}>"


class MraUserCustomer(Base):
    """
    Employment-style relationship between a user and a customer.

    Valid when both sides accepted, ``valid_from <= now <= valid_to`` (open
    ended when ``valid_to`` is null), and it was neither quit nor suspended.
    """

    __tablename__ = "mra_user_customers"

    user_customer_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    customer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    customer_accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    user_accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    valid_from: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    valid_to: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    quit_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    suspend_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class MraTokenBlacklist(Base):
    """Logged-out JWTs, kept until they would have expired anyway."""

    __tablename__ = "mra_token_blacklist"
    __table_args__ = (Index("mra_token_blacklist_idx_by_expiry", "expiry"),)

    token: Mapped[str] = mapped_column(String(1023), primary_key=True)
    expiry: Mapped[int] = mapped_column(BigInteger, nullable=False)
