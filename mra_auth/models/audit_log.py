"""Audit log model for authentication and authorization events."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from mra_auth.models.base import Base, JSONType


class MraAuditLog(Base):
    """
    One row per handled request.

    Created when the request arrives and updated with the outcome
    (``comments``) once it is known.
    """

    __tablename__ = "mra_audit_logs_authentication"

    log_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    method_route: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # e.g. "POST:/v1/authorize"
    req: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)  # IPv6 max length
    comments: Mapped[str] = mapped_column(Text, nullable=False, default="")
    user_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    request_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    event_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        index=True,
    )

    def __repr__(self) -> str:
        return f"<MraAuditLog {self.log_id} {self.method_route}>"
