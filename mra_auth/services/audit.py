"""Audit log service for authentication and authorization events."""

import json
from typing import Any, Optional

import structlog
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mra_auth.models.audit_log import MraAuditLog

logger = structlog.get_logger()

SENSITIVE_FIELDS = frozenset({"password", "token", "data", "activationCode"})


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def redact(payload: Any) -> Any:
    """Mask secrets before they reach the audit table."""
    if isinstance(payload, dict):
        return {
            key: "***" if key in SENSITIVE_FIELDS else redact(value)
            for key, value in payload.items()
        }
    if isinstance(payload, list):
        return [redact(item) for item in payload]
    return payload


async def request_snapshot(request: Request) -> dict[str, Any]:
    """Query, path parameters and JSON body of a request."""
    snapshot: dict[str, Any] = {
        "query": dict(request.query_params),
        "params": dict(request.path_params),
    }
    body = await request.body()
    if body:
        try:
            snapshot["body"] = redact(await request.json())
        except ValueError:
            snapshot["body"] = None
    return snapshot


class AuditLogService:
    """
    Writes ``mra_audit_logs_authentication`` rows.

    Usage:
        audit = AuditLogService(db)
        log_id = await audit.create_event_log(request, caller.user_id)
        ...
        await audit.update_event_log(request, {"success": "User has been authorized."})

    The log id is remembered on ``request.state.log_id`` so that later
    updates in the same request land on the same row.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_event_log(self, request: Request, user_id: Any) -> int:
        existing = getattr(request.state, "log_id", None)
        if existing is not None:
            return existing

        entry = MraAuditLog(
            method_route=f"{request.method}:{request.url.path}",
            req=jsonable_encoder(await request_snapshot(request)),
            ip_address=client_ip(request),
            user_id=None if user_id is None else str(user_id),
            request_id=getattr(request.state, "request_id", None),
            comments="",
        )
        self.db.add(entry)
        await self.db.flush()
        request.state.log_id = entry.log_id

        logger.debug("Audit log created", log_id=entry.log_id, method_route=entry.method_route)
        return entry.log_id

    async def update_event_log(self, request: Request, comments: Any) -> bool:
        """
        Attach the outcome to the request's log row.

        Best effort: a failure is logged and reported as ``False``.
        """
        log_id = getattr(request.state, "log_id", None)
        if log_id is None:
            return False

        try:
            entry = await self.db.get(MraAuditLog, log_id)
            if entry is None:
                return False
            entry.comments = _format_comments(comments)
            await self.db.flush()
        except SQLAlchemyError:
            logger.exception("Audit log update failed", log_id=log_id)
            return False
        return True


def _format_comments(comments: Any) -> str:
    if isinstance(comments, str):
        return comments
    if isinstance(comments, BaseException):
        return f"{type(comments).__name__}: {comments}"
    return json.dumps(jsonable_encoder(comments, custom_encoder={BaseException: str}), default=str)
