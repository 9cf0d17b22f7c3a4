# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Audit trail helper shared by the auth, account and coaching routers."""

from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session

from core.security import get_client_ip
from models.audit_log import AuditLog


def record_event(
    db: Session,
    request: Request,
    action: str,
    actor_id: Optional[str],
    actor_email: Optional[str] = None,
    detail: Optional[str] = None,
) -> None:
    """Persist one audit row.  *detail* must never carry secrets or vault data."""
    db.add(AuditLog(
        actor_id=actor_id,
        actor_email=actor_email,
        action=action,
        detail=detail,
        request_ip=get_client_ip(request),
    ))
    db.commit()
