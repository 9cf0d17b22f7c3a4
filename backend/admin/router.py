# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Admin endpoints – progress statistics and the audit trail.

Every endpoint in this router is guarded by ``require_admin``.  A request
that carries a valid JWT but belongs to a ``user`` role will receive 403
before any business logic runs.

Vaults are encrypted with keys derived from each user's password, so the
server can only aggregate the progress it has seen decrypted since the
process started (``vault.cache``).  Nothing here reads another user's
vault.
"""

import io
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side

from database import get_db
from core.security import AuthContext, require_admin
from coaching.progress import summarize_progress
from models.audit_log import AuditLog
from admin.schemas import AuditLogListResponse, ProgressSummaryResponse
from vault import store as vault_store
from vault.cache import coaching_cache

router = APIRouter(prefix="/api/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# GET /api/admin/progress-summary
# ---------------------------------------------------------------------------


@router.get("/progress-summary", response_model=ProgressSummaryResponse)
def progress_summary(
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Aggregate milestones, reductions and phases over cached progress.
    ``storedVaults`` counts every vault on disk, decrypted here or not.
    """
    summary = summarize_progress(coaching_cache.progress_entries(), coaching_cache.profile_count)
    return ProgressSummaryResponse(summary=summary, storedVaults=len(vault_store.list_user_ids(db)))


# ---------------------------------------------------------------------------
# GET /api/admin/progress-summary/export  – download per-user rows as Excel
# ---------------------------------------------------------------------------

_HEADER_FONT  = Font(name="Calibri", size=11, bold=True, color="FFFFFF")
_HEADER_FILL  = PatternFill(start_color="4F7A5A", end_color="4F7A5A", fill_type="solid")
_HEADER_ALIGN = Alignment(horizontal="center", vertical="center")
_THIN_BORDER  = Border(
    left=Side(style="thin", color="CCCCCC"),
    right=Side(style="thin", color="CCCCCC"),
    top=Side(style="thin", color="CCCCCC"),
    bottom=Side(style="thin", color="CCCCCC"),
)

_EXPORT_HEADERS = ["User ID", "Phase", "Current Items", "Target Items", "Milestones", "Items Reduced", "Last Update"]
_EXPORT_COL_WIDTHS = [38, 14, 14, 14, 12, 14, 28]


def _progress_row(user_id: str, progress: dict) -> list:
    milestones = progress.get("milestones") or []
    reduced = sum(
        max(0, m["improvement"])
        for m in milestones
        if isinstance(m, dict) and isinstance(m.get("improvement"), (int, float))
    )
    return [
        user_id,
        progress.get("currentPhase") or "",
        progress.get("currentItemCount") if progress.get("currentItemCount") is not None else "",
        progress.get("targetItemCount") if progress.get("targetItemCount") is not None else "",
        len(milestones),
        reduced,
        progress.get("lastUpdate") or "",
    ]


@router.get("/progress-summary/export")
def export_progress_summary(admin: AuthContext = Depends(require_admin)):
    """Export one row per cached user as an Excel file."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Progress"

    # Header row
    ws.append(_EXPORT_HEADERS)
    for cell in ws[1]:
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = _HEADER_ALIGN
        cell.border = _THIN_BORDER

    # Data rows
    for user_id, progress in sorted(coaching_cache.progress_entries()):
        ws.append(_progress_row(user_id, progress))
        row_idx = ws.max_row
        for col_idx in range(1, len(_EXPORT_HEADERS) + 1):
            ws.cell(row=row_idx, column=col_idx).border = _THIN_BORDER

    for col_idx, width in enumerate(_EXPORT_COL_WIDTHS, start=1):
        ws.column_dimensions[chr(64 + col_idx)].width = width

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    wb.close()

    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": 'attachment; filename="progress-summary.xlsx"'},
    )


# ---------------------------------------------------------------------------
# GET /api/admin/audit-logs  – audit trail with optional filters
# ---------------------------------------------------------------------------


@router.get("/audit-logs", response_model=AuditLogListResponse)
def list_audit_logs(
    emails: list[str] | None = Query(None, description="Filter by exact email(s) – repeated param"),
    action: str | None = Query(None, description="Filter by action name"),
    since: datetime | None = Query(None, description="ISO-8601 start of time window"),
    until: datetime | None = Query(None, description="ISO-8601 end of time window"),
    limit: int = Query(200, ge=1, le=1000),
    admin: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Return audit log rows newest-first.

    * ``emails`` – one or more exact actor email addresses.
    * ``action`` – e.g. ``user_login``.
    * ``since`` / ``until`` – ISO-8601 bounds on ``created_at``.
    * ``limit`` – max rows returned (default 200, cap 1000).
    """
    q = db.query(AuditLog)
    if emails:
        q = q.filter(AuditLog.actor_email.in_([e.strip().lower() for e in emails]))
    if action:
        q = q.filter(AuditLog.action == action)
    if since:
        q = q.filter(AuditLog.created_at >= since)
    if until:
        q = q.filter(AuditLog.created_at <= until)

    rows = q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()
    return AuditLogListResponse(logs=rows)
