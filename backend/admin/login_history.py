# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Login history – read-only view of every sign-in attempt, plus an Excel
export.  Rows are written by :mod:`core.login_history`; nothing here mutates
them.
"""

import io
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Query as OrmQuery, Session, joinedload
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side

from admin.schemas import LoginHistoryListResponse, LoginHistoryRow
from core.dependencies import require_permission
from core.logger import logger
from core.permissions import RoutePermission
from database import get_db
from models import LoginHistory, User

router = APIRouter(prefix="/login-history", tags=["login-history"])


def _filtered(
    db: Session,
    emails: list[str] | None,
    status: str | None,
    since: datetime | None,
    until: datetime | None,
) -> OrmQuery:
    q = db.query(LoginHistory).options(joinedload(LoginHistory.user))
    if emails:
        q = q.join(User, LoginHistory.user_id == User.id).filter(User.email.in_(emails))
    if status:
        q = q.filter(LoginHistory.status == status)
    if since:
        q = q.filter(LoginHistory.login_at >= since)
    if until:
        q = q.filter(LoginHistory.login_at <= until)
    return q.order_by(LoginHistory.login_at.desc(), LoginHistory.id.desc())


def _row(entry: LoginHistory) -> LoginHistoryRow:
    return LoginHistoryRow(
        id=entry.id,
        user_id=entry.user_id,
        user_email=entry.user.email if entry.user else None,
        user_name=entry.user.full_name if entry.user else None,
        status=entry.status,
        failure_reason=entry.failure_reason,
        ip_address=entry.ip_address,
        user_agent=entry.user_agent,
        login_at=entry.login_at,
    )


# ---------------------------------------------------------------------------
# GET /login-history  – newest-first with optional filters
# ---------------------------------------------------------------------------


@router.get("", response_model=LoginHistoryListResponse)
def list_login_history(
    emails: list[str] | None = Query(None, description="Filter by exact email(s) – repeated param"),
    status: Literal["success", "failed"] | None = Query(None),
    since: datetime | None = Query(None, description="ISO-8601 start of time window"),
    until: datetime | None = Query(None, description="ISO-8601 end of time window"),
    limit: int = Query(200, ge=1, le=1000),
    _: User = Depends(require_permission(RoutePermission.LOGIN_HISTORY_VIEW)),
    db: Session = Depends(get_db),
):
    """
    Return login attempts newest-first.

    * ``emails`` – one or more exact addresses of the account tried.
    * ``status`` – ``success`` or ``failed``.
    * ``since`` / ``until`` – ISO-8601 bounds on ``login_at``.
    * ``limit`` – max rows returned (default 200, cap 1000).
    """
    rows = _filtered(db, emails, status, since, until).limit(limit).all()
    return LoginHistoryListResponse(entries=[_row(row) for row in rows])


# ---------------------------------------------------------------------------
# GET /login-history/export  – download as Excel
# ---------------------------------------------------------------------------

_HEADER_FONT  = Font(name="Calibri", size=11, bold=True, color="FFFFFF")
_HEADER_FILL  = PatternFill(start_color="6C63FF", end_color="6C63FF", fill_type="solid")
_HEADER_ALIGN = Alignment(horizontal="center", vertical="center")
_THIN_BORDER  = Border(
    left=Side(style="thin", color="CCCCCC"),
    right=Side(style="thin", color="CCCCCC"),
    top=Side(style="thin", color="CCCCCC"),
    bottom=Side(style="thin", color="CCCCCC"),
)

EXPORT_HEADERS = ["ID", "Time", "Email", "Name", "Status", "Reason", "IP Address", "User Agent"]
_COL_WIDTHS = [8, 20, 28, 24, 10, 24, 16, 50]


@router.get("/export")
def export_login_history(
    emails: list[str] | None = Query(None),
    status: Literal["success", "failed"] | None = Query(None),
    since: datetime | None = Query(None),
    until: datetime | None = Query(None),
    current_user: User = Depends(require_permission(RoutePermission.LOGIN_HISTORY_VIEW)),
    db: Session = Depends(get_db),
):
    """Export the (filtered) login history as an Excel file."""
    rows = _filtered(db, emails, status, since, until).all()

    wb = Workbook()
    ws = wb.active
    ws.title = "Login History"

    ws.append(EXPORT_HEADERS)
    for cell in ws[1]:
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = _HEADER_ALIGN
        cell.border = _THIN_BORDER

    for row in rows:
        ws.append([
            row.id,
            row.login_at.strftime("%Y-%m-%d %H:%M:%S") if row.login_at else "",
            row.user.email if row.user else "",
            row.user.full_name if row.user else "",
            row.status,
            row.failure_reason or "",
            row.ip_address or "",
            row.user_agent or "",
        ])
        row_idx = ws.max_row
        for col_idx in range(1, len(EXPORT_HEADERS) + 1):
            ws.cell(row=row_idx, column=col_idx).border = _THIN_BORDER

    for col_idx, width in enumerate(_COL_WIDTHS, start=1):
        ws.column_dimensions[chr(64 + col_idx)].width = width

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    wb.close()

    logger.info("login history exported | user_id=%d rows=%d", current_user.id, len(rows))
    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": 'attachment; filename="login-history.xlsx"'},
    )
