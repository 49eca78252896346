# File: civicbot/routers/admin.py
# Project: civic-report-bot

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from civicbot.bot.runtime import get_bot
from civicbot.core.errors import CivicBotError
from civicbot.core.security import is_valid_api_token, make_admin_token, require_admin
from civicbot.db import crud
from civicbot.db.session import get_db
from civicbot.models.issue import IssueStatus, ACTIVE_STATUSES
from civicbot.schemas.auth import LoginIn, AccessToken
from civicbot.schemas.issue import (
    AttachmentOut,
    CommentIn,
    CommentOut,
    IssueOut,
    PaginatedIssuesOut,
    StatusChangeOut,
    StatusIn,
)
from civicbot.services import export, transitions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def get_transport():
    """Outbound channel for owner notifications; overridden in tests."""
    return get_bot().transport


def _http_error(e: CivicBotError) -> HTTPException:
    return HTTPException(status_code=e.http_status, detail=e.message)


def _acting_admin_tg(db: Session, admin_tg: Optional[int]) -> int:
    if admin_tg is not None:
        return admin_tg
    admin = crud.first_admin(db)
    if admin is None:
        raise HTTPException(status_code=400, detail="no admin to attribute the comment to")
    return admin.tg_user_id


@router.post("/login", response_model=AccessToken)
def login(body: LoginIn):
    if not is_valid_api_token(body.token):
        logger.warning("admin login with a wrong token")
        raise HTTPException(status_code=401, detail="Invalid token")
    return make_admin_token()


@router.get("/issues", response_model=PaginatedIssuesOut)
def list_issues(
    status: Optional[str] = Query(None, description="member name or label; default: new + in progress"),
    district: Optional[str] = None,
    category: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    _admin=Depends(require_admin),
):
    try:
        statuses = [transitions.coerce_status(status)] if status else ACTIVE_STATUSES
    except CivicBotError as e:
        raise _http_error(e)

    total = crud.count_issues_by_status(db, statuses, district, category)
    rows = crud.list_issues_by_status_page(db, statuses, limit, offset, district, category)
    ids = [i.id for i in rows]
    atts = crud.attachments_by_issue(db, ids)
    comments = crud.last_comments(db, ids)

    items = []
    for issue in rows:
        out = IssueOut.model_validate(issue)
        out.last_comment = comments.get(issue.id)
        out.attachments = [AttachmentOut.model_validate(a) for a in atts.get(issue.id, [])]
        items.append(out)
    return PaginatedIssuesOut(items=items, total=total, offset=offset, limit=limit)


@router.post("/issues/{issue_id}/status", response_model=StatusChangeOut)
def set_status(
    issue_id: int,
    body: StatusIn,
    db: Session = Depends(get_db),
    transport=Depends(get_transport),
    _admin=Depends(require_admin),
):
    try:
        change = transitions.set_status(
            db, issue_id, body.status,
            acting_tg_user_id=body.admin_tg,
            comment=body.comment,
            transport=transport,
        )
    except CivicBotError as e:
        raise _http_error(e)
    return change


@router.post("/issues/{issue_id}/comments", response_model=CommentOut, status_code=201)
def add_comment(
    issue_id: int,
    body: CommentIn,
    db: Session = Depends(get_db),
    transport=Depends(get_transport),
    _admin=Depends(require_admin),
):
    admin_tg = _acting_admin_tg(db, body.admin_tg)
    try:
        return transitions.add_comment(db, issue_id, admin_tg, body.text, transport=transport)
    except CivicBotError as e:
        raise _http_error(e)


@router.get("/issues/{issue_id}/attachments", response_model=list[AttachmentOut])
def list_attachments(issue_id: int, db: Session = Depends(get_db), _admin=Depends(require_admin)):
    if crud.get_issue(db, issue_id) is None:
        raise HTTPException(status_code=404, detail="Issue not found")
    return crud.list_attachments(db, issue_id)


@router.get("/issues/{issue_id}/history", response_model=list[StatusChangeOut])
def status_history(issue_id: int, db: Session = Depends(get_db), _admin=Depends(require_admin)):
    if crud.get_issue(db, issue_id) is None:
        raise HTTPException(status_code=404, detail="Issue not found")
    return crud.list_status_changes(db, issue_id)


@router.get("/export")
def export_csv(
    date_from: str = Query(..., alias="from", pattern=r"^\d{4}-\d{2}-\d{2}$"),
    date_to: str = Query(..., alias="to", pattern=r"^\d{4}-\d{2}-\d{2}$"),
    db: Session = Depends(get_db),
    _admin=Depends(require_admin),
):
    try:
        start, end = export.parse_period(f"{date_from}..{date_to}")
    except CivicBotError as e:
        raise _http_error(e)
    content = export.issues_csv(db, start, end)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="export.csv"'},
    )
