# File: civicbot/routers/public.py
# Project: civic-report-bot

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile, File
from sqlalchemy.orm import Session

from civicbot.core.errors import CivicBotError
from civicbot.core.ratelimit import limiter
from civicbot.db import crud
from civicbot.db.session import get_db
from civicbot.models.issue import DISTRICTS, CATEGORIES
from civicbot.schemas.issue import WebIssueIn, IssueCreated, UploadedFile
from civicbot.services.storage import save_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["public"])

MAX_FILES = 10
MAX_BYTES = 20 * 1024 * 1024


@router.get("/districts", response_model=list[str])
def list_districts():
    return DISTRICTS


@router.get("/categories", response_model=list[str])
def list_categories():
    return CATEGORIES


@router.post("/issues", response_model=IssueCreated, status_code=201)
@limiter.limit("10/minute")
def create_issue(request: Request, body: WebIssueIn, db: Session = Depends(get_db)):
    user, chat = crud.ensure_web_actor(db)
    try:
        issue = crud.create_issue(
            db,
            user_id=user.id,
            chat_id=chat.chat_id,
            text=body.text.strip(),
            latitude=body.latitude,
            longitude=body.longitude,
            district=body.district or None,
            category=body.category or None,
        )
    except CivicBotError as e:
        raise HTTPException(status_code=e.http_status, detail=e.message)
    logger.info("web issue #%s created", issue.id)
    return IssueCreated(id=issue.id, status=issue.status.value)


@router.post("/issues/{issue_id}/attachments", response_model=dict[str, list[UploadedFile]])
@limiter.limit("20/minute")
def upload_attachments(
    request: Request,
    issue_id: int,
    attachments: List[UploadFile] = File(...),
    db: Session = Depends(get_db),
):
    if issue_id <= 0:
        raise HTTPException(status_code=400, detail="invalid issue id")
    if crud.get_issue(db, issue_id) is None:
        raise HTTPException(status_code=404, detail="Issue not found")
    if len(attachments) > MAX_FILES:
        raise HTTPException(status_code=400, detail=f"Max {MAX_FILES} files")

    uploaded = []
    for f in attachments:
        data = f.file.read()
        if len(data) > MAX_BYTES:
            raise HTTPException(status_code=400, detail=f"{f.filename}: file too large")
        file_type = f.content_type or "application/octet-stream"
        try:
            name, path = save_upload(issue_id, f.filename, data)
        except OSError as e:
            logging.error(f"upload for issue {issue_id} failed: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail="failed to save file")
        crud.add_attachment(db, issue_id, name, file_type, path)
        uploaded.append(UploadedFile(name=name, type=file_type, url=f"/uploads/{name}"))
    return {"uploaded": uploaded}
