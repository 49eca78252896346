# File: civicbot/services/transitions.py
# Project: civic-report-bot
"""
Status changes and admin comments.

The chat callbacks and the admin HTTP API both end up here, so an issue
moves and is commented on the same way whichever surface the admin used.
"""
import logging
from typing import Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from civicbot.bot.outbox import Outbox
from civicbot.core.errors import NotFoundError, PermissionDenied, ValidationError
from civicbot.db import crud
from civicbot.models.chat import WEB_CHAT_ID
from civicbot.models.comment import Comment
from civicbot.models.issue import IssueStatus
from civicbot.models.status_change import StatusChange

logger = logging.getLogger(__name__)


def ensure_admin(db: Session, tg_user_id: int) -> None:
    """Privilege is read from storage on every call, never cached."""
    if not crud.is_admin(db, tg_user_id):
        raise PermissionDenied()


def coerce_status(raw: Union[IssueStatus, str]) -> IssueStatus:
    if isinstance(raw, IssueStatus):
        return raw
    try:
        return IssueStatus.parse(raw)
    except ValueError:
        raise ValidationError(f"Недопустимый статус: {raw}") from None


def _notify_owner(transport, chat_id: int, text: str) -> None:
    if transport is None or chat_id == WEB_CHAT_ID:
        return
    Outbox(transport).text(chat_id, text)


def _resolve_actor(db: Session, tg_user_id: Optional[int]) -> Optional[int]:
    if tg_user_id is None:
        return None
    try:
        return crud.resolve_user_id(db, tg_user_id)
    except SQLAlchemyError:
        # attribution is optional, the transition still goes through
        logger.warning("could not resolve acting user %s", tg_user_id, exc_info=True)
        db.rollback()
        return None


def set_status(
    db: Session,
    issue_id: int,
    new_status: Union[IssueStatus, str],
    acting_tg_user_id: Optional[int] = None,
    comment: Optional[str] = None,
    transport=None,
) -> StatusChange:
    status = coerce_status(new_status)
    changed_by = _resolve_actor(db, acting_tg_user_id)
    change = crud.set_issue_status(db, issue_id, status, changed_by=changed_by, comment=comment)
    logger.info("issue #%s: %s -> %s (by %s)", issue_id,
                change.old_status.value if change.old_status else None, status.value, changed_by)

    issue = crud.get_issue(db, issue_id)
    _notify_owner(transport, issue.chat_id, f"Статус вашей заявки #{issue_id} изменён на: {status.value}")
    return change


def add_comment(db: Session, issue_id: int, admin_tg_user_id: int, text: str, transport=None) -> Comment:
    """Appends a comment; status and the audit trail are left alone."""
    text = (text or "").strip()
    if not text:
        raise ValidationError("Комментарий не может быть пустым")
    issue = crud.get_issue(db, issue_id)
    if issue is None:
        raise NotFoundError(f"Заявка #{issue_id} не найдена")
    admin_id = crud.resolve_user_id(db, admin_tg_user_id)
    if admin_id is None:
        raise NotFoundError("Администратор не найден")
    ensure_admin(db, admin_tg_user_id)

    c = crud.add_comment(db, issue.id, admin_id, text)
    _notify_owner(transport, issue.chat_id, f"Комментарий по вашей заявке #{issue.id}:\n\n{text}")
    return c
