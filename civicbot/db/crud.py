# File: civicbot/db/crud.py
# Project: civic-report-bot
"""
Issue store: every read and write the bot and the admin API perform.

Functions take an open ``Session`` and commit their own writes.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from civicbot.core.errors import NotFoundError, ValidationError
from civicbot.db.base import utcnow
from civicbot.models.attachment import IssueAttachment
from civicbot.models.broadcast import Broadcast
from civicbot.models.chat import Chat, WEB_CHAT_ID
from civicbot.models.comment import Comment
from civicbot.models.issue import Issue, IssueStatus, DISTRICTS, CATEGORIES
from civicbot.models.status_change import StatusChange
from civicbot.models.user import User, WEB_TG_USER_ID

LOCATION_WINDOW = timedelta(minutes=10)


# ---------------------------------------------------------------- actors

def get_user_by_tg(db: Session, tg_user_id: int) -> Optional[User]:
    return db.query(User).filter(User.tg_user_id == tg_user_id).first()


def upsert_user(db: Session, tg_user_id: int, username: str | None = None,
                first_name: str | None = None, last_name: str | None = None) -> User:
    user = get_user_by_tg(db, tg_user_id)
    if user is None:
        user = User(tg_user_id=tg_user_id, username=username, first_name=first_name, last_name=last_name)
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # created concurrently by another event of the same actor
            db.rollback()
            user = get_user_by_tg(db, tg_user_id)
            if user is None:
                raise
        else:
            db.refresh(user)
            return user
    if (user.username, user.first_name, user.last_name) != (username, first_name, last_name):
        user.username = username
        user.first_name = first_name
        user.last_name = last_name
        db.commit()
        db.refresh(user)
    return user


def upsert_chat(db: Session, chat_id: int, chat_type: str, title: str | None = None) -> Chat:
    chat = db.get(Chat, chat_id)
    if chat is None:
        chat = Chat(chat_id=chat_id, type=chat_type, title=title)
        db.add(chat)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            chat = db.get(Chat, chat_id)
            if chat is None:
                raise
        return chat
    if chat.type != chat_type or chat.title != title:
        chat.type = chat_type
        chat.title = title
        db.commit()
    return chat


def ensure_web_actor(db: Session) -> tuple[User, Chat]:
    user = upsert_user(db, WEB_TG_USER_ID, username="web_user", first_name="Web", last_name="User")
    chat = upsert_chat(db, WEB_CHAT_ID, "web", "Web Issues")
    return user, chat


def resolve_user_id(db: Session, tg_user_id: int) -> Optional[int]:
    return db.execute(select(User.id).where(User.tg_user_id == tg_user_id)).scalar()


def is_admin(db: Session, tg_user_id: int) -> bool:
    flag = db.execute(select(User.is_admin).where(User.tg_user_id == tg_user_id)).scalar()
    return bool(flag)


def promote_to_admin(db: Session, tg_user_id: int) -> None:
    result = db.execute(update(User).where(User.tg_user_id == tg_user_id).values(is_admin=True))
    if result.rowcount == 0:
        db.rollback()
        raise NotFoundError("Пользователь не найден")
    db.commit()


def list_admin_tg_ids(db: Session) -> list[int]:
    return list(db.execute(select(User.tg_user_id).where(User.is_admin.is_(True)).order_by(User.id)).scalars())


def first_admin(db: Session) -> Optional[User]:
    return db.query(User).filter(User.is_admin.is_(True)).order_by(User.id).first()


def list_chat_ids(db: Session) -> list[int]:
    """Every transport chat seen so far; the reserved web chat is not one."""
    return list(
        db.execute(select(Chat.chat_id).where(Chat.chat_id != WEB_CHAT_ID).order_by(Chat.chat_id)).scalars()
    )


# ---------------------------------------------------------------- issues

def _check_reference(value: str | None, allowed: list[str], what: str) -> str | None:
    if value is None or value == "":
        return None
    if value not in allowed:
        raise NotFoundError(f"Неизвестный {what}: {value}")
    return value


def create_issue(
    db: Session,
    user_id: int,
    chat_id: int,
    text: str | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
    district: str | None = None,
    category: str | None = None,
) -> Issue:
    if (latitude is None) != (longitude is None):
        raise ValidationError("Координаты должны содержать и широту, и долготу")
    obj = Issue(
        user_id=user_id,
        chat_id=chat_id,
        text=text,
        latitude=latitude,
        longitude=longitude,
        status=IssueStatus.new,
        district=_check_reference(district, DISTRICTS, "район"),
        category=_check_reference(category, CATEGORIES, "категория"),
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


def get_issue(db: Session, issue_id: int) -> Optional[Issue]:
    return db.get(Issue, issue_id)


def has_issues(db: Session, user_id: int) -> bool:
    return db.execute(select(Issue.id).where(Issue.user_id == user_id).limit(1)).first() is not None


def list_issues_by_owner_page(db: Session, user_id: int, limit: int, offset: int) -> list[Issue]:
    return (
        db.query(Issue)
        .filter(Issue.user_id == user_id)
        .order_by(Issue.created_at.desc(), Issue.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def _status_filter_query(db: Session, statuses: Iterable[IssueStatus], district: str | None, category: str | None):
    q = db.query(Issue).filter(Issue.status.in_(list(statuses)))
    if district:
        q = q.filter(Issue.district == district)
    if category:
        q = q.filter(Issue.category == category)
    return q


def list_issues_by_status_page(
    db: Session,
    statuses: Iterable[IssueStatus],
    limit: int,
    offset: int,
    district: str | None = None,
    category: str | None = None,
) -> list[Issue]:
    # id breaks created_at ties so consecutive pages never overlap
    return (
        _status_filter_query(db, statuses, district, category)
        .order_by(Issue.created_at.desc(), Issue.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def count_issues_by_status(db: Session, statuses: Iterable[IssueStatus],
                           district: str | None = None, category: str | None = None) -> int:
    return _status_filter_query(db, statuses, district, category).count()


def count_new_issues(db: Session, since: datetime | None = None) -> int:
    q = db.query(func.count(Issue.id)).filter(Issue.status == IssueStatus.new)
    if since is not None:
        q = q.filter(Issue.created_at >= since)
    return q.scalar() or 0


def attach_location_to_last_issue(
    db: Session,
    user_id: int,
    latitude: float,
    longitude: float,
    now: datetime | None = None,
) -> Optional[Issue]:
    """
    Puts coordinates on the owner's newest issue that has none and was
    created within the last ten minutes. Returns None when nothing qualifies.
    """
    now = now or utcnow()
    candidate_id = db.execute(
        select(Issue.id)
        .where(
            Issue.user_id == user_id,
            Issue.latitude.is_(None),
            Issue.longitude.is_(None),
            Issue.created_at > now - LOCATION_WINDOW,
        )
        .order_by(Issue.created_at.desc(), Issue.id.desc())
        .limit(1)
        .with_for_update()
    ).scalar()
    if candidate_id is None:
        db.rollback()
        return None

    result = db.execute(
        update(Issue)
        .where(Issue.id == candidate_id, Issue.latitude.is_(None), Issue.longitude.is_(None))
        .values(latitude=latitude, longitude=longitude, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        return None
    db.commit()
    issue = db.get(Issue, candidate_id)
    db.refresh(issue)
    return issue


def set_issue_status(
    db: Session,
    issue_id: int,
    new_status: IssueStatus,
    changed_by: int | None = None,
    comment: str | None = None,
) -> StatusChange:
    """Updates the status and appends the audit row in one transaction."""
    issue = db.execute(select(Issue).where(Issue.id == issue_id).with_for_update()).scalar()
    if issue is None:
        db.rollback()
        raise NotFoundError(f"Заявка #{issue_id} не найдена")

    now = utcnow()
    change = StatusChange(
        issue_id=issue.id,
        old_status=issue.status,
        new_status=new_status,
        changed_by=changed_by,
        comment=comment,
        created_at=now,
    )
    issue.status = new_status
    issue.updated_at = now
    db.add(change)
    db.commit()
    db.refresh(change)
    return change


def list_status_changes(db: Session, issue_id: int) -> list[StatusChange]:
    return (
        db.query(StatusChange)
        .filter(StatusChange.issue_id == issue_id)
        .order_by(StatusChange.created_at, StatusChange.id)
        .all()
    )


# ---------------------------------------------------------------- attachments

def add_attachment(db: Session, issue_id: int, file_id: str, file_type: str, local_path: str = "") -> IssueAttachment:
    att = IssueAttachment(issue_id=issue_id, file_id=file_id, file_type=file_type, local_path=local_path)
    db.add(att)
    db.commit()
    db.refresh(att)
    return att


def list_attachments(db: Session, issue_id: int) -> list[IssueAttachment]:
    return db.query(IssueAttachment).filter(IssueAttachment.issue_id == issue_id).order_by(IssueAttachment.id).all()


def attachments_by_issue(db: Session, issue_ids: list[int]) -> dict[int, list[IssueAttachment]]:
    out: dict[int, list[IssueAttachment]] = {}
    if not issue_ids:
        return out
    rows = (
        db.query(IssueAttachment)
        .filter(IssueAttachment.issue_id.in_(issue_ids))
        .order_by(IssueAttachment.id)
        .all()
    )
    for a in rows:
        out.setdefault(a.issue_id, []).append(a)
    return out


# ---------------------------------------------------------------- comments

def add_comment(db: Session, issue_id: int, admin_user_id: int, text: str) -> Comment:
    c = Comment(issue_id=issue_id, admin_user_id=admin_user_id, text=text)
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


def list_comments(db: Session, issue_id: int) -> list[Comment]:
    return db.query(Comment).filter(Comment.issue_id == issue_id).order_by(Comment.created_at, Comment.id).all()


def last_comments(db: Session, issue_ids: list[int]) -> dict[int, str]:
    out: dict[int, str] = {}
    if not issue_ids:
        return out
    rows = (
        db.query(Comment)
        .filter(Comment.issue_id.in_(issue_ids))
        .order_by(Comment.created_at, Comment.id)
        .all()
    )
    for c in rows:
        out[c.issue_id] = c.text
    return out


# ---------------------------------------------------------------- export / broadcasts

def export_rows(db: Session, start: datetime, end: datetime) -> list[tuple]:
    return (
        db.query(
            Issue.id,
            Issue.created_at,
            Issue.status,
            Issue.user_id,
            User.tg_user_id,
            func.coalesce(Issue.text, ""),
            Issue.latitude,
            Issue.longitude,
        )
        .join(User, User.id == Issue.user_id)
        .filter(Issue.created_at >= start, Issue.created_at < end)
        .order_by(Issue.created_at.asc(), Issue.id.asc())
        .all()
    )


def record_broadcast(db: Session, text: str, created_by: int | None, sent_count: int) -> Broadcast:
    b = Broadcast(text=text, created_by=created_by, sent_count=sent_count)
    db.add(b)
    db.commit()
    return b
