# File: civicbot/services/export.py
# Project: civic-report-bot

import csv
import io
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from civicbot.core.errors import ValidationError
from civicbot.db import crud

HEADER = ["id", "created_at", "status", "user_id", "tg_user_id", "text", "latitude", "longitude"]
PERIOD_USAGE = "Формат: /export YYYY-MM-DD..YYYY-MM-DD"


def _parse_day(raw: str) -> datetime:
    return datetime.strptime(raw.strip(), "%Y-%m-%d").replace(tzinfo=timezone.utc)


def parse_period(raw: str) -> tuple[datetime, datetime]:
    """'2024-01-01..2024-01-31' -> [Jan 1 00:00, Feb 1 00:00) in UTC."""
    parts = (raw or "").split("..")
    if len(parts) != 2:
        raise ValidationError(PERIOD_USAGE)
    try:
        start = _parse_day(parts[0])
        end = _parse_day(parts[1]) + timedelta(days=1)
    except ValueError:
        raise ValidationError(PERIOD_USAGE) from None
    if end <= start:
        raise ValidationError("Конец периода раньше начала")
    return start, end


def day_range(start: datetime, end: datetime) -> str:
    return f"{start:%Y-%m-%d}..{end - timedelta(days=1):%Y-%m-%d}"


def _num(v) -> str:
    return "" if v is None else repr(float(v))


def issues_csv(db: Session, start: datetime, end: datetime) -> str:
    buf = io.StringIO()
    w = csv.writer(buf, lineterminator="\n")
    w.writerow(HEADER)
    for issue_id, created_at, status, user_id, tg_user_id, text, lat, lon in crud.export_rows(db, start, end):
        w.writerow([
            issue_id,
            created_at.isoformat() if created_at else "",
            status.value,
            user_id,
            tg_user_id,
            text,
            _num(lat),
            _num(lon),
        ])
    return buf.getvalue()
