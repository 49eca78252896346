# File: civicbot/models/status_change.py
from __future__ import annotations
from sqlalchemy import Text, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column
from civicbot.db.base import Base, utcnow
from civicbot.models.issue import IssueStatus, status_column_type

class StatusChange(Base):
    """Append-only audit row, one per status transition."""
    __tablename__ = "status_changes"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    issue_id: Mapped[int] = mapped_column(ForeignKey("issues.id"), index=True, nullable=False)
    old_status: Mapped[IssueStatus | None] = mapped_column(status_column_type(), nullable=True)
    new_status: Mapped[IssueStatus] = mapped_column(status_column_type(), nullable=False)
    changed_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True)
