# File: civicbot/models/issue.py
from __future__ import annotations
from enum import Enum as PyEnum
from sqlalchemy import BigInteger, String, Text, Float, Enum, DateTime, ForeignKey, func, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from civicbot.db.base import Base, utcnow

DISTRICTS = [
    "Каменнобродский",
    "Жовтневый",
    "Артемовский",
    "Ленинский",
]

CATEGORIES = [
    "ЖКХ",
    "Дороги и транспорт",
    "Благоустройство и экология",
    "Образование и культура",
    "Безопасность и правопорядок",
    "Связь и цифровые услуги",
]

class IssueStatus(PyEnum):
    # values are user-facing and end up in the audit trail as-is
    new = "Новая"
    in_progress = "В обработке"
    done = "Завершено"
    rejected = "Отклонено"

    @classmethod
    def parse(cls, raw: str) -> "IssueStatus":
        """Accepts either the member name (``in_progress``) or the label."""
        value = (raw or "").strip()
        for member in cls:
            if value == member.name or value == member.value:
                return member
        raise ValueError(f"unknown issue status: {raw!r}")

# statuses shown in the moderation list
ACTIVE_STATUSES = [IssueStatus.new, IssueStatus.in_progress]
# statuses an admin can move an issue to from the chat
ACTION_STATUSES = [IssueStatus.in_progress, IssueStatus.done, IssueStatus.rejected]

def status_column_type() -> Enum:
    return Enum(
        IssueStatus,
        name="issue_status",
        native_enum=False,
        length=32,
        values_callable=lambda e: [m.value for m in e],
        validate_strings=True,
    )

class Issue(Base):
    __tablename__ = "issues"
    __table_args__ = (
        CheckConstraint("(latitude IS NULL) = (longitude IS NULL)", name="ck_issues_coordinates_pair"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    chat_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("chats.chat_id"), nullable=False)
    text: Mapped[str | None] = mapped_column(Text, nullable=True)

    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    status: Mapped[IssueStatus] = mapped_column(status_column_type(), default=IssueStatus.new, nullable=False, index=True)
    district: Mapped[str | None] = mapped_column(String(120), index=True, nullable=True)
    category: Mapped[str | None] = mapped_column(String(120), index=True, nullable=True)

    created_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True)
    updated_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

Index("ix_issues_user_created", Issue.user_id, Issue.created_at)
