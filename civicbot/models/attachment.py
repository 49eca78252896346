# File: civicbot/models/attachment.py
# Project: civic-report-bot

from sqlalchemy import String, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column
from civicbot.db.base import Base, utcnow

PHOTO = "photo"
VIDEO = "video"
DOCUMENT = "document"

class IssueAttachment(Base):
    __tablename__ = "attachments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    issue_id: Mapped[int] = mapped_column(ForeignKey("issues.id"), index=True, nullable=False)
    # transport file reference; for web uploads this is the stored file name
    file_id: Mapped[str] = mapped_column(String(255), nullable=False)
    file_type: Mapped[str] = mapped_column(String(100), nullable=False)
    local_path: Mapped[str] = mapped_column(String(500), nullable=False, default="", server_default="")
    created_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    @property
    def kind(self) -> str:
        """Normalised photo/video/document tag; web uploads store a MIME type."""
        if self.file_type in (PHOTO, VIDEO, DOCUMENT):
            return self.file_type
        if self.file_type.startswith("image/"):
            return PHOTO
        if self.file_type.startswith("video/"):
            return VIDEO
        return DOCUMENT
