# File: civicbot/models/chat.py
# Project: civic-report-bot

from sqlalchemy import BigInteger, String, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column
from civicbot.db.base import Base, utcnow

# origin endpoint of issues submitted through the web form
WEB_CHAT_ID = 1
PRIVATE_CHAT = "private"
GROUP_CHAT_TYPES = {"group", "supergroup", "channel"}

class Chat(Base):
    __tablename__ = "chats"

    chat_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
