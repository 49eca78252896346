# File: civicbot/schemas/telegram.py
# Project: civic-report-bot
"""Subset of the Telegram Bot API update payload the bot reads."""

from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field

from civicbot.models.chat import PRIVATE_CHAT, GROUP_CHAT_TYPES


class _TgModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TgUser(_TgModel):
    id: int
    is_bot: bool = False
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None


class TgChat(_TgModel):
    id: int
    type: str = PRIVATE_CHAT
    title: Optional[str] = None

    @property
    def is_private(self) -> bool:
        return self.type == PRIVATE_CHAT

    @property
    def is_group(self) -> bool:
        return self.type in GROUP_CHAT_TYPES


class PhotoSize(_TgModel):
    file_id: str
    width: int = 0
    height: int = 0
    file_size: Optional[int] = None


class TgFile(_TgModel):
    file_id: str
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    file_size: Optional[int] = None


class Location(_TgModel):
    latitude: float
    longitude: float


class Message(_TgModel):
    message_id: int
    from_user: Optional[TgUser] = Field(default=None, alias="from")
    chat: TgChat
    text: Optional[str] = None
    caption: Optional[str] = None
    photo: List[PhotoSize] = []
    video: Optional[TgFile] = None
    document: Optional[TgFile] = None
    audio: Optional[TgFile] = None
    voice: Optional[TgFile] = None
    animation: Optional[TgFile] = None
    location: Optional[Location] = None

    @property
    def stripped_text(self) -> str:
        return (self.text or "").strip()

    @property
    def body(self) -> Optional[str]:
        """Text of the report: the message text or, for media, its caption."""
        t = (self.text or "").strip() or (self.caption or "").strip()
        return t or None

    @property
    def is_command(self) -> bool:
        return (self.text or "").startswith("/")

    @property
    def command(self) -> str:
        if not self.is_command:
            return ""
        head = self.text.split(maxsplit=1)[0][1:]
        # /cmd@BotName in group chats
        return head.split("@", 1)[0].lower()

    @property
    def command_args(self) -> str:
        if not self.is_command:
            return ""
        parts = self.text.split(maxsplit=1)
        return parts[1].strip() if len(parts) > 1 else ""

    @property
    def largest_photo(self) -> Optional[PhotoSize]:
        # Telegram lists sizes from smallest to largest
        return self.photo[-1] if self.photo else None

    def has_issue_content(self) -> bool:
        """Text, caption or media. A location alone is not report content."""
        if self.stripped_text or (self.caption or "").strip():
            return True
        if self.photo:
            return True
        return any(x is not None for x in (self.document, self.video, self.audio, self.voice, self.animation))


class CallbackQuery(_TgModel):
    id: str
    from_user: TgUser = Field(alias="from")
    message: Optional[Message] = None
    data: Optional[str] = None


class Update(_TgModel):
    update_id: int
    message: Optional[Message] = None
    callback_query: Optional[CallbackQuery] = None
