# File: civicbot/bot/outbox.py
# Project: civic-report-bot
"""Best-effort wrappers around the transport: failures are logged, never raised."""
import logging
from pathlib import Path
from typing import Optional

from civicbot.core.errors import DeliveryError
from civicbot.models.attachment import IssueAttachment, PHOTO, VIDEO

logger = logging.getLogger(__name__)


def media_source(att: IssueAttachment):
    """Stored file when we have one, otherwise the transport's file reference."""
    if att.local_path:
        return Path(att.local_path)
    return att.file_id


class Outbox:
    def __init__(self, transport):
        self.transport = transport

    def text(self, chat_id: int, text: str, reply_markup: Optional[dict] = None) -> Optional[int]:
        try:
            return self.transport.send_message(chat_id, text, reply_markup=reply_markup)
        except DeliveryError as e:
            logger.warning("send to chat %s failed: %s", chat_id, e)
            return None

    def attachment(self, chat_id: int, att: IssueAttachment, caption: Optional[str] = None,
                   reply_markup: Optional[dict] = None) -> Optional[int]:
        source = media_source(att)
        try:
            kind = att.kind
            if kind == PHOTO:
                return self.transport.send_photo(chat_id, source, caption=caption, reply_markup=reply_markup)
            if kind == VIDEO:
                return self.transport.send_video(chat_id, source, caption=caption)
            return self.transport.send_document(chat_id, source, caption=caption)
        except DeliveryError as e:
            logger.warning("attachment %s to chat %s failed: %s", att.id, chat_id, e)
            return None

    def attachments(self, chat_id: int, atts: list[IssueAttachment]) -> list[int]:
        ids = []
        for a in atts:
            mid = self.attachment(chat_id, a)
            if mid:
                ids.append(mid)
        return ids

    def delete(self, chat_id: int, message_ids: list[int]) -> None:
        for mid in message_ids:
            try:
                self.transport.delete_message(chat_id, mid)
            except DeliveryError:
                # already gone or too old to delete
                pass

    def answer(self, callback_id: str, text: Optional[str] = None) -> None:
        try:
            self.transport.answer_callback(callback_id, text)
        except DeliveryError as e:
            logger.debug("callback answer failed: %s", e)
