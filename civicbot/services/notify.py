# File: civicbot/services/notify.py
# Project: civic-report-bot
import logging
import threading
import time
from datetime import timedelta
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from civicbot.bot.outbox import Outbox
from civicbot.core.config import settings
from civicbot.core.errors import DeliveryError
from civicbot.db import crud
from civicbot.db.base import utcnow

logger = logging.getLogger(__name__)

DIGEST_WINDOW = timedelta(minutes=15)


def new_issues_digest_text(total_new: int, recent_new: int) -> str:
    return (
        f"Общее количество заявок со статусом \"Новая\": {total_new}\n"
        f"Количество новых заявок за последние 15 минут: {recent_new}"
    )


def notify_admins_new_issues(db: Session, transport) -> int:
    """Sends the aggregate count to every admin; returns how many sends went out."""
    total_new = crud.count_new_issues(db)
    recent_new = crud.count_new_issues(db, since=utcnow() - DIGEST_WINDOW)
    text = new_issues_digest_text(total_new, recent_new)

    outbox = Outbox(transport)
    sent = 0
    for admin_tg in crud.list_admin_tg_ids(db):
        # admin private chats share the admin's user id
        if outbox.text(admin_tg, text) is not None:
            sent += 1
    return sent


def _spawn_daemon(target: Callable[[], None]) -> None:
    threading.Thread(target=target, name="broadcast", daemon=True).start()


class Broadcaster:
    """
    Sends one text to every known chat.

    ``start`` returns immediately; the fanout runs on a detached daemon
    thread and its only visible result is the summary message sent to the
    admin at the end. Each chat gets exactly one attempt, with a fixed pause
    between sends. There is no timeout and no way to cancel a running fanout.
    """

    def __init__(self, session_factory, transport, delay: Optional[float] = None,
                 spawn: Callable[[Callable[[], None]], None] = _spawn_daemon,
                 sleep: Callable[[float], None] = time.sleep):
        self.session_factory = session_factory
        self.transport = transport
        self.delay = settings.broadcast_delay_ms / 1000.0 if delay is None else delay
        self._spawn = spawn
        self._sleep = sleep

    def start(self, admin_tg_user_id: int, admin_chat_id: int, text: str) -> None:
        self._spawn(lambda: self.run(admin_tg_user_id, admin_chat_id, text))

    def run(self, admin_tg_user_id: int, admin_chat_id: int, text: str) -> int:
        db = self.session_factory()
        try:
            try:
                chat_ids = crud.list_chat_ids(db)
            except SQLAlchemyError:
                logger.error("broadcast: cannot list chats", exc_info=True)
                return 0

            sent = 0
            for i, chat_id in enumerate(chat_ids):
                if i:
                    self._sleep(self.delay)
                try:
                    self.transport.send_message(chat_id, text)
                    sent += 1
                except DeliveryError as e:
                    logger.info("broadcast to %s not delivered: %s", chat_id, e)
            logger.info("broadcast finished: %d of %d chats", sent, len(chat_ids))

            try:
                crud.record_broadcast(db, text, crud.resolve_user_id(db, admin_tg_user_id), sent)
            except SQLAlchemyError:
                logger.error("broadcast: cannot record result", exc_info=True)
                db.rollback()

            Outbox(self.transport).text(admin_chat_id, f"Рассылка доставлена: {sent} чатов")
            return sent
        finally:
            db.close()
