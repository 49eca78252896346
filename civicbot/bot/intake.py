# File: civicbot/bot/intake.py
# Project: civic-report-bot
"""
Turning a citizen's messages into an issue.

The wizard is district -> category -> report. A report that arrives with no
wizard in progress is taken as is, without district or category. A bare
location is never a new report: it is attached to the sender's most recent
report if that one is fresh and has no coordinates yet.
"""
import logging
import random
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from civicbot.bot import keyboards
from civicbot.bot.outbox import Outbox
from civicbot.bot.state import SessionStateRegistry
from civicbot.core.errors import DeliveryError, ValidationError
from civicbot.db import crud
from civicbot.models.attachment import PHOTO, VIDEO, DOCUMENT
from civicbot.models.issue import Issue
from civicbot.schemas.telegram import Message
from civicbot.services import notify, storage
from civicbot.services.schedule import QuarterHourGuard

logger = logging.getLogger(__name__)

GREETINGS = [
    "Здравствуйте! Я помощник Фоксик. Расскажите, какая у вас проблема?",
    "Приветствую! Опишите вашу ситуацию, я зафиксирую обращение.",
    "Добрый день! Готов принять ваше сообщение о проблеме.",
    "Фоксик на связи! Чем могу помочь?",
    "Здравствуйте! Опишите проблему, и я передам информацию ответственным.",
]

ACCEPTED = [
    "Ваше обращение зарегистрировано. Номер заявки: ",
    "Спасибо за сообщение! Заявка принята в работу, ее номер: ",
    "Информация получена. Мы уже занимаемся вашим вопросом. Номер вашей заявки: ",
    "Заявка зафиксирована. Скоро с вами свяжутся. Номер вашей заявки: ",
    "Принято! Мы получили ваше сообщение и передадим его специалистам. Ваша заявка под номером: ",
]

CHOOSE_DISTRICT = "Для начала выберите район, в котором возникла проблема."
NEW_REPORT = "Создаём новое обращение.\nСначала выберите район, в котором возникла проблема."
DISTRICT_FIRST = "Сначала выберите район командой /add или /start."
CATEGORY_MISSING = "Выберите категорию проблемы на клавиатуре ниже."
LOCATION_NO_CANDIDATE = (
    "Не нашёл недавнее обращение без координат. "
    "Сначала отправьте текст с описанием проблемы, потом геопозицию."
)
LOCATION_NO_CONTEXT = "Сначала отправьте текст с описанием проблемы, затем геопозицию."

REMOVE_KEYBOARD = {"remove_keyboard": True}


class IntakeWorkflow:
    def __init__(self, registry: SessionStateRegistry, transport, guard: QuarterHourGuard):
        self.registry = registry
        self.transport = transport
        self.outbox = Outbox(transport)
        self.guard = guard

    # ---- wizard steps

    def start(self, chat_id: int, tg_user_id: int, greet: bool = True) -> None:
        """/start greets first, /add goes straight to the district step."""
        self.registry.clear_wizard(tg_user_id)
        if greet:
            self.outbox.text(chat_id, random.choice(GREETINGS))
            self.outbox.text(chat_id, CHOOSE_DISTRICT, keyboards.district_keyboard())
        else:
            self.outbox.text(chat_id, NEW_REPORT, keyboards.district_keyboard())

    def choose_district(self, chat_id: int, tg_user_id: int, district: str) -> None:
        self.registry.choose_district(tg_user_id, district)
        self.outbox.text(chat_id, f"Район: {district}\nТеперь выберите категорию проблемы.",
                         keyboards.category_keyboard())

    def choose_category(self, chat_id: int, tg_user_id: int, category: str) -> None:
        st = self.registry.choose_category(tg_user_id, category)
        if st is None:
            raise ValidationError(DISTRICT_FIRST)
        self.outbox.text(
            chat_id,
            f"Район: {st.district}\nКатегория: {st.category}\n\n"
            "Теперь опишите проблему текстом, при необходимости приложите фото/видео и отправьте геопозицию.",
            REMOVE_KEYBOARD,
        )

    # ---- report

    def submit(self, db: Session, msg: Message, user_id: int) -> Optional[Issue]:
        """Free-form content from a private chat. Returns the created issue."""
        if not msg.has_issue_content():
            return None
        tg_user_id = msg.from_user.id
        st = self.registry.get_wizard(tg_user_id)
        if st is not None and not st.complete:
            raise ValidationError(CATEGORY_MISSING)

        district = st.district if st else None
        category = st.category if st else None
        lat = msg.location.latitude if msg.location else None
        lon = msg.location.longitude if msg.location else None

        issue = crud.create_issue(
            db,
            user_id=user_id,
            chat_id=msg.chat.id,
            text=msg.body,
            latitude=lat,
            longitude=lon,
            district=district,
            category=category,
        )
        logger.info("issue #%s created by tg user %s", issue.id, tg_user_id)
        self._save_attachments(db, issue, msg)

        self.registry.clear_wizard(tg_user_id)
        self.outbox.text(msg.chat.id, random.choice(ACCEPTED) + str(issue.id))
        self._maybe_notify_admins(db)
        return issue

    def _save_attachments(self, db: Session, issue: Issue, msg: Message) -> None:
        wanted = []
        if msg.largest_photo:
            wanted.append((PHOTO, msg.largest_photo.file_id, None, "jpg"))
        if msg.video:
            wanted.append((VIDEO, msg.video.file_id, msg.video.file_name, "mp4"))
        if msg.document:
            wanted.append((DOCUMENT, msg.document.file_id, msg.document.file_name, "bin"))

        # each save stands alone; a failed one leaves the issue without it
        for kind, file_id, filename, ext in wanted:
            key = storage.make_object_key(issue.id, kind, filename, default_ext=ext)
            try:
                path = storage.save_telegram_file(self.transport, file_id, key)
                crud.add_attachment(db, issue.id, file_id, kind, path)
            except (DeliveryError, OSError) as e:
                logger.warning("issue #%s: %s not saved: %s", issue.id, kind, e)
            except SQLAlchemyError:
                logger.error("issue #%s: %s not recorded", issue.id, kind, exc_info=True)
                db.rollback()

    def _maybe_notify_admins(self, db: Session) -> None:
        if not self.guard.check_and_fire():
            return
        try:
            notify.notify_admins_new_issues(db, self.transport)
        except SQLAlchemyError:
            logger.error("admin digest failed", exc_info=True)
            db.rollback()

    # ---- location

    def attach_location(self, db: Session, msg: Message, user_id: int) -> Optional[Issue]:
        issue = crud.attach_location_to_last_issue(db, user_id, msg.location.latitude, msg.location.longitude)
        if issue is not None:
            self.outbox.text(msg.chat.id, f"Геопозиция добавлена к заявке #{issue.id}")
            return issue
        if crud.has_issues(db, user_id):
            self.outbox.text(msg.chat.id, LOCATION_NO_CANDIDATE)
        else:
            self.outbox.text(msg.chat.id, LOCATION_NO_CONTEXT)
        return None
