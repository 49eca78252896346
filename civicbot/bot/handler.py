# File: civicbot/bot/handler.py
# Project: civic-report-bot
"""
Single entry point for everything the transport delivers.

``Bot.handle_update`` is called once per update, possibly from many threads
at once. Each call opens its own database session and closes it before
returning; conversational state lives in the shared registry. Errors are
turned into a reply to the actor and never leave ``handle_update``.
"""
import logging
from typing import Optional, Union

from pydantic import ValidationError as PayloadError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from civicbot.bot import actions, keyboards
from civicbot.bot.intake import IntakeWorkflow
from civicbot.bot.moderation import ModerationViewEngine
from civicbot.bot.outbox import Outbox
from civicbot.bot.state import SessionStateRegistry, ListView
from civicbot.core.config import settings
from civicbot.core.errors import CivicBotError, DeliveryError, PermissionDenied, StorageError, ValidationError
from civicbot.core.security import check_secret
from civicbot.db import crud
from civicbot.models.issue import DISTRICTS, CATEGORIES
from civicbot.models.user import User
from civicbot.schemas.telegram import CallbackQuery, Message, Update
from civicbot.services import export, transitions
from civicbot.services.notify import Broadcaster
from civicbot.services.schedule import QuarterHourGuard

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "Справка: отправьте текст проблемы, фото/видео и геолокацию. "
    "В группах бот сообщения не обрабатывает. "
    "Для администраторов: /admin <секрет>, /export <период>, /broadcast \"текст\"."
)
FAQ_TEXT = (
    "Справка: отправьте текст проблемы, по желанию фото/видео и геолокацию.\n"
    "/my — мои обращения.\n"
    "/issues — просмотр активных заявок (для админов)."
)
GROUP_NOTICE = "В группах бот сообщения не обрабатывает. Напишите мне в личные сообщения."
ADMIN_USAGE = "Укажите секрет: /admin <секрет>"
ADMIN_GRANTED = (
    "Права администратора выданы. Доступны команды /export, /broadcast, /issues. "
    "Новые заявки будут приходить автоматически."
)
BROADCAST_USAGE = "Использование: /broadcast \"Текст\" — будет предпросмотр и подтверждение."


class Bot:
    def __init__(self, transport, session_factory, registry: Optional[SessionStateRegistry] = None,
                 guard: Optional[QuarterHourGuard] = None, broadcaster: Optional[Broadcaster] = None,
                 admin_secret: Optional[str] = None):
        self.transport = transport
        self.session_factory = session_factory
        self.registry = registry or SessionStateRegistry()
        self.guard = guard or QuarterHourGuard()
        self.broadcaster = broadcaster or Broadcaster(session_factory, transport)
        self.admin_secret = admin_secret if admin_secret is not None else settings.admin_secret

        self.outbox = Outbox(transport)
        self.intake = IntakeWorkflow(self.registry, transport, self.guard)
        self.views = ModerationViewEngine(self.registry, transport)

    def handle_update(self, raw: Union[Update, dict]) -> None:
        try:
            update = raw if isinstance(raw, Update) else Update.model_validate(raw)
        except PayloadError as e:
            logger.warning("unparseable update skipped: %s", e)
            return

        db = self.session_factory()
        try:
            if update.message is not None:
                self._on_message(db, update.message)
            elif update.callback_query is not None:
                self._on_callback(db, update.callback_query)
        except Exception:
            logger.exception("update %s failed", update.update_id)
        finally:
            db.close()

    # ------------------------------------------------------------ messages

    def _on_message(self, db: Session, msg: Message) -> None:
        if msg.from_user is None:
            return
        try:
            user = self._observe(db, msg.from_user, msg)
            if msg.is_command:
                self._on_command(db, msg, user)
            elif not msg.chat.is_group:
                self._on_private_message(db, msg, user)
        except CivicBotError as e:
            db.rollback()
            self.outbox.text(msg.chat.id, e.message)
        except SQLAlchemyError:
            logger.error("storage failure while handling message from %s", msg.from_user.id, exc_info=True)
            db.rollback()
            self.outbox.text(msg.chat.id, StorageError.message)

    def _observe(self, db: Session, tg_user, msg: Optional[Message]) -> User:
        """Upserts the actor and, when there is one, the chat."""
        user = crud.upsert_user(db, tg_user.id, tg_user.username, tg_user.first_name, tg_user.last_name)
        if msg is not None:
            crud.upsert_chat(db, msg.chat.id, msg.chat.type, msg.chat.title)
        return user

    def _on_private_message(self, db: Session, msg: Message, user: User) -> None:
        chat_id = msg.chat.id
        tg_id = msg.from_user.id
        text = msg.stripped_text

        if text == keyboards.BTN_MY_ISSUES:
            self.views.render_own_issues(db, chat_id, user.id, 1)
            return
        if text == keyboards.BTN_HELP:
            self.outbox.text(chat_id, FAQ_TEXT)
            return
        if text in (keyboards.BTN_PREV, keyboards.BTN_NEXT):
            self._step_page(db, chat_id, user, -1 if text == keyboards.BTN_PREV else 1)
            return

        if msg.location is not None and not msg.has_issue_content():
            self.intake.attach_location(db, msg, user.id)
            return

        if text and msg.text is not None:
            issue_id = self.registry.pop_pending_comment(tg_id)
            if issue_id is not None:
                self._commit_pending_comment(db, chat_id, tg_id, issue_id, text)
                return

        if text in DISTRICTS:
            self.intake.choose_district(chat_id, tg_id, text)
            return
        if text in CATEGORIES:
            self.intake.choose_category(chat_id, tg_id, text)
            return

        self.intake.submit(db, msg, user.id)

    def _commit_pending_comment(self, db: Session, chat_id: int, tg_id: int, issue_id: int, text: str) -> None:
        if not crud.is_admin(db, tg_id):
            logger.info("pending comment from %s dropped: no longer admin", tg_id)
            return
        transitions.add_comment(db, issue_id, tg_id, text, transport=self.transport)
        self.outbox.text(chat_id, f"Комментарий добавлен к заявке #{issue_id}")

    def _step_page(self, db: Session, chat_id: int, user: User, delta: int) -> None:
        view = self.registry.get_mode(chat_id) or ListView.MY
        page = max(1, self.registry.get_page(chat_id, view) + delta)
        if view == ListView.ISSUES:
            transitions.ensure_admin(db, user.tg_user_id)
            self.views.render_admin_issues(db, chat_id, page)
        else:
            self.views.render_own_issues(db, chat_id, user.id, page)

    # ------------------------------------------------------------ commands

    def _on_command(self, db: Session, msg: Message, user: User) -> None:
        chat_id = msg.chat.id
        tg_id = user.tg_user_id
        cmd = msg.command
        args = msg.command_args

        if cmd in ("start", "add"):
            if msg.chat.is_group:
                self.outbox.text(chat_id, GROUP_NOTICE)
                return
            self.intake.start(chat_id, tg_id, greet=(cmd == "start"))
        elif cmd == "help":
            self.outbox.text(chat_id, HELP_TEXT)
        elif cmd == "my":
            self.views.render_own_issues(db, chat_id, user.id, 1)
        elif cmd == "admin":
            self._grant_admin(db, chat_id, tg_id, args)
        elif cmd == "issues":
            transitions.ensure_admin(db, tg_id)
            self.views.reset_filter(chat_id)
            self.views.render_admin_issues(db, chat_id, 1)
        elif cmd == "issues_filter":
            transitions.ensure_admin(db, tg_id)
            self.views.open_filter_menu(chat_id)
        elif cmd == "export":
            transitions.ensure_admin(db, tg_id)
            self._export(db, chat_id, args)
        elif cmd == "broadcast":
            transitions.ensure_admin(db, tg_id)
            self._draft_broadcast(chat_id, tg_id, args)
        elif msg.chat.is_private:
            self.outbox.text(chat_id, FAQ_TEXT if "faq" in msg.stripped_text.lower() else HELP_TEXT)

    def _grant_admin(self, db: Session, chat_id: int, tg_id: int, secret: str) -> None:
        if not secret:
            raise ValidationError(ADMIN_USAGE)
        if not check_secret(secret, self.admin_secret):
            logger.warning("wrong admin secret from tg user %s", tg_id)
            raise PermissionDenied("Неверный секрет")
        crud.promote_to_admin(db, tg_id)
        logger.info("tg user %s promoted to admin", tg_id)
        self.outbox.text(chat_id, ADMIN_GRANTED)

    def _export(self, db: Session, chat_id: int, period: str) -> None:
        start, end = export.parse_period(period)
        content = export.issues_csv(db, start, end)
        self.outbox.text(chat_id, "Экспорт за период: " + export.day_range(start, end))
        try:
            self.transport.send_document_bytes(chat_id, "export.csv", content.encode("utf-8"))
        except DeliveryError as e:
            logger.warning("export to chat %s not delivered: %s", chat_id, e)

    def _draft_broadcast(self, chat_id: int, tg_id: int, text: str) -> None:
        text = text.strip().strip('"').strip()
        if not text:
            raise ValidationError(BROADCAST_USAGE)
        self.registry.set_broadcast_draft(tg_id, text)
        self.outbox.text(chat_id, "Предпросмотр рассылки:\n\n" + text, keyboards.broadcast_confirm_keyboard())

    # ------------------------------------------------------------ inline buttons

    def _on_callback(self, db: Session, cq: CallbackQuery) -> None:
        try:
            answer = self._dispatch(db, cq)
        except CivicBotError as e:
            db.rollback()
            answer = e.message
        except SQLAlchemyError:
            logger.error("storage failure while handling callback from %s", cq.from_user.id, exc_info=True)
            db.rollback()
            answer = StorageError.message
        self.outbox.answer(cq.id, answer)

    def _dispatch(self, db: Session, cq: CallbackQuery) -> Optional[str]:
        action = actions.decode(cq.data)
        if action is None:
            return None

        user = self._observe(db, cq.from_user, cq.message)
        tg_id = user.tg_user_id
        chat_id = cq.message.chat.id if cq.message else tg_id

        if isinstance(action, actions.Page):
            if action.view == ListView.ISSUES:
                transitions.ensure_admin(db, tg_id)
                self.views.render_admin_issues(db, chat_id, action.n)
            else:
                self.views.render_own_issues(db, chat_id, user.id, action.n)
            return f"Страница {action.n}"

        if isinstance(action, actions.BroadcastCancel):
            self.registry.pop_broadcast_draft(tg_id)
            return "Отменено"

        # everything below is admin only
        transitions.ensure_admin(db, tg_id)

        if isinstance(action, actions.ChangeStatus):
            transitions.set_status(db, action.issue_id, action.status, acting_tg_user_id=tg_id,
                                   transport=self.transport)
            return f"Статус #{action.issue_id}: {action.status.value}"

        if isinstance(action, actions.AddComment):
            if crud.get_issue(db, action.issue_id) is None:
                return f"Заявка #{action.issue_id} не найдена"
            self.registry.set_pending_comment(tg_id, action.issue_id)
            return f"Напишите комментарий к заявке #{action.issue_id}"

        if isinstance(action, actions.SetFilter):
            if action.dimension == actions.DISTRICT:
                self.views.choose_filter_district(chat_id, action.value)
                return "Район выбран"
            self.views.choose_filter_category(db, chat_id, action.value)
            return "Фильтр применён"

        if isinstance(action, actions.BroadcastConfirm):
            draft = self.registry.pop_broadcast_draft(tg_id)
            if draft is None:
                return "Нет черновика"
            logger.info("broadcast started by tg user %s", tg_id)
            self.broadcaster.start(tg_id, chat_id, draft)
            return "Рассылка запущена"

        return None
