# File: civicbot/bot/moderation.py
# Project: civic-report-bot
"""
Paginated issue lists in the chat.

Two views share the same machinery: a citizen's own issues and the admin
list of active issues. A render replaces the previous render of the same
view in the same chat: old messages are deleted first, then a header and
one unit per issue are sent and their ids remembered for the next time.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from civicbot.bot import keyboards, render
from civicbot.bot.outbox import Outbox
from civicbot.bot.state import SessionStateRegistry, ListView, IssuesFilter
from civicbot.db import crud
from civicbot.models.attachment import IssueAttachment
from civicbot.models.issue import Issue, ACTIVE_STATUSES

logger = logging.getLogger(__name__)

PAGE_SIZE = 10

OWN_EMPTY = "Пока нет обращений"
OWN_EMPTY_PAGE = "На этой странице обращений нет."
ADMIN_EMPTY = "Нет новых или активных заявок."
ADMIN_EMPTY_PAGE = "На этой странице заявок нет."
FILTER_DISTRICT_PROMPT = "Выберите район для фильтрации:"
FILTER_CATEGORY_PROMPT = "Выберите категорию для фильтрации:"


def clamp_page(page: Optional[int]) -> int:
    return page if page and page > 0 else 1


def page_offset(page: int) -> int:
    return (page - 1) * PAGE_SIZE


class ModerationViewEngine:
    def __init__(self, registry: SessionStateRegistry, transport):
        self.registry = registry
        self.outbox = Outbox(transport)

    # ---- views

    def render_own_issues(self, db: Session, chat_id: int, user_id: int, page: int = 1) -> list[Issue]:
        page = clamp_page(page)
        issues = crud.list_issues_by_owner_page(db, user_id, PAGE_SIZE, page_offset(page))
        self._begin(chat_id, ListView.MY, page)

        if not issues:
            self._send(chat_id, ListView.MY, OWN_EMPTY if page == 1 else OWN_EMPTY_PAGE,
                       keyboards.user_paging_keyboard())
            return issues

        self._send(chat_id, ListView.MY, render.own_header(page), keyboards.user_paging_keyboard())
        self._units(db, chat_id, ListView.MY, issues, admin=False)
        return issues

    def render_admin_issues(self, db: Session, chat_id: int, page: int = 1) -> list[Issue]:
        page = clamp_page(page)
        f = self.registry.get_filter(chat_id)
        issues = crud.list_issues_by_status_page(
            db, ACTIVE_STATUSES, PAGE_SIZE, page_offset(page),
            district=f.district or None, category=f.category or None,
        )
        self._begin(chat_id, ListView.ISSUES, page)

        if not issues:
            self._send(chat_id, ListView.ISSUES, ADMIN_EMPTY if page == 1 else ADMIN_EMPTY_PAGE,
                       keyboards.admin_paging_keyboard())
            return issues

        self._send(chat_id, ListView.ISSUES, render.admin_header(page, f), keyboards.admin_paging_keyboard())
        self._units(db, chat_id, ListView.ISSUES, issues, admin=True)
        return issues

    # ---- filter

    def open_filter_menu(self, chat_id: int) -> None:
        self.outbox.text(chat_id, FILTER_DISTRICT_PROMPT, keyboards.filter_district_keyboard())

    def choose_filter_district(self, chat_id: int, district: str) -> IssuesFilter:
        """First menu step; the category step follows."""
        f = self.registry.set_filter_district(chat_id, district)
        self.outbox.text(chat_id, FILTER_CATEGORY_PROMPT, keyboards.filter_category_keyboard())
        return f

    def choose_filter_category(self, db: Session, chat_id: int, category: str) -> IssuesFilter:
        f = self.registry.set_filter_category(chat_id, category)
        self.render_admin_issues(db, chat_id, 1)
        return f

    def set_filter(self, db: Session, chat_id: int, district: Optional[str] = None,
                   category: Optional[str] = None) -> IssuesFilter:
        f = self.registry.set_filter(chat_id, district or "", category or "")
        self.render_admin_issues(db, chat_id, 1)
        return f

    def reset_filter(self, chat_id: int) -> None:
        self.registry.clear_filter(chat_id)

    # ---- internals

    def _begin(self, chat_id: int, view: ListView, page: int) -> None:
        self.registry.set_page(chat_id, view, page)
        self.outbox.delete(chat_id, self.registry.take_rendered(chat_id, view))

    def _send(self, chat_id: int, view: ListView, text: str, markup: Optional[dict] = None) -> None:
        mid = self.outbox.text(chat_id, text, markup)
        if mid:
            self.registry.add_rendered(chat_id, view, [mid])

    def _units(self, db: Session, chat_id: int, view: ListView, issues: list[Issue], admin: bool) -> None:
        ids = [i.id for i in issues]
        atts = crud.attachments_by_issue(db, ids)
        comments = crud.last_comments(db, ids)
        for issue in issues:
            if admin:
                caption = render.admin_issue_caption(issue, comments.get(issue.id))
                markup = keyboards.issue_actions_keyboard(issue.id)
            else:
                caption = render.own_issue_caption(issue, comments.get(issue.id))
                markup = None
            sent = self._unit(chat_id, caption, atts.get(issue.id, []), markup)
            self.registry.add_rendered(chat_id, view, sent)

    def _unit(self, chat_id: int, caption: str, atts: list[IssueAttachment], markup: Optional[dict]) -> list[int]:
        main, rest = render.split_main_photo(atts)
        mid = None
        if main is not None:
            mid = self.outbox.attachment(chat_id, main, caption=caption, reply_markup=markup)
        if mid is None:
            # no photo, or the photo could not be sent
            mid = self.outbox.text(chat_id, caption, markup)
        sent = [mid] if mid else []
        sent.extend(self.outbox.attachments(chat_id, rest))
        return sent
