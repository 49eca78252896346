# File: civicbot/bot/state.py
# Project: civic-report-bot
"""
Process-local conversational state.

Everything here is lost on restart and is never written to the database.
All access goes through one re-entrant lock; compound read-modify-write
steps are exposed as single methods so handlers for the same actor running
on different threads cannot interleave inside them. Nothing here is held
across a database call.
"""
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class ListView(str, Enum):
    MY = "my"
    ISSUES = "issues"


@dataclass(frozen=True)
class WizardState:
    district: str = ""
    category: str = ""

    @property
    def complete(self) -> bool:
        return bool(self.district and self.category)


@dataclass(frozen=True)
class IssuesFilter:
    district: str = ""
    category: str = ""

    @property
    def active(self) -> bool:
        return bool(self.district or self.category)


class SessionStateRegistry:
    def __init__(self):
        self._lock = threading.RLock()
        self._wizard: dict[int, WizardState] = {}            # tg user id
        self._pages: dict[tuple[int, ListView], int] = {}    # (chat id, view)
        self._mode: dict[int, ListView] = {}                 # chat id
        self._rendered: dict[tuple[int, ListView], list[int]] = {}
        self._pending_comment: dict[int, int] = {}           # admin tg id -> issue id
        self._broadcast_draft: dict[int, str] = {}           # admin tg id -> text
        self._filters: dict[int, IssuesFilter] = {}          # chat id

    # ---- intake wizard

    def get_wizard(self, user_id: int) -> Optional[WizardState]:
        with self._lock:
            return self._wizard.get(user_id)

    def choose_district(self, user_id: int, district: str) -> WizardState:
        with self._lock:
            st = WizardState(district=district)
            self._wizard[user_id] = st
            return st

    def choose_category(self, user_id: int, category: str) -> Optional[WizardState]:
        """Returns None when no district has been chosen yet."""
        with self._lock:
            st = self._wizard.get(user_id)
            if st is None or not st.district:
                return None
            st = replace(st, category=category)
            self._wizard[user_id] = st
            return st

    def clear_wizard(self, user_id: int) -> None:
        with self._lock:
            self._wizard.pop(user_id, None)

    # ---- list views

    def set_page(self, chat_id: int, view: ListView, page: int) -> None:
        with self._lock:
            self._pages[(chat_id, view)] = page
            self._mode[chat_id] = view

    def get_page(self, chat_id: int, view: ListView) -> int:
        with self._lock:
            return self._pages.get((chat_id, view), 1)

    def get_mode(self, chat_id: int) -> Optional[ListView]:
        with self._lock:
            return self._mode.get(chat_id)

    def take_rendered(self, chat_id: int, view: ListView) -> list[int]:
        """Returns and forgets the message ids of the previous render."""
        with self._lock:
            return self._rendered.pop((chat_id, view), [])

    def add_rendered(self, chat_id: int, view: ListView, message_ids: list[int]) -> None:
        ids = [i for i in message_ids if i]
        if not ids:
            return
        with self._lock:
            self._rendered.setdefault((chat_id, view), []).extend(ids)

    def get_rendered(self, chat_id: int, view: ListView) -> list[int]:
        with self._lock:
            return list(self._rendered.get((chat_id, view), []))

    # ---- admin list filter

    def get_filter(self, chat_id: int) -> IssuesFilter:
        with self._lock:
            return self._filters.get(chat_id, IssuesFilter())

    def set_filter_district(self, chat_id: int, district: str) -> IssuesFilter:
        # picking a district starts a new two-step selection
        with self._lock:
            f = IssuesFilter(district=district)
            self._filters[chat_id] = f
            return f

    def set_filter_category(self, chat_id: int, category: str) -> IssuesFilter:
        with self._lock:
            f = replace(self._filters.get(chat_id, IssuesFilter()), category=category)
            self._filters[chat_id] = f
            return f

    def set_filter(self, chat_id: int, district: str = "", category: str = "") -> IssuesFilter:
        with self._lock:
            f = IssuesFilter(district=district or "", category=category or "")
            self._filters[chat_id] = f
            return f

    def clear_filter(self, chat_id: int) -> None:
        with self._lock:
            self._filters.pop(chat_id, None)

    # ---- pending comment

    def set_pending_comment(self, admin_id: int, issue_id: int) -> None:
        with self._lock:
            self._pending_comment[admin_id] = issue_id

    def get_pending_comment(self, admin_id: int) -> Optional[int]:
        with self._lock:
            return self._pending_comment.get(admin_id)

    def pop_pending_comment(self, admin_id: int) -> Optional[int]:
        with self._lock:
            return self._pending_comment.pop(admin_id, None)

    # ---- broadcast draft

    def set_broadcast_draft(self, admin_id: int, text: str) -> None:
        with self._lock:
            self._broadcast_draft[admin_id] = text

    def pop_broadcast_draft(self, admin_id: int) -> Optional[str]:
        with self._lock:
            return self._broadcast_draft.pop(admin_id, None)
