# File: civicbot/bot/actions.py
# Project: civic-report-bot
"""
Inline-button actions.

Callback data is decoded exactly once, here, into one of the action types
below; handlers dispatch on the type. Data that does not decode is ignored.

Wire format (must fit Telegram's 64-byte callback limit):

    status:<issue id>:<status name>    ChangeStatus
    comment:<issue id>                 AddComment
    if:d:<district index>|ALL          SetFilter(district)
    if:c:<category index>|ALL          SetFilter(category)
    my:page:<n> / issues:page:<n>      Page
    broadcast:confirm / :cancel        BroadcastConfirm / BroadcastCancel
"""
from dataclasses import dataclass
from typing import Optional, Union

from civicbot.bot.state import ListView
from civicbot.models.issue import IssueStatus, DISTRICTS, CATEGORIES

ALL = "ALL"
DISTRICT = "district"
CATEGORY = "category"


@dataclass(frozen=True)
class ChangeStatus:
    issue_id: int
    status: IssueStatus


@dataclass(frozen=True)
class AddComment:
    issue_id: int


@dataclass(frozen=True)
class SetFilter:
    dimension: str
    # empty string means "all"
    value: str


@dataclass(frozen=True)
class Page:
    view: ListView
    n: int


@dataclass(frozen=True)
class BroadcastConfirm:
    pass


@dataclass(frozen=True)
class BroadcastCancel:
    pass


Action = Union[ChangeStatus, AddComment, SetFilter, Page, BroadcastConfirm, BroadcastCancel]


def encode(action: Action) -> str:
    if isinstance(action, ChangeStatus):
        return f"status:{action.issue_id}:{action.status.name}"
    if isinstance(action, AddComment):
        return f"comment:{action.issue_id}"
    if isinstance(action, SetFilter):
        options = DISTRICTS if action.dimension == DISTRICT else CATEGORIES
        key = str(options.index(action.value)) if action.value else ALL
        return f"if:{action.dimension[0]}:{key}"
    if isinstance(action, Page):
        return f"{action.view.value}:page:{action.n}"
    if isinstance(action, BroadcastConfirm):
        return "broadcast:confirm"
    if isinstance(action, BroadcastCancel):
        return "broadcast:cancel"
    raise TypeError(f"not an action: {action!r}")


def _positive_int(raw: str) -> Optional[int]:
    try:
        n = int(raw)
    except (TypeError, ValueError):
        return None
    return n if n > 0 else None


def _filter_value(raw: str, options: list[str]) -> Optional[str]:
    if raw == ALL:
        return ""
    try:
        idx = int(raw)
    except ValueError:
        return None
    if 0 <= idx < len(options):
        return options[idx]
    return None


def decode(data: Optional[str]) -> Optional[Action]:
    if not data:
        return None
    parts = data.split(":")
    head = parts[0]

    if head == "status" and len(parts) == 3:
        issue_id = _positive_int(parts[1])
        try:
            status = IssueStatus[parts[2]]
        except KeyError:
            return None
        return ChangeStatus(issue_id, status) if issue_id else None

    if head == "comment" and len(parts) == 2:
        issue_id = _positive_int(parts[1])
        return AddComment(issue_id) if issue_id else None

    if head == "if" and len(parts) == 3:
        if parts[1] == "d":
            value = _filter_value(parts[2], DISTRICTS)
            return SetFilter(DISTRICT, value) if value is not None else None
        if parts[1] == "c":
            value = _filter_value(parts[2], CATEGORIES)
            return SetFilter(CATEGORY, value) if value is not None else None
        return None

    if head in (ListView.MY.value, ListView.ISSUES.value) and len(parts) == 3 and parts[1] == "page":
        # a malformed page number falls back to the first page
        return Page(ListView(head), _positive_int(parts[2]) or 1)

    if head == "broadcast" and len(parts) == 2:
        if parts[1] == "confirm":
            return BroadcastConfirm()
        if parts[1] == "cancel":
            return BroadcastCancel()

    return None
