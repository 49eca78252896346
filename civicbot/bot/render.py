# File: civicbot/bot/render.py
# Project: civic-report-bot

from typing import Optional

from civicbot.bot.state import IssuesFilter
from civicbot.models.attachment import IssueAttachment, PHOTO
from civicbot.models.issue import Issue

BODY_LIMIT = 200
NO_TEXT = "(без текста)"


def trim(s: str, n: int = BODY_LIMIT) -> str:
    if len(s) <= n:
        return s
    return s[:n] + "…"


def split_main_photo(atts: list[IssueAttachment]) -> tuple[Optional[IssueAttachment], list[IssueAttachment]]:
    """First photo in stored order becomes the carrier; everything else follows it."""
    main = None
    rest = []
    for a in atts:
        if main is None and a.kind == PHOTO:
            main = a
        else:
            rest.append(a)
    return main, rest


def _meta_lines(issue: Issue, with_coords: bool) -> str:
    extra = ""
    if issue.district:
        extra += "\nРайон: " + issue.district
    if issue.category:
        extra += "\nКатегория: " + issue.category
    if with_coords and issue.has_location:
        extra += f"\nКоординаты: {issue.latitude:.6f}, {issue.longitude:.6f}"
    return extra


def own_issue_caption(issue: Issue, last_comment: Optional[str]) -> str:
    caption = f"#{issue.id} — {issue.status.value}{_meta_lines(issue, False)}\n{trim(issue.text or NO_TEXT)}"
    if last_comment:
        caption += "\n\nКомментарий администрации:\n" + last_comment
    return caption


def admin_issue_caption(issue: Issue, last_comment: Optional[str]) -> str:
    caption = (
        f"Заявка #{issue.id}\nСтатус: {issue.status.value}"
        f"{_meta_lines(issue, True)}\n{trim(issue.text or NO_TEXT)}"
    )
    if last_comment:
        caption += "\n\nКомментарий администратора:\n" + last_comment
    return caption


def filter_description(f: IssuesFilter) -> str:
    if not f.active:
        return ""
    text = "\nФильтр:"
    if f.district:
        text += " район — " + f.district
    if f.category:
        if f.district:
            text += ","
        text += " категория — " + f.category
    return text


def admin_header(page: int, f: IssuesFilter) -> str:
    return f"Заявки (страница {page})" + filter_description(f)


def own_header(page: int) -> str:
    return f"Ваши обращения (страница {page}):"
