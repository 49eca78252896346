# File: civicbot/bot/keyboards.py
# Project: civic-report-bot

from civicbot.bot import actions
from civicbot.models.issue import DISTRICTS, CATEGORIES, ACTION_STATUSES

BTN_MY_ISSUES = "Мои обращения"
BTN_HELP = "FAQ / Помощь"
BTN_PREV = "⬅ Предыдущая"
BTN_NEXT = "Следующая ➡"


def _reply_keyboard(rows: list[list[str]]) -> dict:
    return {"keyboard": [[{"text": t} for t in row] for row in rows], "resize_keyboard": True}


def _inline_keyboard(rows: list[list[tuple[str, actions.Action]]]) -> dict:
    return {
        "inline_keyboard": [
            [{"text": label, "callback_data": actions.encode(action)} for label, action in row]
            for row in rows
        ]
    }


def district_keyboard() -> dict:
    return _reply_keyboard([[d] for d in DISTRICTS])


def category_keyboard() -> dict:
    return _reply_keyboard([[c] for c in CATEGORIES])


def user_paging_keyboard() -> dict:
    return _reply_keyboard([[BTN_PREV, BTN_NEXT], [BTN_MY_ISSUES], [BTN_HELP]])


def admin_paging_keyboard() -> dict:
    return _reply_keyboard([[BTN_PREV, BTN_NEXT]])


def issue_actions_keyboard(issue_id: int) -> dict:
    return _inline_keyboard([
        [(s.value, actions.ChangeStatus(issue_id, s)) for s in ACTION_STATUSES],
        [("💬 Комментарий", actions.AddComment(issue_id))],
    ])


def filter_district_keyboard() -> dict:
    rows = [[(d, actions.SetFilter(actions.DISTRICT, d))] for d in DISTRICTS]
    rows.append([("Все районы", actions.SetFilter(actions.DISTRICT, ""))])
    return _inline_keyboard(rows)


def filter_category_keyboard() -> dict:
    rows = [[(c, actions.SetFilter(actions.CATEGORY, c))] for c in CATEGORIES]
    rows.append([("Все категории", actions.SetFilter(actions.CATEGORY, ""))])
    return _inline_keyboard(rows)


def broadcast_confirm_keyboard() -> dict:
    return _inline_keyboard([[
        ("✅ Подтвердить", actions.BroadcastConfirm()),
        ("❌ Отмена", actions.BroadcastCancel()),
    ]])
