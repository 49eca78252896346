import pytest

from civicbot.bot import actions, keyboards
from civicbot.bot.state import ListView
from civicbot.models.issue import IssueStatus


@pytest.mark.parametrize("data,expected", [
    ("status:12:in_progress", actions.ChangeStatus(12, IssueStatus.in_progress)),
    ("status:3:rejected", actions.ChangeStatus(3, IssueStatus.rejected)),
    ("comment:7", actions.AddComment(7)),
    ("if:d:3", actions.SetFilter(actions.DISTRICT, "Ленинский")),
    ("if:d:ALL", actions.SetFilter(actions.DISTRICT, "")),
    ("if:c:1", actions.SetFilter(actions.CATEGORY, "Дороги и транспорт")),
    ("if:c:ALL", actions.SetFilter(actions.CATEGORY, "")),
    ("my:page:2", actions.Page(ListView.MY, 2)),
    ("issues:page:4", actions.Page(ListView.ISSUES, 4)),
    ("broadcast:confirm", actions.BroadcastConfirm()),
    ("broadcast:cancel", actions.BroadcastCancel()),
])
def test_decode(data, expected):
    assert actions.decode(data) == expected


@pytest.mark.parametrize("data", [
    None, "", "status:x:done", "status:1:closed", "status:-1:done", "comment:",
    "if:d:99", "if:x:1", "broadcast:maybe", "something:else",
])
def test_decode_rejects_garbage(data):
    assert actions.decode(data) is None


def test_bad_page_number_falls_back_to_first_page():
    assert actions.decode("issues:page:abc") == actions.Page(ListView.ISSUES, 1)
    assert actions.decode("my:page:0") == actions.Page(ListView.MY, 1)


def test_keyboard_callback_data_decodes_and_fits_limit():
    boards = [
        keyboards.issue_actions_keyboard(123456789),
        keyboards.filter_district_keyboard(),
        keyboards.filter_category_keyboard(),
        keyboards.broadcast_confirm_keyboard(),
    ]
    for board in boards:
        for row in board["inline_keyboard"]:
            for button in row:
                data = button["callback_data"]
                assert len(data.encode("utf-8")) <= 64
                assert actions.decode(data) is not None


def test_issue_actions_buttons():
    board = keyboards.issue_actions_keyboard(5)
    status_row, comment_row = board["inline_keyboard"]
    assert [b["text"] for b in status_row] == ["В обработке", "Завершено", "Отклонено"]
    assert actions.decode(comment_row[0]["callback_data"]) == actions.AddComment(5)
