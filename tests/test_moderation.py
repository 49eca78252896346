import pytest

from civicbot.bot import keyboards, moderation
from civicbot.core.errors import DeliveryError
from civicbot.db import crud
from civicbot.models.issue import IssueStatus
from civicbot.models.status_change import StatusChange


def _report(db, user, text="Проблема", **kw):
    return crud.create_issue(db, user_id=user.id, chat_id=user.tg_user_id, text=text, **kw)


def test_admin_list_header_and_units(bot, tg, transport, db, citizen, admin):
    a = _report(db, citizen, "первая", district="Ленинский", latitude=48.0, longitude=37.8)
    b = _report(db, citizen, "вторая")
    done = _report(db, citizen, "закрытая")
    crud.set_issue_status(db, done.id, IssueStatus.done)

    bot.handle_update(tg.message(900, "/issues"))

    header, first, second = transport.sent
    assert header["text"] == "Заявки (страница 1)"
    assert header["reply_markup"] == keyboards.admin_paging_keyboard()
    # newest first
    assert first["text"].startswith(f"Заявка #{b.id}\nСтатус: Новая")
    assert second["text"] == (
        f"Заявка #{a.id}\nСтатус: Новая\nРайон: Ленинский\nКоординаты: 48.000000, 37.800000\nпервая"
    )
    assert second["reply_markup"] == keyboards.issue_actions_keyboard(a.id)


def test_rerender_deletes_previous_messages(bot, tg, transport, db, citizen, admin):
    _report(db, citizen)
    bot.handle_update(tg.message(900, "/issues"))
    first_ids = [m["message_id"] for m in transport.sent]

    bot.handle_update(tg.message(900, "/issues"))
    assert transport.deleted == [(900, mid) for mid in first_ids]


def test_admin_paging_with_reply_buttons(bot, tg, transport, db, citizen, admin):
    for i in range(12):
        _report(db, citizen, f"#{i}")
    bot.handle_update(tg.message(900, "/issues"))
    assert len(transport.sent) == 1 + moderation.PAGE_SIZE

    transport.reset()
    bot.handle_update(tg.message(900, keyboards.BTN_NEXT))
    assert transport.sent[0]["text"] == "Заявки (страница 2)"
    assert len(transport.sent) == 3

    transport.reset()
    bot.handle_update(tg.message(900, keyboards.BTN_NEXT))
    assert transport.texts() == [moderation.ADMIN_EMPTY_PAGE]


def test_admin_empty_list(bot, tg, transport, admin):
    bot.handle_update(tg.message(900, "/issues"))
    assert transport.texts() == [moderation.ADMIN_EMPTY]


def test_own_issues_have_no_buttons(bot, tg, transport, db, citizen, admin):
    mine = _report(db, citizen, "моя")
    _report(db, admin, "чужая")
    crud.add_comment(db, mine.id, admin.id, "Принято")

    bot.handle_update(tg.message(501, "/my"))

    header, unit = transport.sent
    assert header["text"] == "Ваши обращения (страница 1):"
    assert unit["reply_markup"] is None
    assert unit["text"] == f"#{mine.id} — Новая\nмоя\n\nКомментарий администрации:\nПринято"


def test_own_empty_pages(bot, tg, transport, citizen):
    bot.handle_update(tg.message(501, keyboards.BTN_MY_ISSUES))
    assert transport.last_text(501) == moderation.OWN_EMPTY

    bot.handle_update(tg.callback(501, "my:page:2"))
    assert transport.last_text(501) == moderation.OWN_EMPTY_PAGE
    assert transport.answers[-1][1] == "Страница 2"


def test_photo_carries_caption_and_other_files_follow(bot, tg, transport, db, citizen, admin):
    issue = _report(db, citizen, "x" * 250)
    crud.add_attachment(db, issue.id, "doc-1", "document")
    crud.add_attachment(db, issue.id, "photo-1", "photo")
    crud.add_attachment(db, issue.id, "photo-2", "image/png")

    bot.handle_update(tg.message(900, "/issues"))

    kinds = [(m["kind"], m.get("media")) for m in transport.sent]
    assert kinds == [("text", None), ("photo", "photo-1"), ("document", "doc-1"), ("photo", "photo-2")]
    carrier = transport.sent[1]
    assert carrier["caption"].endswith("x" * 200 + "…")
    assert carrier["reply_markup"] == keyboards.issue_actions_keyboard(issue.id)


def test_failed_photo_falls_back_to_text(bot, tg, transport, db, citizen, admin, monkeypatch):
    issue = _report(db, citizen, "текст")
    crud.add_attachment(db, issue.id, "photo-1", "photo")

    def broken(*args, **kwargs):
        raise DeliveryError("bad photo")

    monkeypatch.setattr(transport, "send_photo", broken)
    bot.handle_update(tg.message(900, "/issues"))

    unit = transport.sent[1]
    assert unit["kind"] == "text"
    assert unit["text"].startswith(f"Заявка #{issue.id}")


def test_filter_through_menu(bot, tg, transport, db, citizen, admin):
    _report(db, citizen, "ленинский", district="Ленинский")
    _report(db, citizen, "другой", district="Жовтневый")

    bot.handle_update(tg.message(900, "/issues_filter"))
    assert transport.last_text(900) == moderation.FILTER_DISTRICT_PROMPT

    bot.handle_update(tg.callback(900, "if:d:3"))
    assert transport.answers[-1][1] == "Район выбран"
    assert transport.last_text(900) == moderation.FILTER_CATEGORY_PROMPT

    transport.reset()
    bot.handle_update(tg.callback(900, "if:c:ALL"))
    assert transport.answers[-1][1] == "Фильтр применён"
    header, unit = transport.sent
    assert header["text"] == "Заявки (страница 1)\nФильтр: район — Ленинский"
    assert unit["text"].endswith("ленинский")

    # plain /issues starts unfiltered again
    transport.reset()
    bot.handle_update(tg.message(900, "/issues"))
    assert transport.sent[0]["text"] == "Заявки (страница 1)"
    assert len(transport.sent) == 3


@pytest.mark.parametrize("command", ["/issues", "/issues_filter", "/export 2024-01-01..2024-01-31", "/broadcast hi"])
def test_admin_commands_need_privilege(bot, tg, transport, citizen, command):
    bot.handle_update(tg.message(501, command))
    assert transport.texts(501) == ["Недостаточно прав"]


def test_status_button(bot, tg, transport, db, citizen, admin):
    issue = _report(db, citizen)
    bot.handle_update(tg.callback(900, f"status:{issue.id}:done"))

    assert transport.answers[-1][1] == f"Статус #{issue.id}: Завершено"
    assert transport.last_text(501) == f"Статус вашей заявки #{issue.id} изменён на: Завершено"
    (change,) = crud.list_status_changes(db, issue.id)
    assert change.changed_by == admin.id


def test_status_button_from_non_admin(bot, tg, transport, db, citizen):
    issue = _report(db, citizen)
    bot.handle_update(tg.callback(501, f"status:{issue.id}:done"))

    assert "Недостаточно прав" in transport.answers[-1][1]
    assert db.query(StatusChange).count() == 0
    db.expire_all()
    assert crud.get_issue(db, issue.id).status == IssueStatus.new


def test_status_button_for_missing_issue(bot, tg, transport, admin):
    bot.handle_update(tg.callback(900, "status:777:in_progress"))
    assert transport.answers[-1][1] == "Заявка #777 не найдена"


def test_undecodable_button_is_acknowledged(bot, tg, transport, admin):
    bot.handle_update(tg.callback(900, "status:zz"))
    assert [text for _, text in transport.answers] == [None]


def test_set_filter_renders_first_page(bot, db, transport, citizen):
    _report(db, citizen, "двор", district="Ленинский", category="ЖКХ")
    _report(db, citizen, "дорога", district="Ленинский", category="Дороги и транспорт")
    _report(db, citizen, "другой район", district="Артемовский", category="ЖКХ")

    f = bot.views.set_filter(db, 900, district="Ленинский", category="ЖКХ")

    assert f.district == "Ленинский" and f.category == "ЖКХ"
    header, unit = transport.sent
    assert header["text"] == "Заявки (страница 1)\nФильтр: район — Ленинский, категория — ЖКХ"
    assert unit["text"].endswith("двор")

    transport.reset()
    bot.views.set_filter(db, 900, category="ЖКХ")
    header, *units = transport.sent
    assert header["text"] == "Заявки (страница 1)\nФильтр: категория — ЖКХ"
    assert len(units) == 2
