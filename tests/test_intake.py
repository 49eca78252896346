from pathlib import Path

from civicbot.bot import intake
from civicbot.db import crud
from civicbot.models.issue import Issue, IssueStatus


def _issues(db):
    db.expire_all()
    return db.query(Issue).order_by(Issue.id).all()


def _accepted(text, issue_id):
    return any(text == prefix + str(issue_id) for prefix in intake.ACCEPTED)


def test_start_greets_then_asks_for_district(bot, tg, transport):
    bot.handle_update(tg.message(501, "/start"))

    first, second = transport.sent
    assert first["text"] in intake.GREETINGS
    assert second["text"] == intake.CHOOSE_DISTRICT
    labels = [row[0]["text"] for row in second["reply_markup"]["keyboard"]]
    assert "Ленинский" in labels


def test_add_skips_greeting(bot, tg, transport):
    bot.handle_update(tg.message(501, "/add"))
    assert transport.texts() == [intake.NEW_REPORT]


def test_wizard_creates_issue(bot, tg, transport, db):
    bot.handle_update(tg.message(501, "/start"))
    bot.handle_update(tg.message(501, "Ленинский"))
    bot.handle_update(tg.message(501, "Дороги и транспорт"))
    bot.handle_update(tg.message(501, "Яма на дороге"))

    (issue,) = _issues(db)
    assert issue.text == "Яма на дороге"
    assert issue.district == "Ленинский"
    assert issue.category == "Дороги и транспорт"
    assert issue.status == IssueStatus.new
    assert crud.list_status_changes(db, issue.id) == []
    assert _accepted(transport.last_text(501), issue.id)

    # wizard is cleared, the next report carries no district
    bot.handle_update(tg.message(501, "Ещё одна проблема"))
    assert _issues(db)[-1].district is None


def test_category_without_district(bot, tg, transport, db):
    bot.handle_update(tg.message(501, "ЖКХ"))
    assert transport.last_text(501) == intake.DISTRICT_FIRST
    assert _issues(db) == []


def test_report_before_category(bot, tg, transport, db):
    bot.handle_update(tg.message(501, "Жовтневый"))
    bot.handle_update(tg.message(501, "Течёт крыша"))
    assert transport.last_text(501) == intake.CATEGORY_MISSING
    assert _issues(db) == []


def test_free_text_without_wizard(bot, tg, db):
    bot.handle_update(tg.message(501, "Не работает фонарь"))
    (issue,) = _issues(db)
    assert issue.district is None
    assert issue.category is None
    assert issue.chat_id == 501


def test_group_messages_are_not_reports(bot, tg, transport, db):
    bot.handle_update(tg.message(501, "Яма", chat_id=-100, chat_type="supergroup"))
    assert _issues(db) == []
    assert transport.sent == []


def test_start_in_group(bot, tg, transport):
    bot.handle_update(tg.message(501, "/start@CivicBot", chat_id=-100, chat_type="group"))
    assert transport.texts() == ["В группах бот сообщения не обрабатывает. Напишите мне в личные сообщения."]


def test_photo_keeps_largest_size(bot, tg, db, uploads_dir):
    photo = [
        {"file_id": "small", "width": 90, "height": 90},
        {"file_id": "big", "width": 1280, "height": 1280},
    ]
    bot.handle_update(tg.message(501, caption="Свалка у дома", photo=photo))

    (issue,) = _issues(db)
    assert issue.text == "Свалка у дома"
    (att,) = crud.list_attachments(db, issue.id)
    assert att.file_id == "big"
    assert att.kind == "photo"
    assert Path(att.local_path).parent == uploads_dir
    assert Path(att.local_path).read_bytes() == b"fake:big"


def test_document_name_gives_extension(bot, tg, db):
    doc = {"file_id": "doc1", "file_name": "Акт.PDF"}
    bot.handle_update(tg.message(501, document=doc))

    (issue,) = _issues(db)
    assert issue.text is None
    (att,) = crud.list_attachments(db, issue.id)
    assert att.local_path.endswith(".pdf")


def test_failed_download_still_creates_issue(bot, tg, transport, db):
    transport.fail_downloads = True
    bot.handle_update(tg.message(501, caption="Фото не скачалось", photo=[{"file_id": "p"}]))

    (issue,) = _issues(db)
    assert crud.list_attachments(db, issue.id) == []
    assert _accepted(transport.last_text(501), issue.id)


class TestLocation:
    def test_attached_to_fresh_report(self, bot, tg, transport, db):
        bot.handle_update(tg.message(501, "Сломана скамейка"))
        bot.handle_update(tg.location(501, 48.015, 37.80))

        (issue,) = _issues(db)
        assert (issue.latitude, issue.longitude) == (48.015, 37.80)
        assert transport.last_text(501) == f"Геопозиция добавлена к заявке #{issue.id}"

    def test_without_any_report(self, bot, tg, transport, db):
        bot.handle_update(tg.location(501, 48.0, 37.8))
        assert transport.last_text(501) == intake.LOCATION_NO_CONTEXT
        assert _issues(db) == []

    def test_report_already_located(self, bot, tg, transport, db):
        bot.handle_update(tg.message(501, "Сломана скамейка"))
        bot.handle_update(tg.location(501, 48.0, 37.8))
        bot.handle_update(tg.location(501, 10.0, 10.0))

        (issue,) = _issues(db)
        assert issue.latitude == 48.0
        assert transport.last_text(501) == intake.LOCATION_NO_CANDIDATE


def test_admin_digest_on_quarter_hour(bot, tg, transport, guard, admin):
    guard.fire = True
    bot.handle_update(tg.message(501, "Нет воды"))

    digest = transport.last_text(900)
    assert 'Общее количество заявок со статусом "Новая": 1' in digest
    assert "за последние 15 минут: 1" in digest
    assert guard.calls == 1


def test_no_digest_between_boundaries(bot, tg, transport, admin):
    bot.handle_update(tg.message(501, "Нет воды"))
    assert transport.texts(900) == []


def test_broken_payload_is_skipped(bot, transport):
    bot.handle_update({"update_id": "nope", "message": {"chat": {}}})
    assert transport.sent == []


def test_report_mentioning_faq_is_still_a_report(bot, tg, transport, db):
    bot.handle_update(tg.message(501, "FAQ на сайте мэрии не открывается"))

    (issue,) = _issues(db)
    assert issue.text == "FAQ на сайте мэрии не открывается"
    assert _accepted(transport.last_text(501), issue.id)
