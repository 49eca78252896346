import threading

from civicbot.bot.state import SessionStateRegistry, ListView, IssuesFilter


def test_wizard_steps():
    reg = SessionStateRegistry()
    assert reg.get_wizard(1) is None
    assert reg.choose_category(1, "ЖКХ") is None

    reg.choose_district(1, "Ленинский")
    st = reg.choose_category(1, "ЖКХ")
    assert st.district == "Ленинский"
    assert st.category == "ЖКХ"
    assert st.complete

    # a new district restarts the wizard
    st = reg.choose_district(1, "Жовтневый")
    assert st.category == ""
    assert not st.complete

    reg.clear_wizard(1)
    assert reg.get_wizard(1) is None


def test_pages_and_mode_are_per_chat_and_view():
    reg = SessionStateRegistry()
    assert reg.get_page(10, ListView.MY) == 1
    assert reg.get_mode(10) is None

    reg.set_page(10, ListView.MY, 3)
    reg.set_page(10, ListView.ISSUES, 2)
    assert reg.get_page(10, ListView.MY) == 3
    assert reg.get_page(10, ListView.ISSUES) == 2
    assert reg.get_mode(10) == ListView.ISSUES
    assert reg.get_page(11, ListView.MY) == 1


def test_take_rendered_forgets():
    reg = SessionStateRegistry()
    reg.add_rendered(5, ListView.MY, [1, 2, None])
    reg.add_rendered(5, ListView.MY, [3])
    assert reg.get_rendered(5, ListView.MY) == [1, 2, 3]
    assert reg.take_rendered(5, ListView.MY) == [1, 2, 3]
    assert reg.take_rendered(5, ListView.MY) == []


def test_filter_two_steps():
    reg = SessionStateRegistry()
    assert reg.get_filter(7) == IssuesFilter()
    assert not reg.get_filter(7).active

    reg.set_filter_district(7, "Ленинский")
    f = reg.set_filter_category(7, "ЖКХ")
    assert f == IssuesFilter("Ленинский", "ЖКХ")

    # choosing a district again drops the category
    f = reg.set_filter_district(7, "Артемовский")
    assert f.category == ""

    reg.clear_filter(7)
    assert not reg.get_filter(7).active


def test_pending_comment_is_taken_once():
    reg = SessionStateRegistry()
    reg.set_pending_comment(900, 12)
    assert reg.get_pending_comment(900) == 12

    results = []
    barrier = threading.Barrier(8)

    def take():
        barrier.wait()
        results.append(reg.pop_pending_comment(900))

    threads = [threading.Thread(target=take) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(12) == 1
    assert results.count(None) == 7


def test_broadcast_draft_overwrite():
    reg = SessionStateRegistry()
    reg.set_broadcast_draft(900, "first")
    reg.set_broadcast_draft(900, "second")
    assert reg.pop_broadcast_draft(900) == "second"
    assert reg.pop_broadcast_draft(900) is None


def test_concurrent_rendered_ids_are_not_lost():
    reg = SessionStateRegistry()

    def add(start):
        for i in range(start, start + 100):
            reg.add_rendered(1, ListView.ISSUES, [i])

    threads = [threading.Thread(target=add, args=(n * 100 + 1,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(reg.get_rendered(1, ListView.ISSUES)) == list(range(1, 801))
