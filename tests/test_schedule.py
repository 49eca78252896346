import threading

from civicbot.services.schedule import QuarterHourGuard


def test_fires_once_per_boundary_and_rearms():
    guard = QuarterHourGuard()
    results = [guard.check_and_fire(m) for m in [14, 15, 15, 16, 30]]
    assert results == [False, True, False, False, True]


def test_same_boundary_after_rearm_fires_again():
    guard = QuarterHourGuard()
    assert guard.check_and_fire(45) is True
    assert guard.check_and_fire(46) is False
    # next hour, same minute value
    assert guard.check_and_fire(45) is True


def test_concurrent_checks_fire_once():
    guard = QuarterHourGuard()
    fired = []
    barrier = threading.Barrier(16)

    def worker():
        barrier.wait()
        fired.append(guard.check_and_fire(0))

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert fired.count(True) == 1


def test_reset():
    guard = QuarterHourGuard()
    assert guard.check_and_fire(15)
    guard.reset()
    assert guard.check_and_fire(15)
