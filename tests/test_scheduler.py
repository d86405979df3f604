from experiment.scheduler import ManualScheduler, Scheduler


def test_poll_fires_due_timers_in_order():
    now = [0]
    sched = Scheduler(lambda: now[0])
    fired = []
    sched.call_later(300, lambda: fired.append("b"))
    sched.call_later(100, lambda: fired.append("a"))
    sched.call_later(500, lambda: fired.append("c"))

    now[0] = 350
    assert sched.poll() == 2
    assert fired == ["a", "b"]
    assert sched.pending_count() == 1
    assert sched.next_due_ms() == 500


def test_cancelled_timer_never_fires():
    sched = ManualScheduler()
    fired = []
    handle = sched.call_later(100, lambda: fired.append(1))
    handle.cancel()
    sched.advance(1000)
    assert fired == []
    assert not handle.pending
    assert sched.next_due_ms() is None


def test_advance_sets_clock_to_due_time():
    sched = ManualScheduler(start_ms=1000)
    seen = []
    sched.call_later(250, lambda: seen.append(sched.now_ms()))
    sched.advance(1000)
    assert seen == [1250]
    assert sched.now_ms() == 2000


def test_timers_scheduled_from_callbacks_fire_within_same_advance():
    sched = ManualScheduler()
    seen = []

    def first():
        seen.append(("first", sched.now_ms()))
        sched.call_later(200, lambda: seen.append(("second", sched.now_ms())))

    sched.call_later(100, first)
    sched.advance(250)
    assert seen == [("first", 100)]
    sched.advance(100)
    assert seen == [("first", 100), ("second", 300)]
