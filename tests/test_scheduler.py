"""
Unit tests for the timer queue.
"""
from conftest import ManualClock
from face_overlay.scheduler import TimerQueue


class TestTimerQueue:
    def test_runs_in_due_order(self):
        clock = ManualClock(0.0)
        timers = TimerQueue(clock=clock)
        calls = []
        timers.call_later(2.0, lambda: calls.append("late"))
        timers.call_later(1.0, lambda: calls.append("early"))
        timers.call_later(1.0, lambda: calls.append("early-second"))

        clock.advance(1.5)
        assert timers.run_due() == 2
        clock.advance(1.0)
        assert timers.run_due() == 1

        assert calls == ["early", "early-second", "late"]

    def test_zero_delay_from_callback_waits_for_next_run(self):
        timers = TimerQueue(clock=ManualClock(0.0))
        calls = []

        def reschedule():
            calls.append("tick")
            timers.call_later(0.0, reschedule)

        timers.call_later(0.0, reschedule)

        assert timers.run_due() == 1
        assert timers.run_due() == 1
        assert calls == ["tick", "tick"]
        assert timers.pending == 1

    def test_cancelled_task_never_runs(self):
        timers = TimerQueue(clock=ManualClock(0.0))
        calls = []
        task = timers.call_later(0.0, lambda: calls.append("x"))

        task.cancel()

        assert not task.pending
        assert timers.pending == 0
        assert timers.run_due() == 0
        assert calls == []

    def test_done_task_is_not_pending(self):
        timers = TimerQueue(clock=ManualClock(0.0))
        task = timers.call_later(0.0, lambda: None)

        timers.run_due()

        assert task.done
        assert not task.pending

    def test_negative_delay_is_treated_as_zero(self):
        clock = ManualClock(10.0)
        timers = TimerQueue(clock=clock)

        task = timers.call_later(-5.0, lambda: None)

        assert task.due == 10.0

    def test_clear_cancels_everything(self):
        timers = TimerQueue(clock=ManualClock(0.0))
        tasks = [timers.call_later(i, lambda: None) for i in range(3)]

        timers.clear()

        assert timers.pending == 0
        assert all(task.cancelled for task in tasks)
