from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import List

from services.notifier import NotifyUnreachableError
from services.threshold_guard import NotifyDecision, ThresholdGuard, format_alert

HOUR = timedelta(hours=1)


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


class RecordingNotifier:
    def __init__(self) -> None:
        self.messages: List[str] = []
        self._lock = threading.Lock()

    def send(self, message: str) -> None:
        with self._lock:
            self.messages.append(message)


class FailingNotifier:
    def __init__(self) -> None:
        self.calls = 0

    def send(self, message: str) -> None:
        self.calls += 1
        raise NotifyUnreachableError("gateway timed out")


def test_unset_threshold_never_fires() -> None:
    guard = ThresholdGuard(clock=FakeClock())

    for level in (0.0, 1e9, -1e9):
        decision = guard.evaluate(level, None, HOUR)
        assert decision == NotifyDecision.skip("threshold_unset")

    assert guard.last_notified_at is None


def test_level_below_threshold_is_skipped() -> None:
    guard = ThresholdGuard(clock=FakeClock())

    decision = guard.evaluate(9.99, 10.0, HOUR)

    assert not decision.notify
    assert decision.reason == "below_threshold"
    assert guard.last_notified_at is None


def test_level_equal_to_threshold_fires() -> None:
    guard = ThresholdGuard(clock=FakeClock())

    decision = guard.evaluate(10.0, 10.0, HOUR)

    assert decision.notify
    assert decision.message == "Alert: Level 10.00 has reached the threshold of 10.00"


def test_cooldown_suppresses_then_rearms() -> None:
    clock = FakeClock()
    guard = ThresholdGuard(clock=clock)

    first = guard.evaluate(12.0, 10.0, HOUR)
    assert first.notify
    assert guard.last_notified_at == clock.now
    assert guard.is_cooling(HOUR)

    clock.advance(timedelta(minutes=30))
    second = guard.evaluate(15.0, 10.0, HOUR)
    assert not second.notify
    assert second.reason == "cooling_down"

    clock.advance(timedelta(minutes=30))
    assert not guard.is_cooling(HOUR)
    third = guard.evaluate(15.0, 10.0, HOUR)
    assert third.notify
    assert third.message == format_alert(15.0, 10.0)


def test_below_threshold_reading_does_not_reset_cooldown() -> None:
    clock = FakeClock()
    guard = ThresholdGuard(clock=clock)
    guard.evaluate(12.0, 10.0, HOUR)
    stamped = guard.last_notified_at

    clock.advance(timedelta(minutes=10))
    guard.evaluate(1.0, 10.0, HOUR)

    assert guard.last_notified_at == stamped


def test_alert_message_uses_two_decimals() -> None:
    assert format_alert(12.5, 10) == "Alert: Level 12.50 has reached the threshold of 10.00"
    assert format_alert(10.006, 9.994) == "Alert: Level 10.01 has reached the threshold of 9.99"


def test_concurrent_evaluations_fire_once() -> None:
    guard = ThresholdGuard()
    barrier = threading.Barrier(16)
    decisions: List[NotifyDecision] = []
    decisions_lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        decision = guard.evaluate(12.0, 10.0, HOUR)
        with decisions_lock:
            decisions.append(decision)

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert len(decisions) == 16
    assert sum(1 for decision in decisions if decision.notify) == 1


def test_check_and_notify_delivers_message() -> None:
    guard = ThresholdGuard(clock=FakeClock())
    notifier = RecordingNotifier()

    guard.check_and_notify(12.0, 10.0, HOUR, notifier)
    guard.check_and_notify(13.0, 10.0, HOUR, notifier)

    assert notifier.messages == ["Alert: Level 12.00 has reached the threshold of 10.00"]


def test_failed_delivery_still_consumes_cooldown() -> None:
    clock = FakeClock()
    guard = ThresholdGuard(clock=clock)
    notifier = FailingNotifier()

    decision = guard.check_and_notify(12.0, 10.0, HOUR, notifier)
    assert decision.notify
    assert notifier.calls == 1
    assert guard.last_notified_at == clock.now

    clock.advance(timedelta(minutes=5))
    guard.check_and_notify(12.0, 10.0, HOUR, notifier)
    assert notifier.calls == 1


def test_lock_is_released_during_delivery() -> None:
    guard = ThresholdGuard()
    entered = threading.Event()
    release = threading.Event()

    class BlockingNotifier:
        def send(self, message: str) -> None:
            entered.set()
            release.wait(timeout=5)

    sender = threading.Thread(
        target=guard.check_and_notify, args=(12.0, 10.0, HOUR, BlockingNotifier())
    )
    sender.start()
    try:
        assert entered.wait(timeout=5)
        decision = guard.evaluate(20.0, 10.0, HOUR)
        assert decision.reason == "cooling_down"
    finally:
        release.set()
        sender.join(timeout=5)


def test_nan_threshold_never_fires() -> None:
    guard = ThresholdGuard(clock=FakeClock())

    for level in (-1e9, 1.0, 1e9):
        decision = guard.evaluate(level, float("nan"), HOUR)
        assert not decision.notify
        assert decision.reason == "below_threshold"

    assert guard.last_notified_at is None


def test_nan_level_never_fires() -> None:
    guard = ThresholdGuard(clock=FakeClock())
    notifier = RecordingNotifier()

    decision = guard.check_and_notify(float("nan"), 10.0, HOUR, notifier)

    assert not decision.notify
    assert notifier.messages == []
    assert guard.last_notified_at is None
