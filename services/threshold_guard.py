"""Threshold alerting with a cooldown between notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Callable, Optional

from services.notifier import Notifier, NotifyError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotifyDecision:
    """Outcome of a single threshold evaluation."""

    notify: bool
    reason: str
    message: Optional[str] = None

    @classmethod
    def skip(cls, reason: str) -> "NotifyDecision":
        return cls(notify=False, reason=reason)

    @classmethod
    def fire(cls, message: str) -> "NotifyDecision":
        return cls(notify=True, reason="threshold_reached", message=message)


def format_alert(level: float, threshold: float) -> str:
    return f"Alert: Level {level:.2f} has reached the threshold of {threshold:.2f}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ThresholdGuard:
    """Owns the last-notification timestamp and decides when an alert may fire.

    The guard is Armed until a notification is decided, then Cooling until
    ``cooldown`` has elapsed. There is no timer: the state is re-evaluated on
    each reading. Deciding and recording ``last_notified_at`` happen in one
    critical section so concurrent readings cannot both fire; delivery runs
    outside the lock. The state lives in memory only and resets on restart.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._lock = Lock()
        self._last_notified_at: Optional[datetime] = None

    @property
    def last_notified_at(self) -> Optional[datetime]:
        with self._lock:
            return self._last_notified_at

    def is_cooling(self, cooldown: timedelta) -> bool:
        with self._lock:
            return self._cooling(self._clock(), cooldown)

    def evaluate(
        self,
        level: float,
        threshold: Optional[float],
        cooldown: timedelta,
    ) -> NotifyDecision:
        if threshold is None:
            return NotifyDecision.skip("threshold_unset")
        # NaN on either side compares false and must not fire.
        if not level >= threshold:
            return NotifyDecision.skip("below_threshold")

        with self._lock:
            now = self._clock()
            if self._cooling(now, cooldown):
                return NotifyDecision.skip("cooling_down")
            self._last_notified_at = now

        return NotifyDecision.fire(format_alert(level, threshold))

    def check_and_notify(
        self,
        level: float,
        threshold: Optional[float],
        cooldown: timedelta,
        notifier: Notifier,
    ) -> NotifyDecision:
        """Evaluate ``level`` and deliver the alert when one is due.

        Delivery errors are logged and swallowed. A failed delivery keeps the
        cooldown window it consumed.
        """
        decision = self.evaluate(level, threshold, cooldown)
        if not decision.notify:
            if decision.reason == "cooling_down":
                logger.info(
                    "Notification already sent recently, skipping",
                    extra={"level": f"{level:.2f}", "threshold": f"{threshold:.2f}"},
                )
            return decision

        if decision.message is None:
            return decision
        try:
            notifier.send(decision.message)
        except NotifyError as exc:
            logger.error(
                "Error sending SMS notification: %s",
                exc,
                extra={"error_kind": exc.kind, "level": f"{level:.2f}"},
            )
            return decision

        logger.info(
            "SMS notification sent",
            extra={"level": f"{level:.2f}", "threshold": f"{threshold:.2f}"},
        )
        return decision

    def _cooling(self, now: datetime, cooldown: timedelta) -> bool:
        if self._last_notified_at is None:
            return False
        return now - self._last_notified_at < cooldown
