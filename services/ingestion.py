"""Reading ingestion orchestration."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import timedelta
from functools import lru_cache
from typing import Optional

from datastore.reading_store import ReadingStore, build_default_store
from models.records import Reading
from services.notifier import Notifier, build_default_notifier
from services.threshold_guard import NotifyDecision, ThresholdGuard
from settings import get_settings

logger = logging.getLogger(__name__)


class IngestionService:
    """Coordinates reading persistence and background threshold alerting."""

    def __init__(
        self,
        store: ReadingStore,
        guard: ThresholdGuard,
        notifier: Notifier,
        threshold: Optional[float] = None,
        cooldown: timedelta = timedelta(hours=1),
        workers: int = 2,
    ) -> None:
        self.store = store
        self.guard = guard
        self.notifier = notifier
        self.threshold = threshold
        self.cooldown = cooldown
        self.executor = ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="threshold-guard"
        )

    def ingest(self, level: float) -> Reading:
        """Persist ``level`` and schedule threshold evaluation without waiting on it."""
        reading = self.store.append(level)
        logger.debug(
            "Reading saved", extra={"reading_id": reading.id, "level": reading.level}
        )
        future = self.executor.submit(self._evaluate, reading.level)
        future.add_done_callback(self._log_background_failure)
        return reading

    def latest_level(self) -> float:
        return self.store.latest()

    def shutdown(self) -> None:
        """Release the executor, the store and the notifier during application shutdown."""
        self.executor.shutdown(wait=False, cancel_futures=True)
        self.store.close()
        close = getattr(self.notifier, "close", None)
        if callable(close):
            close()

    def _evaluate(self, level: float) -> NotifyDecision:
        return self.guard.check_and_notify(
            level, self.threshold, self.cooldown, self.notifier
        )

    @staticmethod
    def _log_background_failure(future: Future[NotifyDecision]) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Threshold evaluation failed", exc_info=exc)


@lru_cache
def build_default_service(workers: Optional[int] = None) -> IngestionService:
    """Factory that wires the service from environment settings."""
    settings = get_settings()
    return IngestionService(
        store=build_default_store(),
        guard=ThresholdGuard(),
        notifier=build_default_notifier(),
        threshold=settings.level_threshold,
        cooldown=timedelta(seconds=settings.notify_cooldown_seconds),
        workers=workers or settings.notifier_workers,
    )
