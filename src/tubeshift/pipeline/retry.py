"""Bounded retries with exponential backoff and an interruptible sleep."""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from tubeshift.config import Settings
from tubeshift.models.errors import PipelineCancelled
from tubeshift.models.results import Err, OperationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackoffPolicy:
    """Delay before retry ``n`` is ``base * factor**(n-1)``, capped at ``max``."""

    base: float = 5.0
    factor: float = 2.0
    max: float = 60.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "BackoffPolicy":
        return cls(
            base=settings.backoff_base_seconds,
            factor=settings.backoff_factor,
            max=settings.backoff_max_seconds,
        )

    def delay(self, attempt: int) -> float:
        if attempt < 1:
            return 0.0
        return min(self.max, self.base * self.factor ** (attempt - 1))


class CancellableSleeper:
    """Sleep that returns early and raises once ``cancel()`` has been called."""

    def __init__(self):
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def reset(self) -> None:
        self._event.clear()

    def check(self) -> None:
        if self._event.is_set():
            raise PipelineCancelled()

    def sleep(self, seconds: float) -> None:
        self.check()
        if seconds > 0 and self._event.wait(seconds):
            raise PipelineCancelled()


def with_retry(
    operation: Callable[[], OperationResult],
    max_attempts: int,
    backoff: BackoffPolicy,
    sleeper: CancellableSleeper | None = None,
    label: str = "operation",
) -> tuple[OperationResult, int]:
    """Run ``operation`` until it returns a non-retryable result.

    Unexpected exceptions become ``Err(kind=unknown)`` and are retried like
    any other transient error. Returns the final result and the number of
    attempts made.
    """
    sleeper = sleeper or CancellableSleeper()
    attempts = max(1, max_attempts)
    result: OperationResult = Err(detail="not attempted")

    for attempt in range(1, attempts + 1):
        try:
            result = operation()
        except (KeyboardInterrupt, PipelineCancelled):
            raise
        except Exception as e:
            logger.exception("Unexpected error in %s (attempt %d)", label, attempt)
            result = Err.from_exception(e)

        if not isinstance(result, Err) or not result.retryable:
            return result, attempt
        if attempt < attempts:
            wait = backoff.delay(attempt)
            logger.warning(
                "%s failed (%s: %s), retrying in %.1fs (attempt %d/%d)",
                label,
                result.kind,
                result.detail,
                wait,
                attempt + 1,
                attempts,
            )
            sleeper.sleep(wait)

    return result, attempts
