"""Runs one pipeline stage over a batch of units, one unit at a time."""

import logging
from collections.abc import Callable, Sequence
from typing import Any, Protocol

from tubeshift.config import Settings, get_settings
from tubeshift.models.pipeline import SessionStats, StageResult, UnitOutcome
from tubeshift.models.progress import Fingerprint, RecordStatus, Stage
from tubeshift.models.results import Err, ErrorKind, Ok, OperationResult, Skip
from tubeshift.pipeline.retry import BackoffPolicy, CancellableSleeper, with_retry
from tubeshift.storage.progress_store import ProgressStore

logger = logging.getLogger(__name__)

# Keys of Ok/Skip data promoted to dedicated record fields.
_RECORD_FIELDS = ("fingerprint", "bucket", "storage_key")


class HasStem(Protocol):
    stem: str


class StageOperation(Protocol):
    """The work a stage performs for one unit."""

    def execute(self, unit: Any) -> OperationResult:
        """Primary operation. Must not raise for expected failures; return ``Err``."""
        ...

    def finalize(self, unit: Any, outcome: UnitOutcome) -> dict | None:
        """Secondary step after success (delete or move sources).

        May raise; the unit stays successful. A returned dict is merged into
        the unit's record metadata.
        """
        ...


class StageRunner:
    """Drives one stage: skip finished units, run the rest, checkpoint each outcome."""

    def __init__(
        self,
        stage: Stage,
        store: ProgressStore,
        settings: Settings | None = None,
        sleeper: CancellableSleeper | None = None,
        stats: SessionStats | None = None,
        max_attempts: int | None = None,
        backoff: BackoffPolicy | None = None,
    ):
        self.stage = stage
        self.store = store
        self.settings = settings or get_settings()
        self.sleeper = sleeper or CancellableSleeper()
        self.stats = stats if stats is not None else SessionStats()
        self.max_attempts = max_attempts or self.settings.max_attempts
        self.backoff = backoff or BackoffPolicy.from_settings(self.settings)
        self.item_delay = self.settings.item_delay_seconds

    def run_stage(
        self,
        units: Sequence[HasStem],
        operation: StageOperation,
        already_done: Callable[[Any], bool] | None = None,
    ) -> StageResult:
        """Process ``units`` in order and return their grouped outcomes.

        A unit for which ``already_done`` is true is reported as skipped and
        the operation is not invoked. The item delay separates consecutive
        operation invocations, whether the previous one failed or not.
        """
        already_done = already_done or (lambda unit: self.store.is_completed(unit.stem, self.stage))
        result = StageResult(stage=self.stage)
        counters = self.stats.counters(self.stage)
        invoked = False

        logger.info("Starting %s stage for %d units", self.stage, len(units))
        for position, unit in enumerate(units, start=1):
            self.sleeper.check()
            stem = unit.stem
            result.order.append(stem)

            if already_done(unit):
                record = self.store.get(stem, self.stage)
                logger.info("[%s] %s already done, skipping", self.stage, stem)
                result.skipped.append(
                    UnitOutcome(
                        stem=stem,
                        detail="already completed",
                        data=dict(record.metadata) if record else {},
                    )
                )
                counters.skipped += 1
                continue

            if invoked:
                self.sleeper.sleep(self.item_delay)
            invoked = True

            logger.info("[%s] %d/%d %s", self.stage, position, len(units), stem)
            outcome, attempts = with_retry(
                lambda: operation.execute(unit),
                self.max_attempts,
                self.backoff,
                self.sleeper,
                label=f"{self.stage} of {stem}",
            )

            if isinstance(outcome, Err):
                result.failed.append(self._record_failure(stem, outcome, attempts))
                counters.failed += 1
            elif isinstance(outcome, Skip):
                data = self._checkpoint(stem, RecordStatus.SKIPPED, outcome.data, attempts)
                logger.info("[%s] %s skipped: %s", self.stage, stem, outcome.reason)
                result.skipped.append(
                    UnitOutcome(stem=stem, detail=outcome.reason, attempts=attempts, data=data)
                )
                counters.skipped += 1
            else:
                unit_outcome = self._record_success(unit, outcome, attempts, operation)
                result.successful.append(unit_outcome)
                counters.successful += 1
                if unit_outcome.degraded:
                    counters.degraded += 1

        logger.info(
            "%s stage finished: %d successful, %d skipped, %d failed",
            self.stage,
            len(result.successful),
            len(result.skipped),
            len(result.failed),
        )
        return result

    def fail_unit(self, stem: str, kind: ErrorKind, detail: str) -> UnitOutcome:
        """Record a unit that cannot enter this stage at all."""
        outcome = self._record_failure(stem, Err(kind=kind, detail=detail), attempts=0)
        self.stats.counters(self.stage).failed += 1
        return outcome

    def _record_success(
        self, unit: HasStem, result: Ok, attempts: int, operation: StageOperation
    ) -> UnitOutcome:
        stem = unit.stem
        data = self._checkpoint(stem, RecordStatus.COMPLETED, result.data, attempts)
        outcome = UnitOutcome(stem=stem, attempts=attempts, data=data)
        if self.stage == Stage.UPLOAD:
            self.stats.bytes_uploaded += int(data.get("size") or 0)
        logger.info("[%s] %s completed", self.stage, stem)

        try:
            extra = operation.finalize(unit, outcome)
        except Exception as e:
            outcome.degraded = True
            outcome.detail = f"post-{self.stage} step failed: {e}"
            logger.warning("[%s] %s succeeded but %s", self.stage, stem, outcome.detail)
            self.store.annotate(stem, self.stage, degraded=True, finalize_error=str(e))
            self.store.save()
            return outcome

        if extra:
            outcome.data.update(extra)
            self.store.annotate(stem, self.stage, **extra)
            self.store.save()
        return outcome

    def _record_failure(self, stem: str, err: Err, attempts: int) -> UnitOutcome:
        logger.error(
            "[%s] %s failed after %d attempt(s): %s %s",
            self.stage,
            stem,
            attempts,
            err.kind,
            err.detail,
        )
        self.store.record_outcome(
            stem,
            self.stage,
            RecordStatus.FAILED,
            {"kind": str(err.kind)},
            error=f"{err.kind}: {err.detail}",
            attempts=attempts,
        )
        self.store.save()
        return UnitOutcome(stem=stem, detail=f"{err.kind}: {err.detail}", attempts=attempts)

    def _checkpoint(
        self, stem: str, status: RecordStatus, data: dict, attempts: int
    ) -> dict[str, Any]:
        metadata = dict(data)
        fields = {name: metadata.pop(name, None) for name in _RECORD_FIELDS}
        fingerprint = fields["fingerprint"]
        if isinstance(fingerprint, dict):
            fingerprint = Fingerprint.model_validate(fingerprint)
        self.store.record_outcome(
            stem,
            self.stage,
            status,
            metadata,
            attempts=attempts,
            fingerprint=fingerprint,
            bucket=fields["bucket"],
            storage_key=fields["storage_key"],
        )
        self.store.save()
        return dict(data)
