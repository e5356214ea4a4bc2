"""Durable per-stem progress records for the download, merge and upload stages."""

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from tubeshift.config import Settings, get_settings
from tubeshift.matching.stems import compute_stem
from tubeshift.models.progress import (
    Fingerprint,
    ProgressDocument,
    ProgressRecord,
    RecordStatus,
    Stage,
    StemProgress,
    utcnow,
)
from tubeshift.storage.files import write_text_atomic

logger = logging.getLogger(__name__)


class ProgressStore:
    """JSON-backed record of work completed per (stem, stage).

    One pipeline process owns the file for the duration of a run. Every
    state-changing outcome is followed by ``save()``, which replaces the
    file atomically.
    """

    def __init__(self, path: Path | None = None, settings: Settings | None = None):
        self.path = path or (settings or get_settings()).progress_file
        self.state = ProgressDocument()
        # (stem, stage) pairs whose completed record no longer matches the file.
        self._stale: set[tuple[str, Stage]] = set()

    def load(self) -> ProgressDocument:
        """Read the progress file; a missing or corrupt file yields a fresh state."""
        self._stale.clear()
        if not self.path.exists():
            self.state = ProgressDocument()
            return self.state
        try:
            self.state = ProgressDocument.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (ValidationError, ValueError, OSError) as e:
            logger.warning(
                "Progress file %s is unreadable (%s); starting with a fresh state", self.path, e
            )
            self.state = ProgressDocument()
            return self.state
        logger.info("Loaded progress for %d stems from %s", len(self.state.stems), self.path)
        return self.state

    def save(self) -> Path:
        """Persist the current state."""
        self.state.updated_at = utcnow()
        return write_text_atomic(self.path, self.state.model_dump_json(indent=2))

    def get(self, stem: str, stage: Stage) -> ProgressRecord | None:
        entry = self.state.stems.get(stem)
        if entry is None:
            return None
        return entry.stages.get(stage)

    def status(self, stem: str, stage: Stage) -> RecordStatus | None:
        record = self.get(stem, stage)
        return record.status if record else None

    def has_failure(self, stem: str) -> bool:
        entry = self.state.stems.get(stem)
        if entry is None:
            return False
        return any(r.status == RecordStatus.FAILED for r in entry.stages.values())

    def record_outcome(
        self,
        stem: str,
        stage: Stage,
        status: RecordStatus,
        metadata: dict[str, Any] | None = None,
        *,
        error: str | None = None,
        attempts: int = 0,
        fingerprint: Fingerprint | None = None,
        bucket: str | None = None,
        storage_key: str | None = None,
    ) -> ProgressRecord:
        """Create or update the record for ``stem`` in ``stage``.

        A completed record is never replaced by a weaker status unless it was
        found stale by ``is_completed``.
        """
        existing = self.get(stem, stage)
        if (
            existing is not None
            and existing.status == RecordStatus.COMPLETED
            and status != RecordStatus.COMPLETED
            and (stem, stage) not in self._stale
        ):
            logger.warning(
                "Refusing to downgrade completed %s record for '%s' to %s", stage, stem, status
            )
            return existing

        record = ProgressRecord(
            stem=stem,
            stage=stage,
            status=status,
            attempts=attempts,
            error=error,
            fingerprint=fingerprint,
            bucket=bucket,
            storage_key=storage_key,
            metadata=dict(metadata or {}),
        )
        self.state.stems.setdefault(stem, StemProgress()).stages[stage] = record
        if status == RecordStatus.COMPLETED:
            self._stale.discard((stem, stage))
        return record

    def annotate(self, stem: str, stage: Stage, **metadata: Any) -> ProgressRecord | None:
        """Merge extra metadata into an existing record without touching its status."""
        record = self.get(stem, stage)
        if record is None:
            return None
        record.metadata.update(metadata)
        record.updated_at = utcnow()
        return record

    def is_completed(
        self, stem: str, stage: Stage, fingerprint: Fingerprint | None = None
    ) -> bool:
        """True when ``stem`` completed ``stage`` and, if given, the fingerprint still matches."""
        record = self.get(stem, stage)
        if record is None or record.status != RecordStatus.COMPLETED:
            return False
        if fingerprint is not None and record.fingerprint is not None:
            if not record.fingerprint.matches(fingerprint):
                logger.warning(
                    "Content of '%s' changed since its %s record "
                    "(size %d -> %d); it will be processed again",
                    stem,
                    stage,
                    record.fingerprint.size,
                    fingerprint.size,
                )
                self._stale.add((stem, stage))
                return False
        return True

    def purge(self, stem: str, stage: Stage | None = None) -> bool:
        """Remove records for ``stem`` (one stage or all). Returns whether anything changed."""
        entry = self.state.stems.get(stem)
        if entry is None:
            return False
        if stage is None:
            del self.state.stems[stem]
            return True
        removed = entry.stages.pop(stage, None) is not None
        if not entry.stages:
            del self.state.stems[stem]
        return removed

    def records(self, stage: Stage | None = None) -> list[ProgressRecord]:
        out = []
        for stem in sorted(self.state.stems):
            for record_stage, record in self.state.stems[stem].stages.items():
                if stage is None or record_stage == stage:
                    out.append(record)
        return out

    def counts(self) -> dict[Stage, dict[RecordStatus, int]]:
        """Number of records per stage and status."""
        totals: dict[Stage, Counter] = {stage: Counter() for stage in Stage}
        for record in self.records():
            totals[record.stage][record.status] += 1
        return {stage: dict(counter) for stage, counter in totals.items()}

    def import_upload_log(self, log_path: Path, bucket: str | None = None) -> int:
        """Seed upload records from a legacy ``{uploadedFiles: {...}}`` log.

        Existing completed upload records are left alone. Returns the number
        of records imported.
        """
        try:
            data = json.loads(log_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Cannot read upload log %s: %s", log_path, e)
            return 0
        if not isinstance(data, dict):
            logger.warning("Upload log %s is not a JSON object", log_path)
            return 0
        entries = data.get("uploadedFiles") or data.get("files") or {}
        if not isinstance(entries, dict):
            return 0

        imported = 0
        for filename, details in entries.items():
            if not isinstance(details, dict) or details.get("status", "completed") != "completed":
                continue
            stem = compute_stem(filename)
            if self.is_completed(stem, Stage.UPLOAD):
                continue
            size = details.get("fileSizeBytes")
            self.record_outcome(
                stem,
                Stage.UPLOAD,
                RecordStatus.COMPLETED,
                {
                    "filename": filename,
                    "uploaded_at": details.get("uploadDate"),
                    "imported_from": str(log_path),
                },
                fingerprint=(
                    Fingerprint(size=int(size), md5=details.get("fileHash"))
                    if size is not None
                    else None
                ),
                bucket=details.get("bucket") or bucket,
                storage_key=details.get("s3Key"),
            )
            imported += 1
        if imported:
            logger.info("Imported %d upload records from %s", imported, log_path)
        return imported
