"""Persisted progress documents: per-stem stage records and playlist state."""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class Stage(StrEnum):
    """Stages of the pipeline, in execution order."""

    DOWNLOAD = "download"
    MERGE = "merge"
    UPLOAD = "upload"


STAGE_ORDER = (Stage.DOWNLOAD, Stage.MERGE, Stage.UPLOAD)


class RecordStatus(StrEnum):
    """Status of one stem in one stage."""

    PENDING = "pending"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({RecordStatus.COMPLETED, RecordStatus.SKIPPED, RecordStatus.FAILED})


def utcnow() -> datetime:
    return datetime.now(UTC)


class Fingerprint(BaseModel):
    """Content fingerprint of a local file."""

    size: int = Field(..., ge=0)
    md5: str | None = None

    def matches(self, other: "Fingerprint") -> bool:
        """Sizes must agree; hashes are compared when both sides carry one."""
        if self.size != other.size:
            return False
        if self.md5 and other.md5:
            return self.md5 == other.md5
        return True


class ProgressRecord(BaseModel):
    """Outcome of one stage for one stem."""

    stem: str = Field(..., min_length=1)
    stage: Stage
    status: RecordStatus = RecordStatus.PENDING
    updated_at: datetime = Field(default_factory=utcnow)
    attempts: int = Field(default=0, ge=0)
    error: str | None = None
    fingerprint: Fingerprint | None = None
    bucket: str | None = None
    storage_key: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class StemProgress(BaseModel):
    """All stage records for one stem."""

    stages: dict[Stage, ProgressRecord] = Field(default_factory=dict)


class ProgressDocument(BaseModel):
    """Root of the pipeline-wide progress file."""

    model_config = {"extra": "ignore"}

    version: int = 1
    updated_at: datetime | None = None
    stems: dict[str, StemProgress] = Field(default_factory=dict)


class PlaylistStatus(StrEnum):
    """Lifecycle of a playlist job."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class PlaylistState(BaseModel):
    """Tracks one playlist job across runs."""

    model_config = {"extra": "ignore"}

    playlist_id: str = Field(..., min_length=1)
    name: str = ""
    source: str = ""
    completed: bool = False
    cursor: int = Field(default=0, ge=0, description="Count of leading units that are terminal")
    total_items: int = Field(default=0, ge=0)
    unit_ids: list[str] = Field(default_factory=list)
    unit_statuses: dict[str, dict[Stage, RecordStatus]] = Field(default_factory=dict)
    started_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None
    last_error: str | None = None

    @property
    def status(self) -> PlaylistStatus:
        if self.completed:
            return PlaylistStatus.COMPLETED
        if self.started_at is None:
            return PlaylistStatus.NOT_STARTED
        return PlaylistStatus.IN_PROGRESS

    def is_unit_terminal(self, stem: str) -> bool:
        """A unit is terminal once it failed somewhere or finished the last stage."""
        statuses = self.unit_statuses.get(stem, {})
        if RecordStatus.FAILED in statuses.values():
            return True
        return statuses.get(Stage.UPLOAD) in (RecordStatus.COMPLETED, RecordStatus.SKIPPED)

    def terminal_prefix(self) -> int:
        count = 0
        for stem in self.unit_ids:
            if not self.is_unit_terminal(stem):
                break
            count += 1
        return count

    def all_terminal(self) -> bool:
        return bool(self.unit_ids) and all(self.is_unit_terminal(s) for s in self.unit_ids)


class PlaylistDocument(BaseModel):
    """Root of the playlist-wide state file."""

    model_config = {"extra": "ignore"}

    version: int = 1
    updated_at: datetime | None = None
    playlists: dict[str, PlaylistState] = Field(default_factory=dict)
