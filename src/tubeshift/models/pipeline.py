"""Stage results, session statistics and run summaries."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from tubeshift.models.progress import PlaylistStatus, Stage


class UnitOutcome(BaseModel):
    """What happened to one unit in one stage invocation."""

    stem: str
    detail: str = ""
    attempts: int = 0
    degraded: bool = False
    data: dict[str, Any] = Field(default_factory=dict)


class StageResult(BaseModel):
    """Outcome of running one stage over a batch of units."""

    stage: Stage
    successful: list[UnitOutcome] = Field(default_factory=list)
    skipped: list[UnitOutcome] = Field(default_factory=list)
    failed: list[UnitOutcome] = Field(default_factory=list)
    order: list[str] = Field(default_factory=list, description="Stems in processing order")

    @property
    def total(self) -> int:
        return len(self.successful) + len(self.skipped) + len(self.failed)

    def stems(self, *, include_skipped: bool = True) -> list[str]:
        """Stems whose output is available to the next stage, in processing order."""
        outcomes = self.successful + self.skipped if include_skipped else self.successful
        available = {o.stem for o in outcomes}
        ordered = [stem for stem in self.order if stem in available]
        ordered.extend(o.stem for o in outcomes if o.stem not in self.order)
        return ordered

    def outcome_for(self, stem: str) -> UnitOutcome | None:
        for outcome in (*self.successful, *self.skipped, *self.failed):
            if outcome.stem == stem:
                return outcome
        return None


class StageCounters(BaseModel):
    successful: int = 0
    skipped: int = 0
    failed: int = 0
    degraded: int = 0


class SessionStats(BaseModel):
    """Counters for one process run, owned by the orchestrator."""

    stages: dict[Stage, StageCounters] = Field(
        default_factory=lambda: {stage: StageCounters() for stage in Stage}
    )
    bytes_uploaded: int = 0
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def counters(self, stage: Stage) -> StageCounters:
        return self.stages.setdefault(stage, StageCounters())

    def absorb(self, result: StageResult) -> None:
        c = self.counters(result.stage)
        c.successful += len(result.successful)
        c.skipped += len(result.skipped)
        c.failed += len(result.failed)
        c.degraded += sum(1 for o in result.successful if o.degraded)


class PlaylistSource(BaseModel):
    """A playlist job as configured by the operator."""

    playlist_id: str = Field(..., min_length=1)
    name: str = ""
    urls: list[str] = Field(default_factory=list)
    playlist_url: str | None = None
    start_index: int = Field(default=0, ge=0)
    max_items: int | None = Field(default=None, gt=0)
    enabled: bool = True

    @property
    def display_name(self) -> str:
        return self.name or self.playlist_id


class PlaylistSummary(BaseModel):
    """Per-playlist outcome of one run."""

    playlist_id: str
    status: PlaylistStatus
    total_items: int = 0
    cursor: int = 0
    stage_results: dict[Stage, StageResult] = Field(default_factory=dict)
    skipped_reason: str | None = None
    error: str | None = None


class PipelineSummary(BaseModel):
    """Overall outcome of ``PipelineOrchestrator.process``."""

    playlists: list[PlaylistSummary] = Field(default_factory=list)
    stats: SessionStats = Field(default_factory=SessionStats)
    cancelled: bool = False

    @property
    def completed_playlists(self) -> list[str]:
        return [p.playlist_id for p in self.playlists if p.status == PlaylistStatus.COMPLETED]
