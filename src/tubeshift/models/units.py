"""Logical media units and the work items carried through each stage."""

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field, model_validator


class UnitKind(StrEnum):
    """Shape of a logical unit after pairing."""

    PAIR = "pair"
    VIDEO_ONLY = "video_only"
    AUDIO_ONLY = "audio_only"


class LogicalUnit(BaseModel):
    """A video+audio pair, or a video-only / audio-only remainder."""

    stem: str = Field(..., min_length=1)
    video: str | None = None
    audio: str | None = None
    match_level: int = Field(default=0, ge=0, description="Lower is a stronger match")
    output_name: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_has_file(self) -> "LogicalUnit":
        if self.video is None and self.audio is None:
            raise ValueError(f"Unit '{self.stem}' has neither a video nor an audio file")
        return self

    @property
    def kind(self) -> UnitKind:
        if self.video and self.audio:
            return UnitKind.PAIR
        if self.video:
            return UnitKind.VIDEO_ONLY
        return UnitKind.AUDIO_ONLY

    @property
    def files(self) -> list[str]:
        return [f for f in (self.video, self.audio) if f]


class MatchResult(BaseModel):
    """Outcome of pairing a batch of filenames."""

    pairs: list[LogicalUnit] = Field(default_factory=list)
    video_only: list[LogicalUnit] = Field(default_factory=list)
    audio_only: list[LogicalUnit] = Field(default_factory=list)
    unmatched: list[str] = Field(
        default_factory=list, description="Candidates that did not end up in a pair"
    )
    ignored: list[str] = Field(
        default_factory=list, description="Files with an unrecognized extension"
    )

    @property
    def units(self) -> list[LogicalUnit]:
        return [*self.pairs, *self.video_only, *self.audio_only]

    def by_stem(self) -> dict[str, LogicalUnit]:
        return {unit.stem: unit for unit in self.units}


class DownloadItem(BaseModel):
    """One source URL of a playlist, addressed by its generated stem."""

    stem: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    index: int = Field(..., ge=1, description="1-based position in the playlist")


class UploadItem(BaseModel):
    """A finished media file waiting to be stored."""

    stem: str = Field(..., min_length=1)
    path: str

    @property
    def file(self) -> Path:
        return Path(self.path)
