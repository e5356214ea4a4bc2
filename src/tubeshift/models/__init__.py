"""Data models for tubeshift."""

from tubeshift.models.errors import (
    ConfigurationError,
    ErrorResponse,
    NotFoundError,
    PipelineBusyError,
    PipelineCancelled,
    ProcessingError,
    ResourceError,
    TubeshiftError,
)
from tubeshift.models.pipeline import (
    PipelineSummary,
    PlaylistSource,
    PlaylistSummary,
    SessionStats,
    StageCounters,
    StageResult,
    UnitOutcome,
)
from tubeshift.models.progress import (
    Fingerprint,
    PlaylistDocument,
    PlaylistState,
    PlaylistStatus,
    ProgressDocument,
    ProgressRecord,
    RecordStatus,
    Stage,
    StemProgress,
)
from tubeshift.models.results import Err, ErrorKind, OperationResult, Ok, Skip
from tubeshift.models.units import (
    DownloadItem,
    LogicalUnit,
    MatchResult,
    UnitKind,
    UploadItem,
)

__all__ = [
    "ConfigurationError",
    "DownloadItem",
    "Err",
    "ErrorKind",
    "ErrorResponse",
    "Fingerprint",
    "LogicalUnit",
    "MatchResult",
    "NotFoundError",
    "Ok",
    "OperationResult",
    "PipelineBusyError",
    "PipelineCancelled",
    "PipelineSummary",
    "PlaylistDocument",
    "PlaylistSource",
    "PlaylistState",
    "PlaylistStatus",
    "PlaylistSummary",
    "ProcessingError",
    "ProgressDocument",
    "ProgressRecord",
    "RecordStatus",
    "ResourceError",
    "SessionStats",
    "Skip",
    "Stage",
    "StageCounters",
    "StageResult",
    "StemProgress",
    "TubeshiftError",
    "UnitKind",
    "UnitOutcome",
    "UploadItem",
]
