"""Tagged results returned by collaborator and stage operations."""

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field


class ErrorKind(StrEnum):
    """Distinguishable failure reasons reported by collaborators."""

    UNAVAILABLE = "unavailable"
    PRIVATE = "private"
    GEO_BLOCKED = "geo_blocked"
    AGE_RESTRICTED = "age_restricted"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    ENCODER_FAILED = "encoder_failed"
    MISSING_INPUT = "missing_input"
    UNKNOWN = "unknown"


TRANSIENT_KINDS = frozenset(
    {
        ErrorKind.RATE_LIMITED,
        ErrorKind.NETWORK_ERROR,
        ErrorKind.TIMEOUT,
        ErrorKind.UNKNOWN,
    }
)


class Ok(BaseModel):
    """The operation succeeded; ``data`` carries stage-specific metadata."""

    tag: Literal["ok"] = "ok"
    data: dict[str, Any] = Field(default_factory=dict)


class Err(BaseModel):
    """The operation failed for a classified reason."""

    tag: Literal["err"] = "err"
    kind: ErrorKind = ErrorKind.UNKNOWN
    detail: str = ""

    @property
    def retryable(self) -> bool:
        return self.kind in TRANSIENT_KINDS

    @classmethod
    def from_exception(cls, exc: BaseException, kind: ErrorKind = ErrorKind.UNKNOWN) -> "Err":
        return cls(kind=kind, detail=f"{type(exc).__name__}: {exc}")


class Skip(BaseModel):
    """No work was needed; the unit's output already exists."""

    tag: Literal["skip"] = "skip"
    reason: str = ""
    data: dict[str, Any] = Field(default_factory=dict)


OperationResult = Ok | Err | Skip
