"""Error hierarchy and error response models."""

from pydantic import BaseModel, Field


class TubeshiftError(Exception):
    """Base error for all tubeshift errors."""

    def __init__(self, message: str, component: str = "", details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.component = component
        self.details = details or {}


class ConfigurationError(TubeshiftError):
    """Invalid or incomplete configuration. Fatal for the whole run."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, component="configuration", details=details)


class ResourceError(TubeshiftError):
    """An external backend cannot be reached at all. Fatal for the whole run."""

    def __init__(self, message: str, component: str = "resource", details: dict | None = None):
        super().__init__(message, component=component, details=details)


class ProcessingError(TubeshiftError):
    """Errors raised inside a collaborator while handling a single unit."""

    def __init__(self, message: str, component: str = "processing", details: dict | None = None):
        super().__init__(message, component=component, details=details)


class NotFoundError(TubeshiftError):
    """A requested stem or playlist has no recorded state."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, component="state", details=details)


class PipelineBusyError(TubeshiftError):
    """A run is already in progress; state files have a single owner."""

    def __init__(self, message: str = "A pipeline run is already in progress"):
        super().__init__(message, component="pipeline")


class PipelineCancelled(TubeshiftError):
    """Raised between units once an interrupt has been requested."""

    def __init__(self, message: str = "Pipeline run was cancelled"):
        super().__init__(message, component="pipeline")


class ErrorResponse(BaseModel):
    """Standardized error response for API."""

    error_type: str = Field(..., description="Error category")
    component: str = Field(default="", description="Component that raised the error")
    message: str = Field(..., description="Human-readable error message")
    details: dict = Field(default_factory=dict)
    actionable_guidance: str = Field(default="", description="Suggested operator action")
    retry_possible: bool = Field(default=False)

    @classmethod
    def from_exception(
        cls, exc: TubeshiftError, guidance: str = "", retry: bool = False
    ) -> "ErrorResponse":
        return cls(
            error_type=type(exc).__name__,
            component=exc.component,
            message=exc.message,
            details=exc.details,
            actionable_guidance=guidance,
            retry_possible=retry,
        )
