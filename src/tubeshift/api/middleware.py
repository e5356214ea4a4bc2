"""Error handling middleware."""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from tubeshift.models.errors import (
    ConfigurationError,
    ErrorResponse,
    NotFoundError,
    PipelineBusyError,
    ResourceError,
    TubeshiftError,
)

logger = logging.getLogger(__name__)


async def tubeshift_error_handler(request: Request, exc: TubeshiftError) -> JSONResponse:
    """Handle TubeshiftError exceptions."""
    logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    response = ErrorResponse.from_exception(
        exc, guidance=_get_guidance(exc), retry=_is_retryable(exc)
    )
    return JSONResponse(status_code=_get_status_code(exc), content=response.model_dump())


def _get_status_code(exc: TubeshiftError) -> int:
    """Map error type to HTTP status code."""
    if isinstance(exc, NotFoundError):
        return 404
    elif isinstance(exc, PipelineBusyError):
        return 409
    elif isinstance(exc, ConfigurationError):
        return 400
    elif isinstance(exc, ResourceError):
        return 503
    return 500


def _get_guidance(exc: TubeshiftError) -> str:
    if isinstance(exc, ConfigurationError):
        return "Check the TUBESHIFT_* settings and the playlists directory."
    if isinstance(exc, PipelineBusyError):
        return "Wait for the current run to finish or cancel it."
    if isinstance(exc, ResourceError):
        return "Check storage credentials, bucket name and network access."
    return ""


def _is_retryable(exc: TubeshiftError) -> bool:
    return isinstance(exc, (ResourceError, PipelineBusyError))
