"""Single-run controller backing the HTTP run endpoints."""

import logging
import threading
from collections.abc import Callable
from datetime import datetime

from tubeshift.config import Settings, get_settings
from tubeshift.models.errors import PipelineBusyError, TubeshiftError
from tubeshift.models.pipeline import PipelineSummary
from tubeshift.models.progress import utcnow
from tubeshift.pipeline.orchestrator import PipelineOrchestrator
from tubeshift.pipeline.sources import load_playlist_sources

logger = logging.getLogger(__name__)


class RunController:
    """Starts at most one pipeline run at a time and remembers the last outcome."""

    def __init__(
        self,
        settings: Settings | None = None,
        orchestrator_factory: Callable[[Settings], PipelineOrchestrator] | None = None,
    ):
        self.settings = settings or get_settings()
        self._factory = orchestrator_factory or (lambda s: PipelineOrchestrator(settings=s))
        self._lock = threading.Lock()
        self.current: PipelineOrchestrator | None = None
        self.started_at: datetime | None = None
        self.finished_at: datetime | None = None
        self.last_summary: PipelineSummary | None = None
        self.last_error: str | None = None

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def begin(self) -> None:
        """Claim the run slot or raise ``PipelineBusyError``."""
        if not self._lock.acquire(blocking=False):
            raise PipelineBusyError()
        self.started_at = utcnow()
        self.finished_at = None
        self.last_error = None

    def run(self) -> None:
        """Execute a claimed run; meant for a background task."""
        try:
            orchestrator = self._factory(self.settings)
            self.current = orchestrator
            sources = load_playlist_sources(self.settings.playlists_dir)
            self.last_summary = orchestrator.process(sources)
        except TubeshiftError as e:
            logger.error(f"Background run failed: {e.message}")
            self.last_error = e.message
        except Exception as e:
            logger.exception("Background run crashed")
            self.last_error = f"{type(e).__name__}: {e}"
        finally:
            self.current = None
            self.finished_at = utcnow()
            self._lock.release()

    def cancel(self) -> bool:
        orchestrator = self.current
        if orchestrator is None:
            return False
        orchestrator.cancel()
        return True

    def ensure_idle(self) -> None:
        if self.running:
            raise PipelineBusyError("State cannot be changed while a run is in progress")

    def status(self) -> dict:
        summary = self.last_summary
        return {
            "running": self.running,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "error": self.last_error,
            "last_summary": summary.model_dump(mode="json") if summary else None,
        }
