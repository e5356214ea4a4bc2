"""Progress and upload history endpoints."""

from fastapi import APIRouter, Depends

from tubeshift.api.dependencies import get_playlist_store, get_progress_store, get_run_controller
from tubeshift.api.controller import RunController
from tubeshift.models.errors import NotFoundError
from tubeshift.models.progress import Stage
from tubeshift.pipeline.reports import progress_report, upload_history
from tubeshift.storage.playlist_store import PlaylistStateStore
from tubeshift.storage.progress_store import ProgressStore

router = APIRouter(prefix="/api/v1", tags=["progress"])


@router.get("/progress")
async def get_progress(
    progress: ProgressStore = Depends(get_progress_store),
    playlists: PlaylistStateStore = Depends(get_playlist_store),
):
    """Per-stage counts and per-playlist resume state."""
    return progress_report(progress, playlists)


@router.get("/progress/{stem}")
async def get_stem_progress(stem: str, progress: ProgressStore = Depends(get_progress_store)):
    """All stage records of one stem."""
    entry = progress.state.stems.get(stem)
    if entry is None:
        raise NotFoundError(f"No progress recorded for '{stem}'")
    return {
        "stem": stem,
        "stages": {str(stage): record.model_dump(mode="json") for stage, record in entry.stages.items()},
    }


@router.delete("/progress/{stem}")
async def reset_stem(
    stem: str,
    stage: Stage | None = None,
    progress: ProgressStore = Depends(get_progress_store),
    controller: RunController = Depends(get_run_controller),
):
    """Forget a stem's records so the next run processes it again."""
    controller.ensure_idle()
    if not progress.purge(stem, stage):
        raise NotFoundError(f"No progress recorded for '{stem}'")
    progress.save()
    return {"stem": stem, "stage": str(stage) if stage else None, "status": "reset"}


@router.get("/history")
async def get_upload_history(progress: ProgressStore = Depends(get_progress_store)):
    """Completed uploads grouped by day."""
    return upload_history(progress)
