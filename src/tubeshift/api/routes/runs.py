"""Run trigger and pairing rescan endpoints."""

from fastapi import APIRouter, BackgroundTasks, Depends

from tubeshift.api.controller import RunController
from tubeshift.api.dependencies import get_app_settings, get_run_controller
from tubeshift.config import Settings
from tubeshift.matching.matcher import FilePairMatcher
from tubeshift.storage.files import list_files

router = APIRouter(prefix="/api/v1", tags=["runs"])


@router.post("/runs", status_code=202)
async def start_run(
    background_tasks: BackgroundTasks,
    controller: RunController = Depends(get_run_controller),
):
    """Start a full pipeline run in the background."""
    controller.begin()
    background_tasks.add_task(controller.run)
    return {"status": "started", "message": "Pipeline run started"}


@router.get("/runs/current")
async def get_run(controller: RunController = Depends(get_run_controller)):
    return controller.status()


@router.delete("/runs/current")
async def cancel_run(controller: RunController = Depends(get_run_controller)):
    """Ask the running pipeline to stop before its next unit."""
    return {"cancelled": controller.cancel()}


@router.get("/rescan")
async def rescan(settings: Settings = Depends(get_app_settings)):
    """Dry-run pairing report for the loose files in the downloads directory."""
    result = FilePairMatcher(settings=settings).match(list_files(settings.downloads_dir))
    return {
        "pairs": [u.model_dump() for u in result.pairs],
        "video_only": [u.model_dump() for u in result.video_only],
        "audio_only": [u.model_dump() for u in result.audio_only],
        "unmatched": result.unmatched,
        "ignored": result.ignored,
    }
