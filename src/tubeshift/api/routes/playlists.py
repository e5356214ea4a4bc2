"""Playlist state endpoints."""

from fastapi import APIRouter, Depends

from tubeshift.api.controller import RunController
from tubeshift.api.dependencies import get_playlist_store, get_run_controller
from tubeshift.models.errors import NotFoundError
from tubeshift.storage.playlist_store import PlaylistStateStore

router = APIRouter(prefix="/api/v1", tags=["playlists"])


@router.get("/playlists")
async def list_playlists(playlists: PlaylistStateStore = Depends(get_playlist_store)):
    return [
        {
            "playlist_id": p.playlist_id,
            "name": p.name,
            "status": str(p.status),
            "cursor": p.cursor,
            "total_items": p.total_items,
        }
        for p in playlists.list_playlists()
    ]


@router.get("/playlists/{playlist_id}")
async def get_playlist(
    playlist_id: str, playlists: PlaylistStateStore = Depends(get_playlist_store)
):
    state = playlists.get(playlist_id)
    if state is None:
        raise NotFoundError(f"Playlist {playlist_id} not found")
    return {**state.model_dump(mode="json"), "status": str(state.status)}


@router.delete("/playlists/{playlist_id}")
async def reset_playlist(
    playlist_id: str,
    playlists: PlaylistStateStore = Depends(get_playlist_store),
    controller: RunController = Depends(get_run_controller),
):
    """Drop a playlist's state; per-stem records are kept."""
    controller.ensure_idle()
    if playlists.reset(playlist_id) is None:
        raise NotFoundError(f"Playlist {playlist_id} not found")
    playlists.save()
    return {"playlist_id": playlist_id, "status": "reset"}
