"""Dependency injection providers for FastAPI."""

from functools import lru_cache

from fastapi import Depends

from tubeshift.api.controller import RunController
from tubeshift.config import Settings, get_settings
from tubeshift.storage.playlist_store import PlaylistStateStore
from tubeshift.storage.progress_store import ProgressStore


def get_app_settings() -> Settings:
    return get_settings()


@lru_cache
def get_run_controller() -> RunController:
    return RunController()


def get_progress_store(settings: Settings = Depends(get_app_settings)) -> ProgressStore:
    store = ProgressStore(settings=settings)
    store.load()
    return store


def get_playlist_store(settings: Settings = Depends(get_app_settings)) -> PlaylistStateStore:
    store = PlaylistStateStore(settings=settings)
    store.load()
    return store
