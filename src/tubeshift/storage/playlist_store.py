"""Playlist state persistence (JSON-based)."""

import logging
from pathlib import Path

from pydantic import ValidationError

from tubeshift.config import Settings, get_settings
from tubeshift.models.pipeline import PlaylistSource
from tubeshift.models.progress import PlaylistDocument, PlaylistState, utcnow
from tubeshift.storage.files import write_text_atomic

logger = logging.getLogger(__name__)


class PlaylistStateStore:
    """Stores and retrieves per-playlist state as a single JSON document."""

    def __init__(self, path: Path | None = None, settings: Settings | None = None):
        self.path = path or (settings or get_settings()).playlist_state_file
        self.state = PlaylistDocument()

    def load(self) -> PlaylistDocument:
        if not self.path.exists():
            self.state = PlaylistDocument()
            return self.state
        try:
            self.state = PlaylistDocument.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (ValidationError, ValueError, OSError) as e:
            logger.warning(
                "Playlist state file %s is unreadable (%s); starting with a fresh state",
                self.path,
                e,
            )
            self.state = PlaylistDocument()
        return self.state

    def save(self) -> Path:
        self.state.updated_at = utcnow()
        return write_text_atomic(self.path, self.state.model_dump_json(indent=2))

    def get(self, playlist_id: str) -> PlaylistState | None:
        return self.state.playlists.get(playlist_id)

    def get_or_create(self, source: PlaylistSource) -> PlaylistState:
        """Existing state for ``source``, or a new not-started entry."""
        state = self.state.playlists.get(source.playlist_id)
        if state is None:
            state = PlaylistState(
                playlist_id=source.playlist_id,
                name=source.display_name,
                source=source.playlist_url or "",
            )
            self.state.playlists[source.playlist_id] = state
        return state

    def reset(self, playlist_id: str) -> PlaylistState | None:
        """Forget a playlist's progress. Returns the removed state, if any."""
        removed = self.state.playlists.pop(playlist_id, None)
        if removed is not None:
            logger.info("Reset playlist state for %s", playlist_id)
        return removed

    def list_playlists(self) -> list[PlaylistState]:
        return [self.state.playlists[k] for k in sorted(self.state.playlists)]
