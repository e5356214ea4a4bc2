"""Read-only views over the progress and playlist state files."""

from collections import defaultdict
from datetime import datetime
from typing import Any

from tubeshift.models.progress import ProgressRecord, RecordStatus, Stage
from tubeshift.storage.playlist_store import PlaylistStateStore
from tubeshift.storage.progress_store import ProgressStore


def progress_report(progress: ProgressStore, playlists: PlaylistStateStore) -> dict[str, Any]:
    """Per-stage status counts and per-playlist resume information."""
    counts = progress.counts()
    return {
        "stems": len(progress.state.stems),
        "stages": {
            str(stage): {str(status): counts[stage].get(status, 0) for status in RecordStatus}
            for stage in Stage
        },
        "playlists": [
            {
                "playlist_id": p.playlist_id,
                "name": p.name,
                "status": str(p.status),
                "total_items": p.total_items,
                "cursor": p.cursor,
                "next_index": p.cursor + 1 if not p.completed else None,
                "failed_units": sorted(
                    stem
                    for stem, statuses in p.unit_statuses.items()
                    if RecordStatus.FAILED in statuses.values()
                ),
                "started_at": p.started_at.isoformat() if p.started_at else None,
                "completed_at": p.completed_at.isoformat() if p.completed_at else None,
                "last_error": p.last_error,
            }
            for p in playlists.list_playlists()
        ],
        "updated_at": progress.state.updated_at.isoformat() if progress.state.updated_at else None,
    }


def _uploaded_at(record: ProgressRecord) -> datetime:
    """Upload time from the record metadata, else the record's last update."""
    raw = record.metadata.get("uploaded_at")
    if isinstance(raw, str):
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            return record.updated_at
    return record.updated_at


def upload_history(progress: ProgressStore) -> dict[str, list[dict[str, Any]]]:
    """Completed uploads grouped by day, newest day first."""
    by_day: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for record in progress.records(Stage.UPLOAD):
        if record.status != RecordStatus.COMPLETED:
            continue
        uploaded_at = _uploaded_at(record)
        by_day[uploaded_at.date().isoformat()].append(
            {
                "stem": record.stem,
                "filename": record.metadata.get("filename"),
                "storage_key": record.storage_key,
                "bucket": record.bucket,
                "size": record.fingerprint.size if record.fingerprint else None,
                "uploaded_at": uploaded_at.isoformat(),
            }
        )
    return {
        day: sorted(entries, key=lambda e: e["uploaded_at"])
        for day, entries in sorted(by_day.items(), reverse=True)
    }
