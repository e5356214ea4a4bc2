"""Load playlist jobs from a directory of ``.txt`` and ``.json`` files."""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from tubeshift.models.errors import ConfigurationError
from tubeshift.models.pipeline import PlaylistSource

logger = logging.getLogger(__name__)


def parse_playlist_file(path: Path) -> PlaylistSource:
    """Build a ``PlaylistSource`` from one file; the playlist id is the file stem.

    ``.txt`` files hold one URL per line (blank lines and ``#`` comments are
    ignored). ``.json`` files hold either a list of URLs or an object with
    ``url`` (a playlist URL) and optional ``name``, ``urls``,
    ``start_index``, ``max_items`` and ``enabled``.
    """
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".txt":
        urls = [line.strip() for line in text.splitlines()]
        return PlaylistSource(
            playlist_id=path.stem,
            urls=[u for u in urls if u and not u.startswith("#")],
        )

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid playlist file {path.name}: {e}") from e

    try:
        if isinstance(data, list):
            return PlaylistSource(playlist_id=path.stem, urls=[str(u) for u in data if u])
        if isinstance(data, dict):
            return PlaylistSource(
                playlist_id=path.stem,
                name=data.get("name", ""),
                urls=data.get("urls", []),
                playlist_url=data.get("url") or data.get("playlist_url"),
                start_index=data.get("start_index", data.get("startIndex", 0)),
                max_items=data.get("max_items", data.get("maxVideos")),
                enabled=data.get("enabled", True),
            )
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid playlist file {path.name}", details={"errors": e.errors()}
        ) from e
    raise ConfigurationError(f"Unsupported playlist file layout in {path.name}")


def load_playlist_sources(playlists_dir: Path) -> list[PlaylistSource]:
    """All playlist jobs in ``playlists_dir``, ordered by file name."""
    if not playlists_dir.is_dir():
        raise ConfigurationError(
            f"Playlists directory not found: {playlists_dir}",
            details={"setting": "TUBESHIFT_PLAYLISTS_DIR"},
        )
    sources = []
    for path in sorted(playlists_dir.iterdir()):
        if not path.is_file() or path.suffix.lower() not in (".txt", ".json"):
            continue
        source = parse_playlist_file(path)
        if not source.urls and not source.playlist_url:
            logger.warning(f"Playlist file {path.name} lists no videos, ignoring it")
            continue
        sources.append(source)
    logger.info(f"Loaded {len(sources)} playlists from {playlists_dir}")
    return sources
