"""yt-dlp backed media extractor."""

import logging
from pathlib import Path

from yt_dlp import YoutubeDL
from yt_dlp.utils import DownloadError, ExtractorError

from tubeshift.config import Settings, get_settings
from tubeshift.models.results import Err, ErrorKind, Ok, OperationResult

logger = logging.getLogger(__name__)

# Checked in order; the first matching phrase decides the kind.
_ERROR_PATTERNS: list[tuple[ErrorKind, tuple[str, ...]]] = [
    (ErrorKind.PRIVATE, ("private video", "video is private")),
    (ErrorKind.AGE_RESTRICTED, ("age-restricted", "confirm your age", "inappropriate for some users")),
    (
        ErrorKind.GEO_BLOCKED,
        ("available in your country", "blocked it in your country", "geo restrict", "geo-restrict"),
    ),
    (
        ErrorKind.RATE_LIMITED,
        ("http error 429", "too many requests", "sign in to confirm you're not a bot", "rate-limit"),
    ),
    (
        ErrorKind.UNAVAILABLE,
        (
            "video unavailable",
            "has been removed",
            "account associated with this video has been terminated",
            "this video is not available",
            "does not exist",
        ),
    ),
    (ErrorKind.FORBIDDEN, ("http error 403",)),
    (ErrorKind.NOT_FOUND, ("http error 404",)),
    (ErrorKind.TIMEOUT, ("timed out", "timeout")),
    (
        ErrorKind.NETWORK_ERROR,
        ("connection reset", "temporary failure", "network is unreachable", "getaddrinfo failed"),
    ),
]


def classify_error(message: str) -> ErrorKind:
    """Map an extractor error message to an ``ErrorKind``."""
    lowered = message.lower()
    for kind, phrases in _ERROR_PATTERNS:
        if any(phrase in lowered for phrase in phrases):
            return kind
    return ErrorKind.UNKNOWN


class YtDlpExtractor:
    """Fetches metadata and single streams through the yt-dlp Python API."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def _base_options(self) -> dict:
        opts = {
            "quiet": True,
            "no_warnings": True,
            "noplaylist": True,
            "socket_timeout": self.settings.extractor_socket_timeout,
            "retries": 3,
        }
        if self.settings.cookies_file:
            opts["cookiefile"] = str(self.settings.cookies_file)
        return opts

    def fetch_metadata(self, url: str) -> OperationResult:
        try:
            with YoutubeDL(self._base_options()) as ydl:
                info = ydl.extract_info(url, download=False)
        except (DownloadError, ExtractorError) as e:
            kind = classify_error(str(e))
            logger.warning("Video %s not available (%s): %s", url, kind, e)
            return Err(kind=kind, detail=str(e))
        if not info:
            return Err(kind=ErrorKind.UNAVAILABLE, detail="No metadata returned")
        return Ok(
            data={
                "title": info.get("title"),
                "duration": info.get("duration"),
                "filesize": info.get("filesize") or info.get("filesize_approx"),
                "video_id": info.get("id"),
            }
        )

    def download(self, url: str, format_id: str, output_template: str) -> OperationResult:
        opts = {**self._base_options(), "format": format_id, "outtmpl": output_template}
        try:
            with YoutubeDL(opts) as ydl:
                info = ydl.extract_info(url, download=True)
        except (DownloadError, ExtractorError) as e:
            return Err(kind=classify_error(str(e)), detail=str(e))

        path = self._select_output(info)
        if path is None:
            return Err(kind=ErrorKind.UNKNOWN, detail=f"No output file produced for {url}")
        return Ok(data={"path": str(path), "format_id": (info or {}).get("format_id")})

    def list_entries(self, playlist_url: str) -> OperationResult:
        opts = {**self._base_options(), "noplaylist": False, "extract_flat": "in_playlist"}
        try:
            with YoutubeDL(opts) as ydl:
                info = ydl.extract_info(playlist_url, download=False)
        except (DownloadError, ExtractorError) as e:
            return Err(kind=classify_error(str(e)), detail=str(e))

        urls = []
        for entry in (info or {}).get("entries") or []:
            if not entry:
                continue
            url = entry.get("url") or entry.get("webpage_url")
            if not url and entry.get("id"):
                url = f"https://www.youtube.com/watch?v={entry['id']}"
            if url:
                urls.append(url)
        logger.info("Playlist %s lists %d videos", playlist_url, len(urls))
        return Ok(data={"urls": urls, "title": (info or {}).get("title")})

    @staticmethod
    def _select_output(info: dict | None) -> Path | None:
        if not isinstance(info, dict):
            return None
        candidates = [info.get("_filename"), info.get("filepath")]
        for req in info.get("requested_downloads") or []:
            candidates.extend([req.get("filepath"), req.get("filename")])
        for candidate in candidates:
            if candidate and Path(candidate).is_file() and Path(candidate).stat().st_size > 0:
                return Path(candidate)
        return None
