"""Media integrity checks with ffprobe."""

import json
import logging
import subprocess
from pathlib import Path

from tubeshift.config import Settings, get_settings
from tubeshift.models.results import Err, ErrorKind, Ok, OperationResult

logger = logging.getLogger(__name__)


class FFprobeProbe:
    """Reads duration and stream layout of a media file."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def probe(self, path: Path) -> OperationResult:
        if not path.exists():
            return Err(kind=ErrorKind.MISSING_INPUT, detail=f"File not found: {path}")
        try:
            result = subprocess.run(
                [
                    self.settings.ffprobe_binary,
                    "-v",
                    "quiet",
                    "-print_format",
                    "json",
                    "-show_format",
                    "-show_streams",
                    str(path),
                ],
                capture_output=True,
                text=True,
                timeout=self.settings.probe_timeout_seconds,
            )
        except FileNotFoundError:
            return Err(kind=ErrorKind.ENCODER_FAILED, detail="ffprobe not found. Please install FFmpeg.")
        except subprocess.TimeoutExpired:
            return Err(kind=ErrorKind.TIMEOUT, detail=f"ffprobe timed out on {path.name}")

        if result.returncode != 0:
            return Err(
                kind=ErrorKind.ENCODER_FAILED,
                detail=f"File appears to be corrupted or unreadable: {result.stderr[:500]}",
            )
        try:
            probe_data = json.loads(result.stdout)
        except json.JSONDecodeError:
            return Err(kind=ErrorKind.ENCODER_FAILED, detail="Failed to parse ffprobe output")

        streams = probe_data.get("streams", [])
        if not streams:
            return Err(kind=ErrorKind.ENCODER_FAILED, detail=f"No media streams found in {path.name}")

        return Ok(
            data={
                "duration": float(probe_data.get("format", {}).get("duration", 0) or 0),
                "has_video": any(s.get("codec_type") == "video" for s in streams),
                "has_audio": any(s.get("codec_type") == "audio" for s in streams),
            }
        )
