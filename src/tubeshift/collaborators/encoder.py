"""FFmpeg muxer: joins a video stream and an audio stream into one file."""

import logging
import os
import subprocess
from pathlib import Path

from tubeshift.config import Settings, get_settings
from tubeshift.models.results import Err, ErrorKind, Ok, OperationResult

logger = logging.getLogger(__name__)


class FFmpegMuxer:
    """Copies the video stream and re-encodes audio into the output container."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def build_command(self, video: Path, audio: Path, output: Path) -> list[str]:
        return [
            self.settings.ffmpeg_binary,
            "-y",
            "-i",
            str(video),
            "-i",
            str(audio),
            "-c:v",
            "copy",
            "-c:a",
            self.settings.merge_audio_codec,
            "-map",
            "0:v:0",
            "-map",
            "1:a:0",
            str(output),
        ]

    def mux(self, video: Path, audio: Path, output: Path) -> OperationResult:
        """Write ``output`` via a sibling partial file so a crash never leaves a truncated result."""
        output.parent.mkdir(parents=True, exist_ok=True)
        partial = output.with_name(f"{output.stem}.part{output.suffix}")
        cmd = self.build_command(video, audio, partial)
        logger.debug("Running: %s", " ".join(cmd))

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.settings.merge_timeout_seconds,
            )
        except FileNotFoundError:
            return Err(kind=ErrorKind.ENCODER_FAILED, detail="FFmpeg not found. Please install FFmpeg.")
        except subprocess.TimeoutExpired:
            partial.unlink(missing_ok=True)
            return Err(
                kind=ErrorKind.TIMEOUT,
                detail=f"FFmpeg timed out after {self.settings.merge_timeout_seconds:.0f}s",
            )

        if result.returncode != 0:
            partial.unlink(missing_ok=True)
            stderr_tail = "".join(result.stderr.splitlines(keepends=True)[-10:])
            logger.error("FFmpeg failed (code %d) for %s", result.returncode, output.name)
            return Err(
                kind=ErrorKind.ENCODER_FAILED,
                detail=f"FFmpeg exited with code {result.returncode}: {stderr_tail.strip()}",
            )

        os.replace(partial, output)
        return Ok(data={"output": str(output), "size": output.stat().st_size})
