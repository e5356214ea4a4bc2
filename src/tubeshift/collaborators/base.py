"""Interfaces of the external tools the pipeline drives."""

from pathlib import Path
from typing import Protocol

from tubeshift.models.results import OperationResult


class MediaExtractor(Protocol):
    def fetch_metadata(self, url: str) -> OperationResult:
        """Title, duration and size of a video without downloading it."""
        ...

    def download(self, url: str, format_id: str, output_template: str) -> OperationResult:
        """Download one stream; ``Ok.data["path"]`` is the written file."""
        ...

    def list_entries(self, playlist_url: str) -> OperationResult:
        """Video URLs of a playlist in order; ``Ok.data["urls"]``."""
        ...


class MediaEncoder(Protocol):
    def mux(self, video: Path, audio: Path, output: Path) -> OperationResult:
        ...


class MediaProbe(Protocol):
    def probe(self, path: Path) -> OperationResult:
        ...


class ObjectStore(Protocol):
    bucket: str

    def check_connectivity(self) -> None:
        """Raise ``ResourceError`` when the backend cannot be used at all."""
        ...

    def put(self, path: Path, key: str, metadata: dict[str, str] | None = None) -> OperationResult:
        ...
