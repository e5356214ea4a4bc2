"""Shared test fixtures and in-memory collaborator fakes."""

from pathlib import Path

import pytest

from tubeshift.config import Settings
from tubeshift.models.errors import ResourceError
from tubeshift.models.results import Err, ErrorKind, Ok
from tubeshift.pipeline.orchestrator import PipelineOrchestrator
from tubeshift.pipeline.retry import CancellableSleeper
from tubeshift.storage.playlist_store import PlaylistStateStore
from tubeshift.storage.progress_store import ProgressStore


class FakeExtractor:
    """Writes small placeholder files instead of downloading."""

    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self.unavailable: dict[str, ErrorKind] = {}
        self.failing_streams: set[tuple[str, str]] = set()
        self.flaky_streams: dict[tuple[str, str], int] = {}
        self.interrupt_on: set[str] = set()
        self.playlist_urls: list[str] = []
        self.listing_error: Err | None = None

    def fetch_metadata(self, url):
        self.calls.append(("meta", url))
        if url in self.interrupt_on:
            raise KeyboardInterrupt
        if url in self.unavailable:
            return Err(kind=self.unavailable[url], detail=f"{url} is not available")
        return Ok(data={"title": f"Title of {url}", "duration": 60})

    def download(self, url, format_id, output_template):
        role = "video" if "_video." in output_template else "audio"
        self.calls.append((role, url))
        if (url, role) in self.failing_streams:
            return Err(kind=ErrorKind.UNAVAILABLE, detail=f"no {role} stream")
        if self.flaky_streams.get((url, role), 0) > 0:
            self.flaky_streams[(url, role)] -= 1
            return Err(kind=ErrorKind.RATE_LIMITED, detail="HTTP Error 429: Too Many Requests")
        ext = "mp4" if role == "video" else "m4a"
        path = Path(output_template.replace("%(ext)s", ext))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(f"{role}:{url}".encode())
        return Ok(data={"path": str(path)})

    def list_entries(self, playlist_url):
        self.calls.append(("list", playlist_url))
        if self.listing_error is not None:
            return self.listing_error
        return Ok(data={"urls": list(self.playlist_urls)})

    def urls_called(self, kind: str = "meta") -> list[str]:
        return [url for call, url in self.calls if call == kind]


class FakeEncoder:
    """Concatenates the input bytes into the output file."""

    def __init__(self):
        self.calls: list[str] = []
        self.fail_outputs: set[str] = set()
        self.raise_outputs: set[str] = set()

    def mux(self, video, audio, output):
        self.calls.append(output.name)
        if output.name in self.raise_outputs:
            raise RuntimeError(f"encoder crashed on {output.name}")
        if output.name in self.fail_outputs:
            return Err(kind=ErrorKind.ENCODER_FAILED, detail="ffmpeg exited with code 1")
        output.write_bytes(video.read_bytes() + b"|" + audio.read_bytes())
        return Ok(data={"output": str(output)})


class FakeObjectStore:
    """Keeps uploaded objects in a dict."""

    def __init__(self, bucket: str = "test-bucket"):
        self.bucket = bucket
        self.objects: dict[str, bytes] = {}
        self.metadata: dict[str, dict] = {}
        self.put_calls: list[str] = []
        self.reachable = True
        self.fail_keys: dict[str, ErrorKind] = {}

    def check_connectivity(self):
        if not self.reachable:
            raise ResourceError(f"Cannot access bucket '{self.bucket}'", component="object_store")

    def put(self, path, key, metadata=None):
        self.put_calls.append(key)
        if key in self.fail_keys:
            return Err(kind=self.fail_keys[key], detail=f"upload of {key} failed")
        self.objects[key] = path.read_bytes()
        self.metadata[key] = dict(metadata or {})
        return Ok(data={"bucket": self.bucket, "storage_key": key})


class SpySleeper(CancellableSleeper):
    """Records requested delays instead of waiting."""

    def __init__(self):
        super().__init__()
        self.sleeps: list[float] = []

    def sleep(self, seconds):
        self.check()
        self.sleeps.append(seconds)


@pytest.fixture
def settings(tmp_path):
    """Settings rooted in a temporary directory with no delays."""
    return Settings(
        _env_file=None,
        playlists_dir=tmp_path / "playlists",
        downloads_dir=tmp_path / "downloads",
        merged_dir=tmp_path / "merged",
        uploaded_dir=tmp_path / "uploaded",
        progress_file=tmp_path / "state" / "pipeline_progress.json",
        playlist_state_file=tmp_path / "state" / "playlist_state.json",
        item_delay_seconds=0,
        stage_delay_seconds=0,
        playlist_delay_seconds=0,
        backoff_base_seconds=0,
        backoff_max_seconds=0,
        validate_merged_output=False,
        s3_bucket="test-bucket",
    )


@pytest.fixture
def progress_store(settings):
    store = ProgressStore(settings=settings)
    store.load()
    return store


@pytest.fixture
def playlist_store(settings):
    store = PlaylistStateStore(settings=settings)
    store.load()
    return store


@pytest.fixture
def fake_extractor():
    return FakeExtractor()


@pytest.fixture
def fake_encoder():
    return FakeEncoder()


@pytest.fixture
def fake_object_store():
    return FakeObjectStore()


@pytest.fixture
def sleeper():
    return SpySleeper()


@pytest.fixture
def make_orchestrator(settings, fake_extractor, fake_encoder, fake_object_store, sleeper):
    """Build an orchestrator wired to the fakes; keyword arguments override them."""

    def _make(**overrides):
        kwargs = {
            "settings": settings,
            "extractor": fake_extractor,
            "encoder": fake_encoder,
            "object_store": fake_object_store,
            "sleeper": sleeper,
        }
        kwargs.update(overrides)
        return PipelineOrchestrator(**kwargs)

    return _make
