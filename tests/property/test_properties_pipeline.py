"""Property-based tests for stage idempotence, failure isolation and playlist resume."""

import math
import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tubeshift.config import Settings
from tubeshift.models.pipeline import PlaylistSource
from tubeshift.models.progress import RecordStatus, Stage
from tubeshift.models.results import Err, ErrorKind, Ok
from tubeshift.models.units import DownloadItem
from tubeshift.pipeline.orchestrator import PipelineOrchestrator
from tubeshift.pipeline.retry import BackoffPolicy, CancellableSleeper
from tubeshift.pipeline.stage_runner import StageRunner
from tubeshift.storage.progress_store import ProgressStore

pytestmark = pytest.mark.property


def _settings(root: Path) -> Settings:
    return Settings(
        _env_file=None,
        downloads_dir=root / "downloads",
        merged_dir=root / "merged",
        uploaded_dir=root / "uploaded",
        progress_file=root / "progress.json",
        playlist_state_file=root / "playlists.json",
        item_delay_seconds=0,
        stage_delay_seconds=0,
        playlist_delay_seconds=0,
        backoff_base_seconds=0,
        backoff_max_seconds=0,
        validate_merged_output=False,
        s3_bucket="bucket",
    )


class CountingOperation:
    def __init__(self, failing):
        self.failing = failing
        self.executed = []

    def execute(self, unit):
        self.executed.append(unit.stem)
        if unit.stem in self.failing:
            raise RuntimeError(f"{unit.stem} broke")
        return Ok()

    def finalize(self, unit, outcome):
        return None


class Extractor:
    def __init__(self, unavailable):
        self.unavailable = unavailable

    def fetch_metadata(self, url):
        if url in self.unavailable:
            return Err(kind=ErrorKind.UNAVAILABLE, detail="gone")
        return Ok(data={"title": url})

    def download(self, url, format_id, output_template):
        role = "video" if "_video." in output_template else "audio"
        path = Path(output_template.replace("%(ext)s", "mp4" if role == "video" else "m4a"))
        path.write_bytes(url.encode())
        return Ok(data={"path": str(path)})

    def list_entries(self, playlist_url):
        return Ok(data={"urls": []})


class Encoder:
    def mux(self, video, audio, output):
        output.write_bytes(video.read_bytes() + audio.read_bytes())
        return Ok(data={"output": str(output)})


class Store:
    bucket = "bucket"

    def __init__(self):
        self.keys = []

    def check_connectivity(self):
        pass

    def put(self, path, key, metadata=None):
        self.keys.append(key)
        return Ok(data={})


class TestStageProperties:
    @given(
        n=st.integers(min_value=1, max_value=8),
        data=st.data(),
    )
    @settings(max_examples=30, deadline=None)
    def test_failures_are_isolated_and_completed_units_never_rerun(self, n, data):
        stems = [f"unit_{i}" for i in range(n)]
        failing = set(data.draw(st.lists(st.sampled_from(stems), unique=True)))
        items = [DownloadItem(stem=s, url=f"u{i}", index=i + 1) for i, s in enumerate(stems)]

        with tempfile.TemporaryDirectory() as tmp:
            store = ProgressStore(path=Path(tmp) / "progress.json")
            runner = StageRunner(
                Stage.DOWNLOAD,
                store,
                settings=_settings(Path(tmp)),
                sleeper=CancellableSleeper(),
                max_attempts=1,
                backoff=BackoffPolicy(base=0, max=0),
            )

            first = CountingOperation(failing)
            result = runner.run_stage(items, first)
            assert first.executed == stems
            assert {o.stem for o in result.failed} == failing
            assert len(result.successful) == n - len(failing)

            second = CountingOperation(set())
            runner.run_stage(items, second)
            assert second.executed == [s for s in stems if s in failing]
            assert all(store.status(s, Stage.DOWNLOAD) == RecordStatus.COMPLETED for s in stems)


class TestResumeProperties:
    @given(
        n=st.integers(min_value=1, max_value=6),
        max_items=st.integers(min_value=1, max_value=4),
        data=st.data(),
    )
    @settings(max_examples=20, deadline=None)
    def test_playlist_completes_after_enough_runs(self, n, max_items, data):
        urls = [f"https://example.com/{i}" for i in range(n)]
        unavailable = set(data.draw(st.lists(st.sampled_from(urls), unique=True)))
        source = PlaylistSource(playlist_id="p", urls=urls, max_items=max_items)
        runs_needed = math.ceil(n / max_items)

        with tempfile.TemporaryDirectory() as tmp:
            cfg = _settings(Path(tmp))
            store = Store()
            for run in range(1, runs_needed + 1):
                orchestrator = PipelineOrchestrator(
                    settings=cfg, extractor=Extractor(unavailable), encoder=Encoder(), object_store=store
                )
                summary = orchestrator.process([source])
                playlist = summary.playlists[0]
                assert playlist.cursor == min(n, run * max_items)
                assert (playlist.status == "completed") == (run == runs_needed)

            assert sorted(store.keys) == sorted(
                f"media/p_{i + 1:03d}.mp4" for i, url in enumerate(urls) if url not in unavailable
            )
