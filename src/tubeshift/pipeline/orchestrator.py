"""Pipeline orchestrator: runs download, merge and upload per playlist, resumably."""

import logging
from collections.abc import Sequence
from pathlib import Path

from tubeshift.collaborators.base import MediaEncoder, MediaExtractor, MediaProbe, ObjectStore
from tubeshift.collaborators.encoder import FFmpegMuxer
from tubeshift.collaborators.extractor import YtDlpExtractor
from tubeshift.collaborators.object_store import S3ObjectStore
from tubeshift.collaborators.probe import FFprobeProbe
from tubeshift.config import Settings, get_settings
from tubeshift.matching.matcher import FilePairMatcher
from tubeshift.matching.stems import classify, compute_stem, sanitize_output_name, split_extension
from tubeshift.models.errors import ConfigurationError, PipelineCancelled, ProcessingError
from tubeshift.models.pipeline import (
    PipelineSummary,
    PlaylistSource,
    PlaylistSummary,
    SessionStats,
    StageResult,
)
from tubeshift.models.progress import PlaylistState, PlaylistStatus, RecordStatus, Stage, utcnow
from tubeshift.models.results import Err, ErrorKind
from tubeshift.models.units import DownloadItem, LogicalUnit, MatchResult, UploadItem
from tubeshift.pipeline.operations import DownloadOperation, MergeOperation, UploadOperation
from tubeshift.pipeline.retry import BackoffPolicy, CancellableSleeper
from tubeshift.pipeline.stage_runner import StageRunner
from tubeshift.storage.files import ensure_dirs, fingerprint_file, list_files
from tubeshift.storage.playlist_store import PlaylistStateStore
from tubeshift.storage.progress_store import ProgressStore

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """Sequences the three stages for each playlist and keeps its resume state.

    Collaborators default to the yt-dlp, ffmpeg and S3 adapters; tests pass
    fakes. The orchestrator owns the session statistics and the playlist
    state file; stage runners only write per-stem progress records.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        extractor: MediaExtractor | None = None,
        encoder: MediaEncoder | None = None,
        probe: MediaProbe | None = None,
        object_store: ObjectStore | None = None,
        progress_store: ProgressStore | None = None,
        playlist_store: PlaylistStateStore | None = None,
        sleeper: CancellableSleeper | None = None,
    ):
        self.settings = settings or get_settings()
        self.extractor = extractor or YtDlpExtractor(self.settings)
        self.encoder = encoder or FFmpegMuxer(self.settings)
        if probe is None and self.settings.validate_merged_output:
            probe = FFprobeProbe(self.settings)
        self.probe = probe
        self.object_store = object_store or S3ObjectStore(self.settings)
        self.progress = progress_store or ProgressStore(settings=self.settings)
        self.playlists = playlist_store or PlaylistStateStore(settings=self.settings)
        self.sleeper = sleeper or CancellableSleeper()
        self.backoff = BackoffPolicy.from_settings(self.settings)
        self.stats = SessionStats()
        self._storage_checked = False

    def cancel(self) -> None:
        """Stop before the next unit; already recorded outcomes stay saved."""
        logger.warning("Cancellation requested")
        self.sleeper.cancel()

    def validate_config(self) -> None:
        s = self.settings
        if not self.object_store.bucket:
            raise ConfigurationError(
                "No storage bucket configured", details={"setting": "TUBESHIFT_S3_BUCKET"}
            )
        if s.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")
        if min(s.item_delay_seconds, s.stage_delay_seconds, s.playlist_delay_seconds) < 0:
            raise ConfigurationError("Delays must not be negative")
        if s.merged_dir.resolve() == s.downloads_dir.resolve():
            raise ConfigurationError("merged_dir and downloads_dir must differ")

    def load_state(self) -> None:
        self.progress.load()
        self.playlists.load()

    def process(self, sources: Sequence[PlaylistSource]) -> PipelineSummary:
        """Run every enabled playlist in order and return the overall summary.

        Completed playlists are skipped. ``ConfigurationError`` and
        ``ResourceError`` propagate; a cancellation ends the run early with
        ``cancelled`` set.
        """
        self.validate_config()
        self.load_state()
        ensure_dirs(self.settings.downloads_dir, self.settings.merged_dir)

        summary = PipelineSummary(stats=self.stats)
        self.stats.started_at = utcnow()
        ran_any = False
        try:
            for source in sources:
                if not source.enabled:
                    logger.info("Playlist %s is disabled, skipping", source.display_name)
                    summary.playlists.append(self._skipped_summary(source, "disabled"))
                    continue

                state = self.playlists.get_or_create(source)
                if state.completed:
                    logger.info("Playlist %s already completed, skipping", source.display_name)
                    summary.playlists.append(self._skipped_summary(source, "already completed", state))
                    continue

                self.ensure_storage()
                if ran_any:
                    self.sleeper.sleep(self.settings.playlist_delay_seconds)
                summary.playlists.append(self.process_playlist(source, state))
                ran_any = True
        except PipelineCancelled:
            summary.cancelled = True
            logger.warning("Run cancelled; progress is saved up to the last finished item")
        finally:
            self.stats.finished_at = utcnow()
            self.log_summary(summary)
        return summary

    def ensure_storage(self) -> None:
        """Check the storage backend once per run before the first upload can happen."""
        if not self._storage_checked:
            self.object_store.check_connectivity()
            self._storage_checked = True

    def process_playlist(self, source: PlaylistSource, state: PlaylistState) -> PlaylistSummary:
        summary = PlaylistSummary(playlist_id=source.playlist_id, status=state.status)
        try:
            items = self.resolve_items(source)
        except ProcessingError as e:
            logger.error("Cannot list playlist %s: %s", source.display_name, e.message)
            state.last_error = e.message
            state.updated_at = utcnow()
            self.playlists.save()
            summary.error = e.message
            return summary

        offset = source.start_index
        if state.started_at is None:
            state.started_at = utcnow()
        state.total_items = len(items)
        state.unit_ids = [item.stem for item in items[offset:]]
        state.last_error = None
        self._sync_unit_statuses(state)

        resume = max(offset, offset + state.terminal_prefix(), state.cursor)
        window = [item for item in items[resume:] if not state.is_unit_terminal(item.stem)]
        if source.max_items:
            window = window[: source.max_items]

        summary.total_items = len(items)
        try:
            if not window:
                logger.info("Playlist %s: nothing left to process", source.display_name)
            else:
                logger.info(
                    "Playlist %s: processing %d items starting at index %d of %d",
                    source.display_name,
                    len(window),
                    window[0].index,
                    len(items),
                )
                download = self.run_download(window)
                summary.stage_results[Stage.DOWNLOAD] = download

                self.sleeper.sleep(self.settings.stage_delay_seconds)
                merge = self.run_merge(download.stems())
                summary.stage_results[Stage.MERGE] = merge

                self.sleeper.sleep(self.settings.stage_delay_seconds)
                summary.stage_results[Stage.UPLOAD] = self.run_upload(merge)
        finally:
            self._refresh_playlist(state, offset)

        summary.status = state.status
        summary.cursor = state.cursor
        return summary

    def resolve_items(self, source: PlaylistSource) -> list[DownloadItem]:
        """Concrete download items of a playlist; stems are ``{playlist}_{index:03d}``."""
        urls = list(source.urls)
        if source.playlist_url:
            listing = self.extractor.list_entries(source.playlist_url)
            if isinstance(listing, Err):
                raise ProcessingError(
                    f"{listing.kind}: {listing.detail}",
                    component="extractor",
                    details={"playlist_url": source.playlist_url},
                )
            urls.extend(listing.data.get("urls", []))

        prefix = sanitize_output_name(source.playlist_id)
        return [
            DownloadItem(stem=f"{prefix}_{index:03d}", url=url, index=index)
            for index, url in enumerate(urls, start=1)
        ]

    def _runner(self, stage: Stage) -> StageRunner:
        return StageRunner(
            stage,
            self.progress,
            settings=self.settings,
            sleeper=self.sleeper,
            stats=self.stats,
            backoff=self.backoff,
        )

    def run_download(self, items: Sequence[DownloadItem]) -> StageResult:
        return self._runner(Stage.DOWNLOAD).run_stage(
            items,
            DownloadOperation(self.extractor, self.settings),
            already_done=lambda item: self.progress.is_completed(item.stem, Stage.DOWNLOAD),
        )

    def run_merge(self, stems: Sequence[str], match: MatchResult | None = None) -> StageResult:
        """Merge the given stems, pairing their files in the downloads directory by exact stem."""
        runner = self._runner(Stage.MERGE)
        if match is None:
            matcher = FilePairMatcher(settings=self.settings, fuzzy=False)
            match = matcher.match(list_files(self.settings.downloads_dir))
        by_stem = match.by_stem()

        units: list[LogicalUnit] = []
        missing: list[str] = []
        for stem in stems:
            unit = by_stem.get(stem)
            if unit is None and self.progress.status(stem, Stage.MERGE) in (
                RecordStatus.COMPLETED,
                RecordStatus.SKIPPED,
            ):
                unit = self._unit_from_record(stem)
            if unit is None:
                missing.append(stem)
            else:
                units.append(unit)

        prefailed = [
            runner.fail_unit(stem, ErrorKind.MISSING_INPUT, "no downloaded files found")
            for stem in missing
        ]
        result = runner.run_stage(
            units,
            MergeOperation(self.encoder, self.probe, self.settings),
            already_done=lambda unit: self.progress.is_completed(unit.stem, Stage.MERGE),
        )
        result.failed.extend(prefailed)
        return result

    def run_upload(self, merged: StageResult) -> StageResult:
        runner = self._runner(Stage.UPLOAD)
        items: list[UploadItem] = []
        missing: list[str] = []
        for stem in merged.stems():
            outcome = merged.outcome_for(stem)
            output = outcome.data.get("output") if outcome else None
            if not output:
                output = str(self.settings.merged_dir / f"{sanitize_output_name(stem)}.mp4")
            if Path(output).is_file() or self.progress.is_completed(stem, Stage.UPLOAD):
                items.append(UploadItem(stem=stem, path=output))
            else:
                missing.append(stem)

        prefailed = [
            runner.fail_unit(stem, ErrorKind.MISSING_INPUT, "merged output not found")
            for stem in missing
        ]
        result = runner.run_stage(
            items,
            UploadOperation(self.object_store, self.settings),
            already_done=self._upload_done,
        )
        result.failed.extend(prefailed)
        return result

    def _upload_done(self, item: UploadItem) -> bool:
        if item.file.is_file():
            return self.progress.is_completed(item.stem, Stage.UPLOAD, fingerprint_file(item.file))
        return self.progress.is_completed(item.stem, Stage.UPLOAD)

    def _unit_from_record(self, stem: str) -> LogicalUnit:
        meta = self.progress.get(stem, Stage.MERGE).metadata
        output_name = meta.get("output_name") or f"{sanitize_output_name(stem)}.mp4"
        video = meta.get("video")
        audio = meta.get("audio")
        if not video and not audio:
            video = output_name
        return LogicalUnit(stem=stem, video=video, audio=audio, output_name=output_name)

    def rescan(self, merge: bool = False) -> tuple[MatchResult, StageResult | None]:
        """Pair every loose file in the downloads directory, optionally merging the result."""
        matcher = FilePairMatcher(settings=self.settings)
        match = matcher.match(list_files(self.settings.downloads_dir))
        logger.info(
            "Rescan: %d pairs, %d video-only, %d audio-only, %d ignored",
            len(match.pairs),
            len(match.video_only),
            len(match.audio_only),
            len(match.ignored),
        )
        if not merge:
            return match, None

        self.progress.load()
        ensure_dirs(self.settings.merged_dir)
        result = self.run_merge([unit.stem for unit in match.units], match=match)
        return match, result

    def upload_pending(self) -> StageResult:
        """Upload every finished media file in the merged directory.

        Covers outputs that no playlist run will pick up, such as those of
        ``rescan(merge=True)``. A file keeps the stem its merge record gave
        it, or its computed stem when nothing recorded it. Files whose
        fingerprint matches a completed upload are skipped.
        """
        self.validate_config()
        self.progress.load()

        stems_by_output = {
            record.metadata["output_name"]: record.stem
            for record in self.progress.records(Stage.MERGE)
            if record.metadata.get("output_name")
        }
        video_exts = set(self.settings.video_extensions)
        audio_exts = set(self.settings.audio_extensions)
        items = []
        for name in list_files(self.settings.merged_dir):
            base, _ = split_extension(name)
            if base.endswith(".part") or classify(name, video_exts, audio_exts) is None:
                continue
            stem = stems_by_output.get(name) or compute_stem(name)
            items.append(UploadItem(stem=stem, path=str(self.settings.merged_dir / name)))

        if not items:
            logger.info("No merged files waiting for upload")
            return StageResult(stage=Stage.UPLOAD)

        self.ensure_storage()
        result = self._runner(Stage.UPLOAD).run_stage(
            items,
            UploadOperation(self.object_store, self.settings),
            already_done=self._upload_done,
        )
        logger.info(
            "Upload pass: %d uploaded, %d skipped, %d failed",
            len(result.successful),
            len(result.skipped),
            len(result.failed),
        )
        return result

    def _sync_unit_statuses(self, state: PlaylistState) -> None:
        statuses: dict[str, dict[Stage, RecordStatus]] = {}
        for stem in state.unit_ids:
            per_stage = {}
            for stage in Stage:
                status = self.progress.status(stem, stage)
                if status is not None:
                    per_stage[stage] = status
            statuses[stem] = per_stage
        state.unit_statuses = statuses

    def _refresh_playlist(self, state: PlaylistState, offset: int) -> None:
        self._sync_unit_statuses(state)
        state.cursor = offset + state.terminal_prefix()
        state.updated_at = utcnow()
        if state.all_terminal() and not state.completed:
            state.completed = True
            state.completed_at = utcnow()
            logger.info("Playlist %s completed", state.name or state.playlist_id)
        self.playlists.save()

    @staticmethod
    def _skipped_summary(
        source: PlaylistSource, reason: str, state: PlaylistState | None = None
    ) -> PlaylistSummary:
        summary = PlaylistSummary(
            playlist_id=source.playlist_id,
            skipped_reason=reason,
            status=state.status if state else PlaylistStatus.NOT_STARTED,
        )
        if state is not None:
            summary.total_items = state.total_items
            summary.cursor = state.cursor
        return summary

    def log_summary(self, summary: PipelineSummary) -> None:
        for playlist in summary.playlists:
            counts = ", ".join(
                f"{stage}: {len(r.successful)} ok/{len(r.skipped)} skipped/{len(r.failed)} failed"
                for stage, r in playlist.stage_results.items()
            )
            logger.info(
                "Playlist %s [%s] %s",
                playlist.playlist_id,
                playlist.skipped_reason or playlist.status,
                counts or playlist.error or "",
            )
        for stage, c in self.stats.stages.items():
            logger.info(
                "Session %s: %d successful, %d skipped, %d failed, %d degraded",
                stage,
                c.successful,
                c.skipped,
                c.failed,
                c.degraded,
            )
        if self.stats.bytes_uploaded:
            logger.info("Uploaded %.1f MB this session", self.stats.bytes_uploaded / (1024 * 1024))
