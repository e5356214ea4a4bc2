"""Command-line interface for tubeshift."""

import json
import logging
import signal
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import click
import uvicorn
from pydantic import ValidationError

from tubeshift import __version__
from tubeshift.config import Settings
from tubeshift.models.errors import (
    ConfigurationError,
    PipelineCancelled,
    ResourceError,
    TubeshiftError,
)
from tubeshift.models.progress import Stage
from tubeshift.pipeline.orchestrator import PipelineOrchestrator
from tubeshift.pipeline.reports import progress_report, upload_history
from tubeshift.pipeline.sources import load_playlist_sources
from tubeshift.storage.playlist_store import PlaylistStateStore
from tubeshift.storage.progress_store import ProgressStore

logger = logging.getLogger(__name__)

EXIT_FATAL = 1
EXIT_INTERRUPTED = 130

_NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "s3transfer")


def setup_logging(level: str = "INFO", log_file: Path | None = None, verbose: bool = False) -> None:
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(root_level)

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s", "%Y-%m-%d %H:%M:%S"
    )
    console_handler = logging.StreamHandler()
    console_handler.setLevel(root_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=20 * 1024 * 1024, backupCount=5, encoding="utf-8"
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _load_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError("Invalid configuration", details={"errors": e.errors()}) from e


def _fail(exc: TubeshiftError) -> None:
    click.echo(f"Error: {exc.message}", err=True)
    for key, value in exc.details.items():
        click.echo(f"  {key}: {value}", err=True)
    sys.exit(EXIT_FATAL)


@click.group()
@click.version_option(__version__, prog_name="tubeshift")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool):
    """Download, merge and upload YouTube playlists, resuming where the last run stopped."""
    try:
        settings = _load_settings()
    except ConfigurationError as e:
        _fail(e)
    setup_logging(settings.log_level, settings.log_file, verbose)
    ctx.obj = settings


@cli.command()
@click.option(
    "--playlists-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory of playlist files (default: TUBESHIFT_PLAYLISTS_DIR)",
)
@click.pass_obj
def run(settings: Settings, playlists_dir: Path | None):
    """Run the full pipeline over every playlist file."""
    if playlists_dir is not None:
        settings = settings.model_copy(update={"playlists_dir": playlists_dir})
    orchestrator = PipelineOrchestrator(settings=settings)

    def _handle_sigterm(signum, frame):
        orchestrator.cancel()

    signal.signal(signal.SIGTERM, _handle_sigterm)
    try:
        sources = load_playlist_sources(settings.playlists_dir)
        summary = orchestrator.process(sources)
    except (ConfigurationError, ResourceError) as e:
        _fail(e)
    except KeyboardInterrupt:
        click.echo("\nInterrupted; progress saved up to the last finished item.", err=True)
        sys.exit(EXIT_INTERRUPTED)

    for playlist in summary.playlists:
        line = f"{playlist.playlist_id}: {playlist.skipped_reason or playlist.status}"
        for stage, result in playlist.stage_results.items():
            line += (
                f" | {stage} {len(result.successful)} ok, "
                f"{len(result.skipped)} skipped, {len(result.failed)} failed"
            )
        if playlist.error:
            line += f" | error: {playlist.error}"
        click.echo(line)
    if summary.cancelled:
        click.echo("Run cancelled before finishing.", err=True)
        sys.exit(EXIT_INTERRUPTED)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.pass_obj
def status(settings: Settings, as_json: bool):
    """Show per-stage counts and playlist resume points."""
    progress = ProgressStore(settings=settings)
    progress.load()
    playlists = PlaylistStateStore(settings=settings)
    playlists.load()
    report = progress_report(progress, playlists)

    if as_json:
        click.echo(json.dumps(report, indent=2))
        return
    click.echo(f"Stems tracked: {report['stems']}")
    for stage, counts in report["stages"].items():
        parts = ", ".join(f"{k} {v}" for k, v in counts.items() if v)
        click.echo(f"  {stage:<9} {parts or '-'}")
    for p in report["playlists"]:
        nxt = f", next index {p['next_index']}" if p["next_index"] else ""
        click.echo(
            f"{p['playlist_id']}: {p['status']} ({p['cursor']}/{p['total_items']}{nxt})"
        )
        if p["failed_units"]:
            click.echo(f"  failed: {', '.join(p['failed_units'])}")


@cli.command()
@click.option("--merge", is_flag=True, help="Merge the pairs found instead of only reporting")
@click.pass_obj
def rescan(settings: Settings, merge: bool):
    """Pair loose files in the downloads directory."""
    orchestrator = PipelineOrchestrator(settings=settings)
    match, result = orchestrator.rescan(merge=merge)
    for unit in match.pairs:
        click.echo(f"pair   {unit.video} + {unit.audio} -> {unit.output_name} (level {unit.match_level})")
    for unit in match.video_only + match.audio_only:
        click.echo(f"single {unit.files[0]} -> {unit.output_name}")
    for name in match.ignored:
        click.echo(f"ignored {name}")
    if result is not None:
        click.echo(
            f"merged {len(result.successful)}, skipped {len(result.skipped)}, "
            f"failed {len(result.failed)}"
        )


@cli.command()
@click.pass_obj
def upload(settings: Settings):
    """Upload finished files in the merged directory that are not stored yet."""
    orchestrator = PipelineOrchestrator(settings=settings)

    def _handle_sigterm(signum, frame):
        orchestrator.cancel()

    signal.signal(signal.SIGTERM, _handle_sigterm)
    try:
        result = orchestrator.upload_pending()
    except (ConfigurationError, ResourceError) as e:
        _fail(e)
    except (KeyboardInterrupt, PipelineCancelled):
        click.echo("\nInterrupted; finished uploads are recorded.", err=True)
        sys.exit(EXIT_INTERRUPTED)

    for outcome in result.failed:
        click.echo(f"failed {outcome.stem}: {outcome.detail}", err=True)
    click.echo(
        f"uploaded {len(result.successful)}, skipped {len(result.skipped)}, "
        f"failed {len(result.failed)}"
    )


@cli.command()
@click.pass_obj
def history(settings: Settings):
    """List completed uploads grouped by day."""
    progress = ProgressStore(settings=settings)
    progress.load()
    days = upload_history(progress)
    if not days:
        click.echo("No uploads recorded.")
        return
    for day, entries in days.items():
        click.echo(f"{day} ({len(entries)} files)")
        for entry in entries:
            click.echo(f"  {entry['filename'] or entry['stem']} -> {entry['storage_key']}")


@cli.command()
@click.argument("stem")
@click.option(
    "--stage",
    type=click.Choice([s.value for s in Stage]),
    help="Only reset this stage (default: all stages)",
)
@click.pass_obj
def reset(settings: Settings, stem: str, stage: str | None):
    """Forget recorded progress for STEM so it is processed again."""
    progress = ProgressStore(settings=settings)
    progress.load()
    if not progress.purge(stem, Stage(stage) if stage else None):
        click.echo(f"No progress recorded for '{stem}'", err=True)
        sys.exit(EXIT_FATAL)
    progress.save()
    click.echo(f"Reset {stem} ({stage or 'all stages'})")


@cli.command("reset-playlist")
@click.argument("playlist_id")
@click.pass_obj
def reset_playlist(settings: Settings, playlist_id: str):
    """Forget a playlist's completion state and cursor."""
    playlists = PlaylistStateStore(settings=settings)
    playlists.load()
    if playlists.reset(playlist_id) is None:
        click.echo(f"Playlist {playlist_id} not found", err=True)
        sys.exit(EXIT_FATAL)
    playlists.save()
    click.echo(f"Reset playlist {playlist_id}")


@cli.command("import-upload-log")
@click.argument("log_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def import_upload_log(settings: Settings, log_path: Path):
    """Seed upload records from a legacy upload log."""
    progress = ProgressStore(settings=settings)
    progress.load()
    count = progress.import_upload_log(log_path, bucket=settings.s3_bucket or None)
    if count:
        progress.save()
    click.echo(f"Imported {count} upload records")


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
def serve(host: str, port: int):
    """Serve the HTTP API."""
    uvicorn.run("tubeshift.api.app:app", host=host, port=port)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
