"""Download, merge and upload operations run by ``StageRunner``."""

import logging
import os
import shutil
from pathlib import Path

from tubeshift.collaborators.base import MediaEncoder, MediaExtractor, MediaProbe, ObjectStore
from tubeshift.config import Settings, get_settings
from tubeshift.matching.stems import Role
from tubeshift.models.pipeline import UnitOutcome
from tubeshift.models.progress import utcnow
from tubeshift.models.results import Err, ErrorKind, Ok, OperationResult, Skip
from tubeshift.models.units import DownloadItem, LogicalUnit, UnitKind, UploadItem
from tubeshift.storage.files import delete_file, fingerprint_file, move_to_folder

logger = logging.getLogger(__name__)


class DownloadOperation:
    """Checks availability, then downloads the video and audio streams separately."""

    def __init__(self, extractor: MediaExtractor, settings: Settings | None = None):
        self.extractor = extractor
        self.settings = settings or get_settings()

    def execute(self, item: DownloadItem) -> OperationResult:
        meta = self.extractor.fetch_metadata(item.url)
        if isinstance(meta, Err):
            return meta

        downloads_dir = self.settings.downloads_dir
        downloads_dir.mkdir(parents=True, exist_ok=True)
        files: dict[str, str] = {}
        errors: list[Err] = []
        for role, format_id in (
            (Role.VIDEO, self.settings.video_format),
            (Role.AUDIO, self.settings.audio_format),
        ):
            template = str(downloads_dir / f"{item.stem}_{role}.%(ext)s")
            result = self.extractor.download(item.url, format_id, template)
            if isinstance(result, Ok):
                files[role] = Path(result.data["path"]).name
            else:
                logger.warning("%s stream of %s failed: %s", role, item.stem, result.detail)
                errors.append(result)

        transient = [e for e in errors if e.retryable]
        if transient:
            # a stream that may still come back must not be recorded as absent
            return transient[0]
        if not files:
            detail = "; ".join(f"{e.kind}: {e.detail}" for e in errors)
            return Err(kind=errors[0].kind, detail=detail or "no streams downloaded")

        data = {
            "url": item.url,
            "index": item.index,
            "title": meta.data.get("title"),
            "duration": meta.data.get("duration"),
            "video": files.get(Role.VIDEO),
            "audio": files.get(Role.AUDIO),
        }
        if len(files) == 1:
            data["partial"] = True
            logger.warning("Only the %s stream of %s was downloaded", next(iter(files)), item.stem)
        return Ok(data=data)

    def finalize(self, item: DownloadItem, outcome: UnitOutcome) -> dict | None:
        return None


class MergeOperation:
    """Muxes pairs with ffmpeg; singletons are copied as they are."""

    def __init__(
        self,
        encoder: MediaEncoder,
        probe: MediaProbe | None = None,
        settings: Settings | None = None,
    ):
        self.encoder = encoder
        self.probe = probe
        self.settings = settings or get_settings()

    def execute(self, unit: LogicalUnit) -> OperationResult:
        source_dir = self.settings.downloads_dir
        output = self.settings.merged_dir / unit.output_name
        base = {
            "output": str(output),
            "output_name": unit.output_name,
            "kind": str(unit.kind),
            "video": unit.video,
            "audio": unit.audio,
            "match_level": unit.match_level,
        }

        if output.is_file() and output.stat().st_size > 0:
            return Skip(
                reason=f"{output.name} already exists",
                data={**base, "size": output.stat().st_size},
            )

        missing = [name for name in unit.files if not (source_dir / name).is_file()]
        if missing:
            return Err(kind=ErrorKind.MISSING_INPUT, detail=f"Source files missing: {missing}")

        output.parent.mkdir(parents=True, exist_ok=True)
        if unit.kind == UnitKind.PAIR:
            result = self.encoder.mux(source_dir / unit.video, source_dir / unit.audio, output)
            if isinstance(result, Err):
                return result
        else:
            self._copy(source_dir / unit.files[0], output)

        data = {**base, "size": output.stat().st_size}
        if self.probe is not None and self.settings.validate_merged_output:
            probed = self.probe.probe(output)
            if isinstance(probed, Err):
                output.unlink(missing_ok=True)
                return probed
            data.update(probed.data)
        logger.info("Merged %s -> %s", unit.stem, output.name)
        return Ok(data=data)

    def finalize(self, unit: LogicalUnit, outcome: UnitOutcome) -> dict | None:
        if not self.settings.delete_sources_after_merge:
            return None
        deleted = []
        for name in unit.files:
            path = self.settings.downloads_dir / name
            if path.exists():
                delete_file(path)
                deleted.append(name)
        return {"sources_deleted": deleted}

    @staticmethod
    def _copy(source: Path, output: Path) -> None:
        partial = output.with_name(f"{output.stem}.part{output.suffix}")
        shutil.copy2(source, partial)
        os.replace(partial, output)


class UploadOperation:
    """Stores a finished file under ``{prefix}{filename}`` and disposes of the local copy."""

    def __init__(self, object_store: ObjectStore, settings: Settings | None = None):
        self.object_store = object_store
        self.settings = settings or get_settings()

    def execute(self, item: UploadItem) -> OperationResult:
        path = item.file
        if not path.is_file():
            return Err(kind=ErrorKind.MISSING_INPUT, detail=f"File not found: {path}")

        fingerprint = fingerprint_file(path)
        key = f"{self.settings.s3_key_prefix}{path.name}"
        uploaded_at = utcnow().isoformat()
        result = self.object_store.put(
            path,
            key,
            metadata={"original-filename": path.name, "upload-timestamp": uploaded_at},
        )
        if isinstance(result, Err):
            return result

        return Ok(
            data={
                **result.data,
                "filename": path.name,
                "size": fingerprint.size,
                "uploaded_at": uploaded_at,
                "fingerprint": fingerprint.model_dump(),
                "bucket": self.object_store.bucket,
                "storage_key": key,
            }
        )

    def finalize(self, item: UploadItem, outcome: UnitOutcome) -> dict | None:
        action = self.settings.post_upload_action
        if action == "keep" or not item.file.exists():
            return None
        if action == "delete":
            delete_file(item.file)
            return {"local_file": "deleted"}
        destination = move_to_folder(item.file, self.settings.uploaded_dir)
        return {"local_file": str(destination)}
