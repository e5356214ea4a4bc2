"""Filesystem helpers: listing, fingerprints, conflict-free moves, atomic writes."""

import hashlib
import logging
import os
import shutil
import tempfile
from pathlib import Path

from tubeshift.models.progress import Fingerprint

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


def ensure_dirs(*dirs: Path) -> None:
    for d in dirs:
        d.mkdir(parents=True, exist_ok=True)


def list_files(directory: Path) -> list[str]:
    """Sorted names of regular files in ``directory``; empty if it does not exist."""
    if not directory.is_dir():
        return []
    return sorted(entry.name for entry in directory.iterdir() if entry.is_file())


def content_hash(path: Path) -> str:
    """MD5 hex digest of a file's bytes, read in chunks."""
    digest = hashlib.md5()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def fingerprint_file(path: Path) -> Fingerprint:
    """Size plus content hash of ``path``."""
    return Fingerprint(size=path.stat().st_size, md5=content_hash(path))


def resolve_conflict(destination: Path) -> Path:
    """First free path of the form ``name.ext``, ``name_1.ext``, ``name_2.ext``..."""
    candidate = destination
    counter = 1
    while candidate.exists():
        candidate = destination.with_name(f"{destination.stem}_{counter}{destination.suffix}")
        counter += 1
    return candidate


def move_to_folder(path: Path, folder: Path) -> Path:
    """Move ``path`` into ``folder`` without overwriting; return the new path."""
    folder.mkdir(parents=True, exist_ok=True)
    destination = resolve_conflict(folder / path.name)
    shutil.move(str(path), str(destination))
    logger.info(f"Moved {path.name} to {destination}")
    return destination


def delete_file(path: Path) -> None:
    path.unlink()
    logger.info(f"Deleted {path.name}")


def write_text_atomic(path: Path, text: str) -> Path:
    """Write ``text`` to a sibling temp file, then rename it over ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return path
