"""Pure filename heuristics: stems, role markers and progressive search terms.

Nothing in this module touches the filesystem. Every function takes a
filename (or a stem) and returns a derived string, so the matching policy
can be exercised exhaustively in isolation.
"""

import re
from enum import StrEnum
from pathlib import PurePath

# Applied in order: an explicit "_video" marker first, then a bare "video".
_ROLE_PATTERNS = (
    re.compile(r"_video$", re.IGNORECASE),
    re.compile(r"_audio$", re.IGNORECASE),
    re.compile(r"video$", re.IGNORECASE),
    re.compile(r"audio$", re.IGNORECASE),
)
_TRAILING_SEPARATORS = re.compile(r"[_\s-]+$")
_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*]')

TERM_DELIMITERS = ("_", "-", " ")


class Role(StrEnum):
    VIDEO = "video"
    AUDIO = "audio"


def split_extension(filename: str) -> tuple[str, str]:
    """Return ``(name_without_extension, lowercased_extension)`` of a basename."""
    path = PurePath(filename)
    return path.stem, path.suffix.lower()


def role_marker(filename: str) -> Role | None:
    """Return the role named by a trailing marker, if any."""
    name, _ = split_extension(filename)
    lowered = name.lower()
    if lowered.endswith("video"):
        return Role.VIDEO
    if lowered.endswith("audio"):
        return Role.AUDIO
    return None


def classify(
    filename: str, video_extensions: set[str], audio_extensions: set[str]
) -> Role | None:
    """Classify a filename as a video or audio candidate by its extension.

    Extensions listed in both sets (``.webm``) are resolved by the role
    marker and default to video. Unrecognized extensions return None.
    """
    _, ext = split_extension(filename)
    is_video = ext in video_extensions
    is_audio = ext in audio_extensions
    if is_video and is_audio:
        return Role.AUDIO if role_marker(filename) == Role.AUDIO else Role.VIDEO
    if is_video:
        return Role.VIDEO
    if is_audio:
        return Role.AUDIO
    return None


def compute_stem(filename: str) -> str:
    """Canonical identifier of a media file.

    Drops the extension, then any trailing ``video``/``audio`` role marker
    (case-insensitive), then trailing separators. A name that would become
    empty keeps its extension-less form.
    """
    name, _ = split_extension(filename)
    stem = name
    for pattern in _ROLE_PATTERNS:
        stem = pattern.sub("", stem)
    stem = _TRAILING_SEPARATORS.sub("", stem.strip())
    return stem or name


def generate_candidate_stems(stem: str, min_length: int = 4) -> list[str]:
    """Progressively shorter search terms for ``stem``, most specific first.

    The first delimiter present in the stem is used to cut trailing parts
    off one at a time. Terms shorter than ``min_length`` are dropped.
    """
    terms = [stem]
    for delimiter in TERM_DELIMITERS:
        if delimiter not in stem:
            continue
        parts = stem.split(delimiter)
        for i in range(len(parts) - 1, 0, -1):
            term = delimiter.join(parts[:i]).strip()
            if len(term) >= min_length and term not in terms:
                terms.append(term)
        break
    return terms


def sanitize_output_name(stem: str) -> str:
    """Make a stem safe to use as an output filename."""
    name = _UNSAFE_CHARS.sub("_", stem)
    name = re.sub(r"\s+", "_", name)
    name = re.sub(r"_+", "_", name)
    name = name.strip("_")
    return name or "untitled"
