"""Group loose video and audio files into logical media units."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from tubeshift.config import Settings, get_settings
from tubeshift.matching.stems import (
    Role,
    classify,
    compute_stem,
    generate_candidate_stems,
    sanitize_output_name,
    split_extension,
)
from tubeshift.models.units import LogicalUnit, MatchResult

logger = logging.getLogger(__name__)


@dataclass
class _Candidate:
    filename: str
    stem: str
    terms: list[str] = field(default_factory=list)


class FilePairMatcher:
    """Pairs video and audio candidates by stem, falling back to fuzzy terms.

    Input filenames are de-duplicated and sorted before matching, so the
    outcome only depends on the set of names given. A file is consumed by
    at most one pair.
    """

    def __init__(
        self,
        video_extensions: Iterable[str] | None = None,
        audio_extensions: Iterable[str] | None = None,
        fuzzy: bool | None = None,
        min_term_length: int | None = None,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()
        self.video_extensions = {
            e.lower() for e in (video_extensions or settings.video_extensions)
        }
        self.audio_extensions = {
            e.lower() for e in (audio_extensions or settings.audio_extensions)
        }
        self.fuzzy = settings.fuzzy_matching if fuzzy is None else fuzzy
        self.min_term_length = min_term_length or settings.min_term_length

    def match(self, filenames: Iterable[str]) -> MatchResult:
        """Match a flat list of filenames into pairs and singletons."""
        ordered = sorted(dict.fromkeys(filenames))
        result = MatchResult()

        videos: list[_Candidate] = []
        audios: list[_Candidate] = []
        seen: dict[Role, set[str]] = {Role.VIDEO: set(), Role.AUDIO: set()}

        for filename in ordered:
            role = classify(filename, self.video_extensions, self.audio_extensions)
            if role is None:
                result.ignored.append(filename)
                continue
            stem = compute_stem(filename)
            if stem in seen[role]:
                logger.warning("Duplicate %s candidate for stem '%s': %s", role, stem, filename)
                result.unmatched.append(filename)
                continue
            seen[role].add(stem)
            candidate = _Candidate(
                filename=filename,
                stem=stem,
                terms=generate_candidate_stems(stem, self.min_term_length),
            )
            (videos if role == Role.VIDEO else audios).append(candidate)

        logger.debug("Found %d video and %d audio candidates", len(videos), len(audios))

        used: set[str] = set()
        output_names: set[str] = set()
        pairs: list[tuple[_Candidate, _Candidate, int]] = []

        audio_by_stem = {a.stem: a for a in audios}
        for video in videos:
            audio = audio_by_stem.get(video.stem)
            if audio is not None and audio.filename not in used:
                pairs.append((video, audio, 0))
                used.update((video.filename, audio.filename))

        if self.fuzzy:
            for video in videos:
                if video.filename in used:
                    continue
                found = self._best_fuzzy_match(video, audios, used)
                if found is not None:
                    audio, level = found
                    pairs.append((video, audio, level))
                    used.update((video.filename, audio.filename))

        # Keep pairs in the order their video appears in the sorted input.
        video_rank = {v.filename: i for i, v in enumerate(videos)}
        pairs.sort(key=lambda p: video_rank[p[0].filename])

        for video, audio, level in pairs:
            logger.info(
                "Match found: '%s' <-> '%s' (level %d)", video.stem, audio.stem, level
            )
            result.pairs.append(
                LogicalUnit(
                    stem=video.stem,
                    video=video.filename,
                    audio=audio.filename,
                    match_level=level,
                    output_name=self._output_name(video.stem, ".mp4", output_names),
                )
            )

        for video in videos:
            if video.filename in used:
                continue
            result.unmatched.append(video.filename)
            result.video_only.append(
                LogicalUnit(
                    stem=video.stem,
                    video=video.filename,
                    output_name=self._output_name(
                        video.stem, split_extension(video.filename)[1], output_names
                    ),
                )
            )

        for audio in audios:
            if audio.filename in used:
                continue
            result.unmatched.append(audio.filename)
            result.audio_only.append(
                LogicalUnit(
                    stem=audio.stem,
                    audio=audio.filename,
                    output_name=self._output_name(
                        audio.stem, split_extension(audio.filename)[1], output_names
                    ),
                )
            )

        if result.unmatched:
            logger.info("Unmatched files (%d): %s", len(result.unmatched), result.unmatched)
        return result

    def _best_fuzzy_match(
        self, video: _Candidate, audios: list[_Candidate], used: set[str]
    ) -> tuple[_Candidate, int] | None:
        """Lowest combined truncation depth wins; ties go to the first seen."""
        best: _Candidate | None = None
        best_level = -1
        for video_depth, video_term in enumerate(video.terms):
            for audio in audios:
                if audio.filename in used:
                    continue
                for audio_depth, audio_term in enumerate(audio.terms):
                    if video_term != audio_term:
                        continue
                    level = video_depth + audio_depth
                    if best is None or level < best_level:
                        best = audio
                        best_level = level
        if best is None:
            return None
        return best, best_level

    @staticmethod
    def _output_name(stem: str, extension: str, taken: set[str]) -> str:
        base = sanitize_output_name(stem)
        name = f"{base}{extension}"
        counter = 1
        while name in taken:
            name = f"{base}_{counter}{extension}"
            counter += 1
        taken.add(name)
        return name
