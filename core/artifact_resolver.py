import os
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from schemas.models import ResolvedArtifacts

logger = logging.getLogger(__name__)


def _normalize_extension(ext: str) -> str:
    return "." + ext.lower().lstrip(".")


class ArtifactResolver:
    """
    Works out which files in an output directory belong to a conversion that
    has just finished.

    yt-dlp names its output after the video title rather than the job id, so
    the only link between a job and its files is timing: anything modified at
    or after the job's start time is a candidate. Returned paths are relative
    to the scanned directory.
    """

    def __init__(
        self,
        output_dir: Path,
        audio_extension: str = "mp3",
        image_extensions: Iterable[str] = ("jpg", "jpeg", "png", "webp"),
    ):
        self.output_dir = Path(output_dir)
        self.audio_extension = _normalize_extension(audio_extension)
        self.image_extensions = frozenset(_normalize_extension(e) for e in image_extensions)

    def resolve(self, since_timestamp: float) -> Optional[ResolvedArtifacts]:
        if not self.output_dir.is_dir():
            logger.error(f"Output directory {self.output_dir} does not exist")
            return None

        entries = self._scan()
        recent = [(name, mtime) for name, mtime in entries if mtime >= since_timestamp]

        primary = self._newest(n for n in recent if self._is_audio(n[0]))
        secondary = self._newest(n for n in recent if self._is_image(n[0]))

        if primary is None:
            # Timestamps can be coarse, skewed, or left untouched when yt-dlp
            # overwrites an existing file. This may pick up another job's file.
            primary = self._first_readable_audio(entries)
            if primary is not None:
                logger.warning(f"No audio newer than {since_timestamp} in {self.output_dir}, falling back to {primary}")

        if primary is None:
            return None
        return ResolvedArtifacts(
            primary=Path(primary),
            secondary=Path(secondary) if secondary else None,
        )

    def _scan(self) -> List[Tuple[str, float]]:
        entries = []
        with os.scandir(self.output_dir) as it:
            for entry in it:
                try:
                    if not entry.is_file():
                        continue
                    entries.append((entry.name, entry.stat().st_mtime))
                except OSError as e:
                    logger.debug(f"Skipping {entry.name}: {e}")
        return entries

    def _is_audio(self, name: str) -> bool:
        return os.path.splitext(name)[1].lower() == self.audio_extension

    def _is_image(self, name: str) -> bool:
        return os.path.splitext(name)[1].lower() in self.image_extensions

    @staticmethod
    def _newest(candidates: Iterable[Tuple[str, float]]) -> Optional[str]:
        # Latest mtime wins; equal mtimes go to the smallest name
        ordered = sorted(candidates, key=lambda c: (-c[1], c[0]))
        return ordered[0][0] if ordered else None

    def _first_readable_audio(self, entries: List[Tuple[str, float]]) -> Optional[str]:
        for name, _ in sorted(entries):
            if not self._is_audio(name):
                continue
            path = self.output_dir / name
            if path.is_file() and os.access(path, os.R_OK):
                return name
        return None
