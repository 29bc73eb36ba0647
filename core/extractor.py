import subprocess
import threading
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Set

logger = logging.getLogger(__name__)


class ExtractorLaunchError(Exception):
    """The extraction binary could not be started."""


class ExtractorTimeoutError(Exception):
    """The extraction process ran past its deadline and was killed."""


@dataclass(frozen=True)
class ExtractionResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


def build_output_template(output_dir: Path, timestamp: int) -> str:
    """yt-dlp output template: title capped at 100 chars, suffixed with the start time."""
    return str(Path(output_dir) / f"%(title).100s_{timestamp}.%(ext)s")


def ensure_ffmpeg():
    """Puts the static ffmpeg binaries on PATH. yt-dlp needs them to transcode audio."""
    import static_ffmpeg
    static_ffmpeg.add_paths()


class Extractor(ABC):
    """Downloads a URL and writes its artifacts according to an output template."""

    name = "extractor"

    @abstractmethod
    def invoke(self, url: str, output_template: str) -> ExtractionResult:
        ...

    def terminate(self):
        """Kills any extraction still running. Nothing to do by default."""


class YtDlpExtractor(Extractor):

    def __init__(
        self,
        binary: str = "yt-dlp",
        audio_format: str = "mp3",
        audio_quality: str = "192K",
        write_thumbnail: bool = True,
        timeout: Optional[float] = None,
    ):
        self.binary = binary
        self.name = binary
        self.audio_format = audio_format
        self.audio_quality = audio_quality
        self.write_thumbnail = write_thumbnail
        self.timeout = timeout
        self._running: Set[subprocess.Popen] = set()
        self._lock = threading.Lock()

    def build_command(self, url: str, output_template: str) -> List[str]:
        cmd = [
            self.binary,
            "--extract-audio",
            "--audio-format", self.audio_format,
            "--audio-quality", self.audio_quality,
        ]
        if self.write_thumbnail:
            cmd.append("--write-thumbnail")
        cmd += ["--output", output_template, url]
        return cmd

    def invoke(self, url: str, output_template: str) -> ExtractionResult:
        cmd = self.build_command(url, output_template)
        logger.info(f"Running {self.binary} for {url}")
        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise ExtractorLaunchError(
                f"Cannot execute {self.binary}: {e}. Please ensure yt-dlp is installed and on PATH"
            ) from e

        with self._lock:
            self._running.add(process)
        try:
            stdout, stderr = process.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            process.communicate()
            raise ExtractorTimeoutError(f"{self.binary} timed out after {self.timeout:g} seconds")
        finally:
            with self._lock:
                self._running.discard(process)

        if process.returncode != 0:
            logger.error(f"{self.binary} exited with {process.returncode} for {url}")
            logger.error(stderr)

        return ExtractionResult(returncode=process.returncode, stdout=stdout, stderr=stderr)

    @property
    def running(self) -> int:
        with self._lock:
            return len(self._running)

    def terminate(self):
        with self._lock:
            processes = list(self._running)
        for process in processes:
            logger.info(f"Killing {self.binary} (pid {process.pid})")
            process.kill()
