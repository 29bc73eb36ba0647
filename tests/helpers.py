import os
import threading
from pathlib import Path
from typing import Iterable, Optional

from core.extractor import Extractor, ExtractionResult

VALID_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


def render_template(output_template: str, title: str, ext: str) -> Path:
    return Path(output_template.replace("%(title).100s", title).replace("%(ext)s", ext))


def touch(path: Path, mtime: float, content: bytes = b"data") -> Path:
    path.write_bytes(content)
    os.utime(path, (mtime, mtime))
    return path


class FakeExtractor(Extractor):
    """Stands in for yt-dlp: writes files named from the template, or fails as configured."""

    name = "fake-dl"

    def __init__(
        self,
        title: str = "song",
        extensions: Iterable[str] = ("mp3", "jpg"),
        returncode: int = 0,
        stderr: str = "",
        error: Optional[Exception] = None,
        gate: Optional[threading.Event] = None,
    ):
        self.title = title
        self.extensions = tuple(extensions)
        self.returncode = returncode
        self.stderr = stderr
        self.error = error
        self.gate = gate
        self.calls = []
        self.terminated = False

    def invoke(self, url: str, output_template: str) -> ExtractionResult:
        self.calls.append((url, output_template))
        if self.gate is not None:
            self.gate.wait(timeout=10)
        if self.error is not None:
            raise self.error
        if self.returncode == 0:
            for ext in self.extensions:
                render_template(output_template, self.title, ext).write_bytes(b"data")
        return ExtractionResult(returncode=self.returncode, stderr=self.stderr)

    def terminate(self):
        self.terminated = True
        if self.gate is not None:
            self.gate.set()
