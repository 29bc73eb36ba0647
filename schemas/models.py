from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
import uuid
from typing import Optional

class JobStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED  = "completed"
    FAILED     = "failed"


def new_job_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class JobState:
    """
    Immutable snapshot of a job's outcome.
    Replaced as a whole on every transition, so a reader never sees a
    completed state with only one of its artifact fields filled in.
    """
    status: JobStatus
    primary_artifact: Optional[Path]   = None   # Audio file, relative to the downloads dir
    secondary_artifact: Optional[Path] = None   # Thumbnail, if one was written
    reason: Optional[str]              = None

    @classmethod
    def processing(cls) -> "JobState":
        return cls(status=JobStatus.PROCESSING)

    @classmethod
    def completed(cls, primary: Path, secondary: Optional[Path] = None) -> "JobState":
        return cls(status=JobStatus.COMPLETED, primary_artifact=primary, secondary_artifact=secondary)

    @classmethod
    def failed(cls, reason: str) -> "JobState":
        return cls(status=JobStatus.FAILED, reason=reason)

    @property
    def is_terminal(self) -> bool:
        return self.status != JobStatus.PROCESSING


@dataclass
class JobRecord:
    id: str                           = field(default_factory=new_job_id)
    source_url: str                   = ""
    state: JobState                   = field(default_factory=JobState.processing)
    created_at: datetime              = field(default_factory=utc_now)
    finished_at: Optional[datetime]   = None


@dataclass(frozen=True)
class ResolvedArtifacts:
    primary: Path
    secondary: Optional[Path] = None
