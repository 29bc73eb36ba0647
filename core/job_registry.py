import logging
import threading
from dataclasses import replace
from pathlib import Path
from typing import Dict, Optional

from schemas.models import JobRecord, JobState, utc_now

logger = logging.getLogger(__name__)


class DuplicateJobError(KeyError):
    """Raised when a job id is registered twice."""


class JobRegistry:
    """
    In-memory store of job records, shared by submissions and status polls.

    Background conversions run in worker threads, so every access goes through
    a threading lock. The lock only ever guards dict operations; no I/O
    happens while it is held.
    """

    def __init__(self):
        self._jobs: Dict[str, JobRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._jobs

    def create(self, job_id: str, source_url: str = "") -> JobRecord:
        record = JobRecord(id=job_id, source_url=source_url)
        with self._lock:
            if job_id in self._jobs:
                raise DuplicateJobError(job_id)
            self._jobs[job_id] = record
        return replace(record)

    def complete(self, job_id: str, primary: Path, secondary: Optional[Path] = None) -> bool:
        return self._finish(job_id, JobState.completed(primary, secondary))

    def fail(self, job_id: str, reason: str) -> bool:
        return self._finish(job_id, JobState.failed(reason))

    def get(self, job_id: str) -> Optional[JobState]:
        with self._lock:
            record = self._jobs.get(job_id)
            return record.state if record else None

    def get_record(self, job_id: str) -> Optional[JobRecord]:
        """Returns a copy, so callers can't mutate the stored record."""
        with self._lock:
            record = self._jobs.get(job_id)
            return replace(record) if record else None

    def _finish(self, job_id: str, state: JobState) -> bool:
        with self._lock:
            record = self._jobs.get(job_id)
            if record is not None and not record.state.is_terminal:
                record.state = state
                record.finished_at = utc_now()
                return True
            current = record.state.status.value if record else None

        # Only one worker ever finishes a given job, so reaching this is a bug
        if current is None:
            logger.warning(f"Ignoring {state.status.value} for unknown job {job_id}")
        else:
            logger.warning(f"Ignoring {state.status.value} for job {job_id}: already {current}")
        return False
