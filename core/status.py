from typing import Any, Dict

from schemas.models import JobStatus
from core.job_registry import JobRegistry


class StatusQuery:
    """Read-only view of the registry for polling clients."""

    def __init__(self, registry: JobRegistry):
        self.registry = registry

    def status(self, job_id: str) -> Dict[str, Any]:
        state = self.registry.get(job_id)
        if state is None:
            return {"status": "not_found", "error": "Task not found"}

        if state.status == JobStatus.COMPLETED:
            response = {
                "status": state.status.value,
                "filename": state.primary_artifact.as_posix(),
            }
            if state.secondary_artifact is not None:
                response["thumbnail"] = state.secondary_artifact.as_posix()
            return response

        if state.status == JobStatus.FAILED:
            return {"status": state.status.value, "error": state.reason}

        return {"status": state.status.value}
