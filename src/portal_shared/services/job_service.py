"""Job and quote store used by payment settlement."""

from typing import Any

from ..models.job import Job
from .dynamodb import DynamoDBService

JOBS_TABLE = "jobs"
QUOTES_TABLE = "quotes"


class JobService:
    """Jobs live in ``jobs``; each job's quotes live in ``quotes`` keyed by
    ``(job_id, quote_id)``."""

    def __init__(self, db: DynamoDBService) -> None:
        self._db = db

    def get_job_item(self, job_id: str) -> dict[str, Any] | None:
        """Raw stored job, for read-modify-write of the payments list."""
        return self._db.get_item(JOBS_TABLE, {"job_id": job_id})

    def get_job(self, job_id: str) -> Job | None:
        item = self.get_job_item(job_id)
        return Job.model_validate(item) if item else None

    def merge_job(self, job_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
        return self._db.merge_item(JOBS_TABLE, {"job_id": job_id}, fields)

    def merge_quote(self, job_id: str, quote_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
        return self._db.merge_item(QUOTES_TABLE, {"job_id": job_id, "quote_id": quote_id}, fields)
