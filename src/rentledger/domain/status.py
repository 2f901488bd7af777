"""Pending-review and integrity counts for a status surface."""

from dataclasses import dataclass
from typing import Optional

from rentledger.config import Settings
from rentledger.database.base import Database
from rentledger.domain.auditor import IntegrityAuditor, IntegrityReport
from rentledger.domain.entities import OPEN_STATUSES, EventType, JobRun, JobStatus, JobType

HEALTHY = "healthy"
WARNING = "warning"


@dataclass(frozen=True)
class SystemStatus:
    unmatched_events: int
    open_requests: int
    needs_review: int
    integrity: IntegrityReport
    last_runs: dict[JobType, Optional[JobRun]]

    @property
    def overall(self) -> str:
        failed = any(run is not None and run.status is JobStatus.FAILED for run in self.last_runs.values())
        if failed or self.needs_review or self.integrity.total:
            return WARNING
        return HEALTHY


class StatusService:
    """Service for summarizing what needs attention."""

    def __init__(self, db: Database, settings: Settings):
        """Initialize status service.

        Args:
            db: Database instance
            settings: Settings used by the integrity scan
        """
        self.db = db
        self.settings = settings

    def get_status(self) -> SystemStatus:
        unmatched = self.db.list_payment_events(event_type=EventType.PAYMENT_RECEIVED, matched=False)
        last_runs = {}
        for job_type in JobType:
            runs = self.db.list_job_runs(job_type=job_type, limit=1)
            last_runs[job_type] = runs[0] if runs else None

        return SystemStatus(
            unmatched_events=len(unmatched),
            open_requests=len(self.db.list_payment_requests(statuses=OPEN_STATUSES)),
            needs_review=sum(1 for e in unmatched if e.review_reason),
            integrity=IntegrityAuditor(self.db, self.settings).scan(),
            last_runs=last_runs,
        )
