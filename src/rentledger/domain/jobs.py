"""Scheduled job entry points.

Each job is a single pass invoked by an external scheduler. Port objects
(feeds, mailboxes, notifiers) are passed in per invocation. Every run is
recorded as a JobRun, whether it succeeds or fails.
"""

import logging
from datetime import date, datetime
from typing import Any, Callable, Optional

from rentledger.config import Settings
from rentledger.database.base import Database
from rentledger.domain.auditor import IntegrityAuditor
from rentledger.domain.entities import JobRun, JobStatus, JobType
from rentledger.domain.errors import NotFoundError, job_run_not_found
from rentledger.domain.matcher import MatcherService
from rentledger.domain.notifications import NotificationService
from rentledger.domain.ports import BankFeed, NotificationSource, OutboundNotifier
from rentledger.domain.splitter import BillSplitterService
from rentledger.domain.sync import BankSyncService

logger = logging.getLogger(__name__)

JobFn = Callable[[], dict[str, Any]]


class JobRunner:
    """Runs jobs and records their outcome."""

    def __init__(self, db: Database):
        """Initialize job runner.

        Args:
            db: Database instance
        """
        self.db = db

    def run(self, job_type: JobType, fn: JobFn) -> JobRun:
        """Run a job and record it.

        ``fn`` returns the counts to store; an ``errors`` entry, if present,
        is stored as the run's error list. Any exception marks the run
        failed and is not re-raised.

        Returns:
            The finished JobRun

        Raises:
            NotFoundError: If the run record cannot be read back
        """
        run_id = self.db.create_job_run(job_type)
        logger.info("Job %s started (run %d)", job_type.value, run_id)
        try:
            counts = dict(fn() or {})
        except Exception as e:
            logger.exception("Job %s failed", job_type.value)
            self.db.finish_job_run(run_id, JobStatus.FAILED, errors=[f"{type(e).__name__}: {e}"])
        else:
            errors = list(counts.pop("errors", []))
            self.db.finish_job_run(run_id, JobStatus.SUCCESS, counts=counts, errors=errors)
            logger.info("Job %s finished: %s", job_type.value, counts)

        job_run = self.db.get_job_run(run_id)
        if job_run is None:
            raise NotFoundError(job_run_not_found(run_id))
        return job_run


def run_bank_sync(db: Database, feed: BankFeed, cursor: Optional[str] = None) -> JobRun:
    """Import new bank transactions."""

    def job() -> dict[str, Any]:
        return BankSyncService(db).sync(feed, cursor).as_counts()

    return JobRunner(db).run(JobType.BANK_SYNC, job)


def run_bill_split(
    db: Database,
    settings: Settings,
    notifier: Optional[OutboundNotifier] = None,
    month: Optional[int] = None,
    year: Optional[int] = None,
) -> JobRun:
    """Create payment requests for new bills, and rent when configured.

    Rent is requested for the given period, or the current month.
    """

    def job() -> dict[str, Any]:
        splitter = BillSplitterService(db, settings, notifier)
        counts = splitter.split_pending_bills(month, year).as_counts()
        if settings.monthly_rent is not None and settings.rent_participant:
            today = date.today()
            rent = splitter.create_rent_requests(month or today.month, year or today.year)
            counts["rent_created"] = len(rent.created)
        return counts

    return JobRunner(db).run(JobType.BILL_SPLIT, job)


def run_notification_check(
    db: Database,
    settings: Settings,
    source: NotificationSource,
    since: Optional[datetime] = None,
) -> JobRun:
    """Ingest new payment notifications and match them to requests."""

    def job() -> dict[str, Any]:
        ingested = NotificationService(db).ingest(source.pull(since))
        matched = MatcherService(db, settings).process_pending_events()
        counts: dict[str, Any] = {**ingested.as_counts(), **matched.as_counts()}
        counts["errors"] = ingested.rejected
        return counts

    return JobRunner(db).run(JobType.NOTIFICATION_CHECK, job)


def run_audit(db: Database, settings: Settings) -> JobRun:
    """Repair integrity issues."""

    def job() -> dict[str, Any]:
        result = IntegrityAuditor(db, settings).repair()
        counts: dict[str, Any] = result.as_counts()
        counts["flagged_items"] = list(result.flagged)
        return counts

    return JobRunner(db).run(JobType.AUDIT, job)
