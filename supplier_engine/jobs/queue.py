"""
Durable job queue on the `distribution_jobs` table.

Lifecycle:
    waiting -> active -> completed
                      -> waiting (retry after backoff)
                      -> dead (attempts exhausted)

Delivery is at-least-once: a job whose worker dies stays `active` until
`recover_stalled` puts it back to `waiting`.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, delete, func

from database import Database, DistributionJob as JobModel
from supplier_engine.errors import NotFoundError
from supplier_engine.retry import backoff_delay
from supplier_engine.schemas import JobRecord, JobStatus

logger = logging.getLogger(__name__)


DISTRIBUTION_QUEUE = 'project-distribution'
DISTRIBUTE_PROJECT_JOB = 'distribute-project'

CLAIM_ATTEMPTS = 3


class JobQueue:
    """
    One named queue.

    Claiming is a conditional update (status still `waiting`), so two
    workers polling the same table never run the same job row at once.
    """

    def __init__(
        self,
        database: Database,
        queue_name: str = DISTRIBUTION_QUEUE,
        max_attempts: int = 3,
        backoff_delay: float = 2.0,
        backoff_factor: float = 2.0
    ):
        self.database = database
        self.queue_name = queue_name
        self.max_attempts = max_attempts
        self.backoff_delay = backoff_delay
        self.backoff_factor = backoff_factor

    async def enqueue(self, name: str, payload: Dict[str, Any], run_at: Optional[datetime] = None) -> int:
        """Add a job; returns its ID."""
        now = datetime.utcnow()
        job = JobModel(
            queue=self.queue_name,
            name=name,
            payload=payload,
            status=JobStatus.WAITING.value,
            attempts=0,
            max_attempts=self.max_attempts,
            backoff_delay=self.backoff_delay,
            backoff_factor=self.backoff_factor,
            next_run_at=run_at or now,
            created_at=now,
            updated_at=now,
        )
        async with self.database.session() as session:
            session.add(job)
            await session.flush()
            job_id = job.id

        logger.info(f"📥 Job {job_id} ({name}) enqueued on {self.queue_name}")
        return job_id

    async def get(self, job_id: int) -> JobRecord:
        async with self.database.session() as session:
            job = await session.get(JobModel, job_id)
            if not job:
                raise NotFoundError('Job', str(job_id))
            return JobRecord.model_validate(job)

    async def claim_next(self, now: Optional[datetime] = None) -> Optional[JobRecord]:
        """
        Claim the next due job, marking it active and counting the attempt.

        Returns:
            The claimed job, or None when nothing is due
        """
        now = now or datetime.utcnow()

        for _ in range(CLAIM_ATTEMPTS):
            async with self.database.session() as session:
                result = await session.execute(
                    select(JobModel.id)
                    .where(
                        JobModel.queue == self.queue_name,
                        JobModel.status == JobStatus.WAITING.value,
                        JobModel.next_run_at <= now,
                    )
                    .order_by(JobModel.next_run_at, JobModel.id)
                    .limit(1)
                )
                job_id = result.scalar_one_or_none()
                if job_id is None:
                    return None

                claimed = await session.execute(
                    update(JobModel)
                    .where(JobModel.id == job_id, JobModel.status == JobStatus.WAITING.value)
                    .values(
                        status=JobStatus.ACTIVE.value,
                        attempts=JobModel.attempts + 1,
                        updated_at=now,
                    )
                )
                if claimed.rowcount != 1:
                    # Another worker won this row
                    continue

            return await self.get(job_id)

        return None

    async def complete(self, job_id: int, now: Optional[datetime] = None) -> None:
        now = now or datetime.utcnow()
        async with self.database.session() as session:
            await session.execute(
                update(JobModel)
                .where(JobModel.id == job_id)
                .values(
                    status=JobStatus.COMPLETED.value,
                    last_error=None,
                    finished_at=now,
                    updated_at=now,
                )
            )
        logger.info(f"✅ Job {job_id} completed")

    async def fail(self, job_id: int, error: str, now: Optional[datetime] = None) -> JobStatus:
        """
        Record a failed attempt.

        Reschedules with exponential backoff, or dead-letters the job once
        its attempts are exhausted.

        Returns:
            The job's new status (waiting or dead)
        """
        now = now or datetime.utcnow()

        async with self.database.session() as session:
            job = await session.get(JobModel, job_id)
            if not job:
                raise NotFoundError('Job', str(job_id))

            job.last_error = error
            job.updated_at = now

            if job.attempts >= job.max_attempts:
                job.status = JobStatus.DEAD.value
                job.finished_at = now
                logger.error(f"💀 Job {job_id} dead after {job.attempts} attempts: {error}")
                return JobStatus.DEAD

            delay = backoff_delay(max(job.attempts, 1), job.backoff_delay, job.backoff_factor)
            job.status = JobStatus.WAITING.value
            job.next_run_at = now + timedelta(seconds=delay)
            logger.warning(
                f"⚠️ Job {job_id} attempt {job.attempts}/{job.max_attempts} failed: {error}. "
                f"Retrying in {delay:.1f}s"
            )
            return JobStatus.WAITING

    async def recover_stalled(self, older_than: float, now: Optional[datetime] = None) -> int:
        """Put `active` jobs untouched for `older_than` seconds back to waiting."""
        now = now or datetime.utcnow()
        cutoff = now - timedelta(seconds=older_than)

        async with self.database.session() as session:
            result = await session.execute(
                update(JobModel)
                .where(
                    JobModel.queue == self.queue_name,
                    JobModel.status == JobStatus.ACTIVE.value,
                    JobModel.updated_at < cutoff,
                )
                .values(status=JobStatus.WAITING.value, next_run_at=now, updated_at=now)
            )
            recovered = result.rowcount

        if recovered:
            logger.warning(f"♻️ {recovered} stalled jobs returned to {self.queue_name}")
        return recovered

    async def list_dead(self, limit: int = 100) -> List[JobRecord]:
        async with self.database.session() as session:
            result = await session.execute(
                select(JobModel)
                .where(JobModel.queue == self.queue_name, JobModel.status == JobStatus.DEAD.value)
                .order_by(JobModel.finished_at.desc(), JobModel.id.desc())
                .limit(limit)
            )
            return [JobRecord.model_validate(j) for j in result.scalars().all()]

    async def requeue(self, job_id: int, now: Optional[datetime] = None) -> bool:
        """Give a dead job a fresh set of attempts."""
        now = now or datetime.utcnow()
        async with self.database.session() as session:
            result = await session.execute(
                update(JobModel)
                .where(JobModel.id == job_id, JobModel.status == JobStatus.DEAD.value)
                .values(
                    status=JobStatus.WAITING.value,
                    attempts=0,
                    next_run_at=now,
                    finished_at=None,
                    updated_at=now,
                )
            )
            requeued = result.rowcount == 1

        if requeued:
            logger.info(f"🔁 Dead job {job_id} requeued")
        return requeued

    async def prune(
        self,
        now: Optional[datetime] = None,
        completed_retention: float = 86400,
        completed_keep: int = 1000,
        failed_retention: float = 604800
    ) -> int:
        """
        Delete finished jobs past retention.

        Completed jobs are kept for `completed_retention` seconds and at
        most `completed_keep` of them; dead jobs for `failed_retention`.

        Returns:
            Number of deleted jobs
        """
        now = now or datetime.utcnow()
        deleted = 0

        async with self.database.session() as session:
            result = await session.execute(
                delete(JobModel).where(
                    JobModel.queue == self.queue_name,
                    JobModel.status == JobStatus.COMPLETED.value,
                    JobModel.finished_at < now - timedelta(seconds=completed_retention),
                )
            )
            deleted += result.rowcount

            result = await session.execute(
                select(JobModel.id)
                .where(JobModel.queue == self.queue_name, JobModel.status == JobStatus.COMPLETED.value)
                .order_by(JobModel.finished_at.desc(), JobModel.id.desc())
                .offset(completed_keep)
            )
            overflow = list(result.scalars().all())
            if overflow:
                result = await session.execute(delete(JobModel).where(JobModel.id.in_(overflow)))
                deleted += result.rowcount

            result = await session.execute(
                delete(JobModel).where(
                    JobModel.queue == self.queue_name,
                    JobModel.status == JobStatus.DEAD.value,
                    JobModel.finished_at < now - timedelta(seconds=failed_retention),
                )
            )
            deleted += result.rowcount

        if deleted:
            logger.info(f"🧹 Pruned {deleted} finished jobs from {self.queue_name}")
        return deleted

    async def counts(self) -> Dict[str, int]:
        """Jobs per status."""
        async with self.database.session() as session:
            result = await session.execute(
                select(JobModel.status, func.count(JobModel.id))
                .where(JobModel.queue == self.queue_name)
                .group_by(JobModel.status)
            )
            counts = {status.value: 0 for status in JobStatus}
            for status, count in result.all():
                counts[status] = count
            return counts
