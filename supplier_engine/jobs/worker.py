"""
Distribution worker.

Polls the `project-distribution` queue and runs each job under a
timeout. A job that raises (or times out) goes back to the queue, which
retries it with backoff and dead-letters it after the last attempt.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from pydantic import ValidationError

from supplier_engine.errors import JobFailure
from supplier_engine.jobs.queue import DISTRIBUTE_PROJECT_JOB, JobQueue
from supplier_engine.schemas import DistributeProjectJob, JobRecord, JobStatus

if TYPE_CHECKING:
    from supplier_engine.distribution import DistributionOrchestrator

logger = logging.getLogger(__name__)


class DistributionWorker:

    def __init__(
        self,
        queue: JobQueue,
        orchestrator: "DistributionOrchestrator",
        poll_interval: float = 1.0,
        job_timeout: float = 300
    ):
        self.queue = queue
        self.orchestrator = orchestrator
        self.poll_interval = poll_interval
        self.job_timeout = job_timeout

        self._running = False
        self._stop_event: Optional[asyncio.Event] = None

        self.stats = {
            'jobs_processed': 0,
            'jobs_completed': 0,
            'jobs_failed': 0,
            'jobs_dead': 0,
        }

    async def _handle(self, job: JobRecord) -> None:
        if job.name != DISTRIBUTE_PROJECT_JOB:
            raise JobFailure(job.id, ValueError(f"Unknown job name: {job.name}"))

        try:
            payload = DistributeProjectJob.model_validate(job.payload)
        except ValidationError as e:
            raise JobFailure(job.id, e) from e

        try:
            report = await asyncio.wait_for(
                self.orchestrator.distribute(payload.project_id),
                timeout=self.job_timeout
            )
        except asyncio.TimeoutError as e:
            raise JobFailure(job.id, TimeoutError(f"timed out after {self.job_timeout}s")) from e
        except Exception as e:
            raise JobFailure(job.id, e) from e

        logger.info(
            f"Job {job.id}: project {report.project_id}, "
            f"{len(report.notified)}/{report.candidates} suppliers notified"
        )

    async def process_next(self) -> bool:
        """
        Claim and run one due job.

        Returns:
            True if a job was processed (successfully or not)
        """
        job = await self.queue.claim_next()
        if job is None:
            return False

        self.stats['jobs_processed'] += 1
        logger.info(f"⚙️ Processing job {job.id} ({job.name}), attempt {job.attempts}/{job.max_attempts}")

        try:
            await self._handle(job)
        except JobFailure as e:
            self.stats['jobs_failed'] += 1
            logger.error(f"❌ {e}", exc_info=True)
            status = await self.queue.fail(job.id, str(e.cause))
            if status == JobStatus.DEAD:
                self.stats['jobs_dead'] += 1
            return True

        await self.queue.complete(job.id)
        self.stats['jobs_completed'] += 1
        return True

    async def run(self):
        """Process jobs until `stop()` is called."""
        self._running = True
        self._stop_event = asyncio.Event()
        logger.info(f"🚀 Distribution worker started on {self.queue.queue_name}")

        while self._running:
            try:
                processed = await self.process_next()
            except Exception as e:
                logger.error(f"❌ Worker loop error: {e}", exc_info=True)
                processed = False

            if processed:
                continue

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

        logger.info("🛑 Distribution worker stopped")

    async def stop(self):
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()

    def get_stats(self) -> Dict[str, Any]:
        return self.stats.copy()
