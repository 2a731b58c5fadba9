"""
Project distribution: notify the selected suppliers about a new project.

Suppliers are notified in batches of `batch_size` concurrent sends. A
failed notification is logged and recorded in the report; it never
cancels the other sends of its batch.
"""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from supplier_engine.errors import NotificationFailure
from supplier_engine.jobs.queue import DISTRIBUTE_PROJECT_JOB, JobQueue
from supplier_engine.logger import LoggerAdapter
from supplier_engine.matching import CandidateScorer
from supplier_engine.notifications.messenger import DEFAULT_DESCRIPTION_LIMIT, format_project_notification
from supplier_engine.ports import MessagingPort, ProjectRepository
from supplier_engine.schemas import DistributeProjectJob, DistributionReport, ProjectRecord

logger = logging.getLogger(__name__)


DEFAULT_BATCH_SIZE = 5


class DistributionOrchestrator:
    """
    Runs the fan-out of one project.

    Re-running `distribute` for a project notifies its suppliers again;
    there is no per-project idempotency guard.
    """

    def __init__(
        self,
        projects: ProjectRepository,
        scorer: CandidateScorer,
        messenger: MessagingPort,
        queue: Optional[JobQueue] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        description_limit: int = DEFAULT_DESCRIPTION_LIMIT
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")

        self.projects = projects
        self.scorer = scorer
        self.messenger = messenger
        self.queue = queue
        self.batch_size = batch_size
        self.description_limit = description_limit

    async def enqueue(self, project_id: str) -> int:
        """Queue a `distribute-project` job; returns the job ID."""
        if self.queue is None:
            raise RuntimeError("No job queue configured")

        payload = DistributeProjectJob(project_id=project_id)
        return await self.queue.enqueue(DISTRIBUTE_PROJECT_JOB, payload.model_dump(by_alias=True))

    async def _notify(self, project: ProjectRecord, supplier_id: str, content: str, metadata: dict) -> None:
        try:
            conversation_id = await self.messenger.get_or_create_conversation(
                project.customer_id, supplier_id, project.id
            )
            await self.messenger.send_message(project.customer_id, conversation_id, content, metadata)
        except Exception as e:
            raise NotificationFailure(supplier_id, project.id, e) from e

    async def distribute(self, project_id: str, now: Optional[datetime] = None) -> DistributionReport:
        """
        Notify the top candidates of a project.

        Raises:
            NotFoundError: project does not exist
        """
        log = LoggerAdapter(logger, {'project_id': project_id})

        project = await self.projects.find_project(project_id)
        candidates = await self.scorer.select_for_project(project, now=now)

        report = DistributionReport(project_id=project_id, candidates=len(candidates))
        if not candidates:
            log.info(f"ℹ️ Project {project_id}: no suppliers to notify")
            return report

        content, metadata = format_project_notification(project, self.description_limit)
        supplier_ids: List[str] = [c.supplier_id for c in candidates]

        log.info(f"📤 Project {project_id}: notifying {len(supplier_ids)} suppliers")

        for start in range(0, len(supplier_ids), self.batch_size):
            batch = supplier_ids[start:start + self.batch_size]
            results = await asyncio.gather(
                *(self._notify(project, supplier_id, content, metadata) for supplier_id in batch),
                return_exceptions=True
            )

            for supplier_id, result in zip(batch, results):
                if isinstance(result, NotificationFailure):
                    report.failed[supplier_id] = str(result.cause)
                    log.warning(f"⚠️ {result}")
                elif isinstance(result, BaseException):
                    raise result
                else:
                    report.notified.append(supplier_id)

        log.info(
            f"✅ Project {project_id} distributed: "
            f"{len(report.notified)} notified, {len(report.failed)} failed"
        )
        return report
