"""
Supplier Engine Service - main coordinator.

Builds every component from one EngineConfig and exposes the engine
operations. All collaborators are created here and passed in explicitly;
no component reaches for a module-level instance.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from database import Database
from supplier_engine.cache import CacheClient, RatingCache
from supplier_engine.config import EngineConfig
from supplier_engine.database import EngineDB
from supplier_engine.distribution import DistributionOrchestrator
from supplier_engine.jobs import DistributionWorker, JobQueue
from supplier_engine.logger import setup_logging_from_env
from supplier_engine.matching import CandidateScorer
from supplier_engine.notifications import ConversationMessenger
from supplier_engine.quotes import QuoteService
from supplier_engine.ranking import QuoteRanker
from supplier_engine.rating import RatingCalculator
from supplier_engine.schemas import (
    CompositeRating,
    DistributionReport,
    Exclusion,
    QuoteRecord,
    RankedQuote,
    ScoredCandidate,
)

logger = logging.getLogger(__name__)


MAINTENANCE_INTERVAL = 300  # 5 minutes


class SupplierEngineService:
    """
    Matching, rating and distribution engine.

    Usage:
        service = SupplierEngineService(EngineConfig())
        await service.initialize()
        job_id = await service.enqueue_distribution(project_id)
        await service.start()   # runs the distribution worker
    """

    def __init__(self, config: Optional[EngineConfig] = None, database: Optional[Database] = None):
        self.config = config or EngineConfig()
        self.database = database or Database(self.config.database_url)
        self.cache_client = CacheClient(self.config.redis_url)

        self.repo: Optional[EngineDB] = None
        self.rating_cache: Optional[RatingCache] = None
        self.ratings: Optional[RatingCalculator] = None
        self.scorer: Optional[CandidateScorer] = None
        self.ranker: Optional[QuoteRanker] = None
        self.messenger: Optional[ConversationMessenger] = None
        self.queue: Optional[JobQueue] = None
        self.orchestrator: Optional[DistributionOrchestrator] = None
        self.quotes: Optional[QuoteService] = None
        self.worker: Optional[DistributionWorker] = None

        self._maintenance_task: Optional[asyncio.Task] = None
        self._started_at: Optional[datetime] = None

    async def initialize(self, create_tables: bool = True):
        """Connect storage and cache and build the components."""
        logger.info("=" * 70)
        logger.info("🚀 SUPPLIER ENGINE INITIALIZATION")
        logger.info("=" * 70)

        await self.database.init(create_tables=create_tables)
        logger.info("✅ Database ready")

        await self.cache_client.connect()

        self.repo = EngineDB(self.database)
        self.rating_cache = RatingCache(self.cache_client, ttl=self.config.rating_cache_ttl)
        self.ratings = RatingCalculator(self.repo, self.repo, cache=self.rating_cache)
        self.scorer = CandidateScorer(
            self.repo, self.repo, self.repo, self.ratings,
            max_candidates=self.config.max_candidates
        )
        self.ranker = QuoteRanker(self.ratings)
        self.messenger = ConversationMessenger(self.database)
        self.queue = JobQueue(
            self.database,
            queue_name=self.config.job_queue,
            max_attempts=self.config.job_max_attempts,
            backoff_delay=self.config.job_backoff_delay,
            backoff_factor=self.config.job_backoff_factor,
        )
        self.orchestrator = DistributionOrchestrator(
            self.repo, self.scorer, self.messenger,
            queue=self.queue,
            batch_size=self.config.distribution_batch_size,
            description_limit=self.config.description_limit,
        )
        self.quotes = QuoteService(self.repo, self.ranker, messenger=self.messenger)
        self.worker = DistributionWorker(
            self.queue, self.orchestrator,
            poll_interval=self.config.worker_poll_interval,
            job_timeout=self.config.job_timeout,
        )

        logger.info("✅ All components initialized")

    def _require_initialized(self):
        if self.worker is None:
            raise RuntimeError("SupplierEngineService.initialize() has not been called")

    async def start(self):
        """Run the distribution worker until stopped."""
        self._require_initialized()
        self._started_at = datetime.utcnow()
        self._maintenance_task = asyncio.create_task(self._maintenance_loop())

        try:
            await self.worker.run()
        finally:
            if self._maintenance_task:
                self._maintenance_task.cancel()
                try:
                    await self._maintenance_task
                except asyncio.CancelledError:
                    pass
                self._maintenance_task = None

    async def stop(self):
        logger.info("🛑 Stopping Supplier Engine...")
        if self.worker:
            await self.worker.stop()
        self._print_stats()
        await self.cache_client.disconnect()
        await self.database.close()

    async def run_maintenance(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Return stalled jobs to the queue and prune finished ones."""
        self._require_initialized()
        recovered = await self.queue.recover_stalled(self.config.job_timeout * 2, now=now)
        pruned = await self.queue.prune(
            now=now,
            completed_retention=self.config.get('completed_job_retention'),
            completed_keep=self.config.get('completed_job_keep'),
            failed_retention=self.config.get('failed_job_retention'),
        )
        return {'recovered': recovered, 'pruned': pruned}

    async def _maintenance_loop(self):
        while True:
            await asyncio.sleep(MAINTENANCE_INTERVAL)
            try:
                await self.run_maintenance()
            except Exception as e:
                logger.error(f"❌ Job maintenance failed: {e}", exc_info=True)

    # ============================================
    # ENGINE OPERATIONS
    # ============================================

    async def distribute(self, project_id: str) -> DistributionReport:
        self._require_initialized()
        return await self.orchestrator.distribute(project_id)

    async def enqueue_distribution(self, project_id: str) -> int:
        self._require_initialized()
        return await self.orchestrator.enqueue(project_id)

    async def select_candidates(self, project_id: str) -> List[ScoredCandidate]:
        self._require_initialized()
        return await self.scorer.select_candidates(project_id)

    async def explain_exclusions(self, project_id: str) -> List[Exclusion]:
        self._require_initialized()
        return await self.scorer.explain_exclusions(project_id)

    async def get_rating(self, supplier_id: str) -> CompositeRating:
        self._require_initialized()
        return await self.ratings.get(supplier_id)

    async def recalculate_ratings(self) -> Dict[str, int]:
        self._require_initialized()
        supplier_ids = await self.repo.list_supplier_ids()
        return await self.ratings.recalculate_all(supplier_ids)

    async def rank_quotes(self, quotes: List[QuoteRecord]) -> List[QuoteRecord]:
        self._require_initialized()
        return await self.ranker.rank(quotes)

    async def ranked_project_quotes(self, project_id: str) -> List[RankedQuote]:
        self._require_initialized()
        return await self.quotes.ranked_quotes(project_id)

    async def get_stats(self) -> Dict[str, Any]:
        self._require_initialized()
        return {
            'started_at': self._started_at,
            'worker': self.worker.get_stats(),
            'messenger': self.messenger.get_stats(),
            'jobs': await self.queue.counts(),
            'cache': await self.cache_client.get_stats(),
            'rating_cache': {'hits': self.rating_cache.hits, 'misses': self.rating_cache.misses},
        }

    def _print_stats(self):
        if self.worker is None:
            return

        stats = self.worker.get_stats()
        logger.info("=" * 70)
        logger.info("📊 SUPPLIER ENGINE STATISTICS")
        logger.info("=" * 70)
        if self._started_at:
            logger.info(f"⏱️  Uptime: {datetime.utcnow() - self._started_at}")
        logger.info(f"⚙️  Jobs processed: {stats['jobs_processed']}")
        logger.info(f"✅ Completed: {stats['jobs_completed']}")
        logger.info(f"❌ Failed attempts: {stats['jobs_failed']}")
        logger.info(f"💀 Dead-lettered: {stats['jobs_dead']}")
        logger.info(f"📨 Messages sent: {self.messenger.get_stats()['messages_sent']}")
        logger.info("=" * 70)


async def main():
    """Run the distribution worker."""
    load_dotenv()
    setup_logging_from_env()

    service = SupplierEngineService(EngineConfig())

    try:
        await service.initialize()
        await service.start()
    except KeyboardInterrupt:
        logger.info("🛑 Stopped by user")
    except Exception as e:
        logger.error(f"❌ Engine startup failed: {e}", exc_info=True)
    finally:
        await service.stop()


def run():
    asyncio.run(main())


if __name__ == '__main__':
    run()
