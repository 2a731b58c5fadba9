"""
Durable distribution jobs.

JobQueue stores jobs in the `distribution_jobs` table; DistributionWorker
claims and runs them.
"""

from .queue import DISTRIBUTE_PROJECT_JOB, DISTRIBUTION_QUEUE, JobQueue
from .worker import DistributionWorker

__all__ = ['JobQueue', 'DistributionWorker', 'DISTRIBUTE_PROJECT_JOB', 'DISTRIBUTION_QUEUE']
