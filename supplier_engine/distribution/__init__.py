"""Project fan-out to matching suppliers."""

from .orchestrator import DistributionOrchestrator

__all__ = ['DistributionOrchestrator']
