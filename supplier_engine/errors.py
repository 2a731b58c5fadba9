"""
Error kinds raised by the supplier matching engine.

NotFoundError / ForbiddenError / InvalidStateError surface directly to the
caller. TransientDependencyFailure and NotificationFailure are absorbed
locally (neutral default, per-supplier logging). JobFailure is the only
kind that terminates a unit of work; the job queue retries it.
"""

from typing import Optional


class EngineError(Exception):
    """Base exception for all engine errors."""

    pass


class NotFoundError(EngineError):
    """Referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ForbiddenError(EngineError):
    """Caller is not allowed to act on the entity."""

    pass


class InvalidStateError(EngineError):
    """Operation not allowed in the entity's current status."""

    pass


class TransientDependencyFailure(EngineError):
    """A dependency (rating lookup, cache, storage) failed mid-computation."""

    def __init__(self, dependency: str, cause: Optional[BaseException] = None) -> None:
        self.dependency = dependency
        self.cause = cause
        super().__init__(f"{dependency} unavailable: {cause}")


class NotificationFailure(EngineError):
    """Notifying one supplier about a project failed."""

    def __init__(self, supplier_id: str, project_id: str, cause: Optional[BaseException] = None) -> None:
        self.supplier_id = supplier_id
        self.project_id = project_id
        self.cause = cause
        super().__init__(f"Notification of supplier {supplier_id} for project {project_id} failed: {cause}")


class JobFailure(EngineError):
    """A queued job failed as a whole."""

    def __init__(self, job_id: int, cause: Optional[BaseException] = None) -> None:
        self.job_id = job_id
        self.cause = cause
        super().__init__(f"Job {job_id} failed: {cause}")
