"""
Interfaces of the engine's external collaborators.

The SQLAlchemy adapter, ConversationMessenger and CacheClient are the
production implementations; tests pass in-memory fakes.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence, Set

from supplier_engine.schemas import (
    CompositeRating,
    ProjectRecord,
    ProjectStatus,
    QuoteRecord,
    QuoteStatus,
    ReviewRecord,
    SupplierRecord,
)


class ProjectRepository(Protocol):
    async def find_project(self, project_id: str) -> ProjectRecord:
        """Raises NotFoundError when the project does not exist."""
        ...


class MembershipRepository(Protocol):
    async def find_category_members(self, category_id: str) -> Set[str]:
        ...

    async def find_city_members(self, city_id: str) -> Set[str]:
        ...


class SupplierRepository(Protocol):
    async def find_supplier(self, supplier_id: str) -> SupplierRecord:
        """Raises NotFoundError when the supplier does not exist."""
        ...

    async def find_suppliers(self, supplier_ids: Sequence[str]) -> List[SupplierRecord]:
        """Unknown IDs are skipped."""
        ...


class RatingRepository(Protocol):
    async def find_rating(self, supplier_id: str) -> Optional[CompositeRating]:
        ...

    async def upsert_rating(self, rating: CompositeRating) -> CompositeRating:
        """Insert, or update the existing row on unique-constraint conflict."""
        ...

    async def find_reviews(self, supplier_id: str) -> List[ReviewRecord]:
        """Every review of the supplier, approved or not."""
        ...

    async def count_machines(self, supplier_id: str) -> int:
        ...

    async def count_portfolio_images(self, supplier_id: str) -> int:
        ...

    async def top_ratings(self, limit: int = 10) -> List[CompositeRating]:
        """Persisted ratings by total score desc, supplier ID asc."""
        ...


class QuoteRepository(ProjectRepository, Protocol):
    async def set_project_status(self, project_id: str, status: ProjectStatus) -> None:
        ...

    async def find_quotes(self, project_id: str) -> List[QuoteRecord]:
        """Raises NotFoundError when the project does not exist."""
        ...

    async def find_quote(self, quote_id: str) -> QuoteRecord:
        ...

    async def create_quote(
        self,
        project_id: str,
        supplier_id: str,
        price: float,
        delivery_time_days: Optional[int] = None,
        description: Optional[str] = None
    ) -> QuoteRecord:
        """Raises InvalidStateError on a second PENDING quote for the pair."""
        ...

    async def transition_quote(
        self,
        quote_id: str,
        from_status: QuoteStatus,
        to_status: QuoteStatus,
        at: Optional[datetime] = None
    ) -> bool:
        """True if the quote was in from_status and has been moved."""
        ...


class TotalScoreSource(Protocol):
    async def get_total_score(self, supplier_id: str) -> float:
        ...


class MessagingPort(Protocol):
    async def get_or_create_conversation(
        self,
        customer_id: str,
        supplier_id: str,
        project_id: Optional[str] = None
    ) -> str:
        ...

    async def send_message(
        self,
        sender_id: str,
        conversation_id: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        ...


class CachePort(Protocol):
    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        ...

    async def delete(self, key: str) -> bool:
        ...

    async def delete_pattern(self, pattern: str) -> int:
        ...
