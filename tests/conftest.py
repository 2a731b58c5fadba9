"""
Shared fixtures: an in-memory SQLite database and in-memory fakes of the
engine's repository, rating and messaging collaborators.
"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence, Set

import pytest

from database import Database
from supplier_engine.errors import NotFoundError
from supplier_engine.schemas import (
    CompositeRating,
    ProjectRecord,
    ReviewRecord,
    SupplierRecord,
)


NOW = datetime(2026, 10, 17, 12, 0, 0)


@pytest.fixture
async def db():
    """Fresh in-memory database per test."""
    database = Database('sqlite+aiosqlite:///:memory:')
    await database.init(create_tables=True)
    yield database
    await database.close()


class FakeRepo:
    """In-memory project, membership, supplier and rating repository."""

    def __init__(self):
        self.projects: Dict[str, ProjectRecord] = {}
        self.suppliers: Dict[str, SupplierRecord] = {}
        self.category_members: Dict[str, Set[str]] = {}
        self.city_members: Dict[str, Set[str]] = {}
        self.reviews: Dict[str, List[ReviewRecord]] = {}
        self.machines: Dict[str, int] = {}
        self.gallery: Dict[str, int] = {}
        self.ratings: Dict[str, CompositeRating] = {}
        self.upserts = 0
        self.project_lookups = 0

    def add_project(self, project_id='p1', category_id='C', city_id='T', **kwargs) -> ProjectRecord:
        fields = dict(
            id=project_id,
            customer_id='customer-1',
            category_id=category_id,
            city_id=city_id,
            title='Laser-cut steel brackets',
            description='200 brackets, 3mm steel, powder coated',
            category_title='Laser cutting',
            city_title='Tehran',
        )
        fields.update(kwargs)
        project = ProjectRecord(**fields)
        self.projects[project_id] = project
        return project

    def add_supplier(self, supplier_id: str, categories=(), cities=(), **kwargs) -> SupplierRecord:
        supplier = SupplierRecord(id=supplier_id, **kwargs)
        self.suppliers[supplier_id] = supplier
        for category_id in categories:
            self.category_members.setdefault(category_id, set()).add(supplier_id)
        for city_id in cities:
            self.city_members.setdefault(city_id, set()).add(supplier_id)
        return supplier

    async def find_project(self, project_id: str) -> ProjectRecord:
        self.project_lookups += 1
        if project_id not in self.projects:
            raise NotFoundError('Project', project_id)
        return self.projects[project_id]

    async def find_category_members(self, category_id: str) -> Set[str]:
        return set(self.category_members.get(category_id, set()))

    async def find_city_members(self, city_id: str) -> Set[str]:
        return set(self.city_members.get(city_id, set()))

    async def find_supplier(self, supplier_id: str) -> SupplierRecord:
        if supplier_id not in self.suppliers:
            raise NotFoundError('Supplier', supplier_id)
        return self.suppliers[supplier_id]

    async def find_suppliers(self, supplier_ids: Sequence[str]) -> List[SupplierRecord]:
        return [self.suppliers[i] for i in supplier_ids if i in self.suppliers]

    async def find_rating(self, supplier_id: str) -> Optional[CompositeRating]:
        return self.ratings.get(supplier_id)

    async def upsert_rating(self, rating: CompositeRating) -> CompositeRating:
        self.upserts += 1
        self.ratings[rating.supplier_id] = rating
        return rating

    async def find_reviews(self, supplier_id: str) -> List[ReviewRecord]:
        return list(self.reviews.get(supplier_id, []))

    async def count_machines(self, supplier_id: str) -> int:
        return self.machines.get(supplier_id, 0)

    async def count_portfolio_images(self, supplier_id: str) -> int:
        return self.gallery.get(supplier_id, 0)

    async def top_ratings(self, limit: int = 10) -> List[CompositeRating]:
        ordered = sorted(self.ratings.values(), key=lambda r: (-r.total_score, r.supplier_id))
        return ordered[:limit]


class FakeRatings:
    """Fixed total scores; IDs in `failing` raise on lookup."""

    def __init__(self, scores: Optional[Dict[str, float]] = None, failing: Sequence[str] = ()):
        self.scores = dict(scores or {})
        self.failing = set(failing)
        self.calls: List[str] = []

    async def get_total_score(self, supplier_id: str) -> float:
        self.calls.append(supplier_id)
        if supplier_id in self.failing:
            raise ConnectionError("rating store unavailable")
        return self.scores.get(supplier_id, 0.0)


class FakeMessenger:
    """Records sends; suppliers in `failing` raise on conversation lookup."""

    def __init__(self, failing: Sequence[str] = ()):
        self.failing = set(failing)
        self.conversations: Dict[tuple, str] = {}
        self.sent: List[dict] = []

    async def get_or_create_conversation(self, customer_id, supplier_id, project_id=None) -> str:
        if supplier_id in self.failing:
            raise ConnectionError(f"messaging down for {supplier_id}")
        key = (customer_id, supplier_id, project_id)
        if key not in self.conversations:
            self.conversations[key] = f"conv-{len(self.conversations) + 1}"
        return self.conversations[key]

    async def send_message(self, sender_id, conversation_id, content, metadata=None) -> str:
        self.sent.append({
            'sender_id': sender_id,
            'conversation_id': conversation_id,
            'content': content,
            'metadata': metadata,
        })
        return f"msg-{len(self.sent)}"


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def repo():
    return FakeRepo()


@pytest.fixture
def fake_ratings():
    """Factory: fake_ratings({'S1': 80}, failing=['S2'])."""
    return FakeRatings


@pytest.fixture
def fake_messenger():
    """Factory: fake_messenger(failing=['S3'])."""
    return FakeMessenger
