"""
SQLAlchemy adapter for the engine's repository ports.

Wraps the unified database.py models and returns pydantic records.
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence, Set

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from database import (
    Database,
    User as UserModel,
    CategorySupplier as CategorySupplierModel,
    CitySupplier as CitySupplierModel,
    MachineSupplier as MachineSupplierModel,
    Portfolio as PortfolioModel,
    PortfolioImage as PortfolioImageModel,
    Review as ReviewModel,
    Project as ProjectModel,
    Quote as QuoteModel,
    SupplierRating as SupplierRatingModel,
)
from supplier_engine.errors import InvalidStateError, NotFoundError
from supplier_engine.schemas import (
    CompositeRating,
    ProjectRecord,
    ProjectStatus,
    QuoteRecord,
    QuoteStatus,
    ReviewRecord,
    SupplierRecord,
    UserRole,
)

logger = logging.getLogger(__name__)

_RATING_FIELDS = (
    'premium_score', 'review_score', 'profile_score', 'response_score',
    'activity_score', 'penalties', 'total_score', 'last_calculated_at',
)


class EngineDB:
    """
    SQLAlchemy implementation of the project, membership, supplier,
    rating and quote repositories.
    """

    def __init__(self, database: Database):
        self.database = database

    # ============================================
    # PROJECTS
    # ============================================

    async def find_project(self, project_id: str) -> ProjectRecord:
        async with self.database.session() as session:
            result = await session.execute(
                select(ProjectModel)
                .options(selectinload(ProjectModel.category), selectinload(ProjectModel.city))
                .where(ProjectModel.id == project_id)
            )
            project = result.scalar_one_or_none()

            if not project:
                raise NotFoundError('Project', project_id)

            return ProjectRecord(
                id=project.id,
                customer_id=project.customer_id,
                category_id=project.category_id,
                city_id=project.city_id,
                title=project.title,
                description=project.description,
                status=project.status,
                category_title=project.category.title if project.category else None,
                city_title=project.city.title if project.city else None,
            )

    async def set_project_status(self, project_id: str, status: ProjectStatus) -> None:
        async with self.database.session() as session:
            result = await session.execute(
                update(ProjectModel)
                .where(ProjectModel.id == project_id)
                .values(status=status.value)
            )
            if result.rowcount == 0:
                raise NotFoundError('Project', project_id)

    # ============================================
    # MEMBERSHIPS
    # ============================================

    async def find_category_members(self, category_id: str) -> Set[str]:
        async with self.database.session() as session:
            result = await session.execute(
                select(CategorySupplierModel.supplier_id)
                .where(CategorySupplierModel.category_id == category_id)
            )
            return set(result.scalars().all())

    async def find_city_members(self, city_id: str) -> Set[str]:
        async with self.database.session() as session:
            result = await session.execute(
                select(CitySupplierModel.supplier_id)
                .where(CitySupplierModel.city_id == city_id)
            )
            return set(result.scalars().all())

    # ============================================
    # SUPPLIERS
    # ============================================

    async def find_supplier(self, supplier_id: str) -> SupplierRecord:
        async with self.database.session() as session:
            user = await session.get(UserModel, supplier_id)
            if not user:
                raise NotFoundError('Supplier', supplier_id)
            return SupplierRecord.model_validate(user)

    async def find_suppliers(self, supplier_ids: Sequence[str]) -> List[SupplierRecord]:
        if not supplier_ids:
            return []

        async with self.database.session() as session:
            result = await session.execute(
                select(UserModel).where(UserModel.id.in_(list(supplier_ids)))
            )
            return [SupplierRecord.model_validate(u) for u in result.scalars().all()]

    async def list_supplier_ids(self) -> List[str]:
        """IDs of every user with role SUPPLIER."""
        async with self.database.session() as session:
            result = await session.execute(
                select(UserModel.id)
                .where(UserModel.role == UserRole.SUPPLIER.value)
                .order_by(UserModel.id)
            )
            return list(result.scalars().all())

    # ============================================
    # RATINGS
    # ============================================

    async def find_rating(self, supplier_id: str) -> Optional[CompositeRating]:
        async with self.database.session() as session:
            result = await session.execute(
                select(SupplierRatingModel).where(SupplierRatingModel.supplier_id == supplier_id)
            )
            row = result.scalar_one_or_none()
            return CompositeRating.model_validate(row) if row else None

    async def upsert_rating(self, rating: CompositeRating) -> CompositeRating:
        """
        Persist a rating.

        Insert first; a concurrent first computation for the same supplier
        surfaces as a unique-constraint violation, in which case the row
        written by the other caller is fetched and updated.
        """
        values = {field: getattr(rating, field) for field in _RATING_FIELDS}

        try:
            async with self.database.session() as session:
                session.add(SupplierRatingModel(supplier_id=rating.supplier_id, **values))
        except IntegrityError:
            logger.info(f"Rating row for supplier {rating.supplier_id} already exists, updating")
            async with self.database.session() as session:
                result = await session.execute(
                    select(SupplierRatingModel).where(SupplierRatingModel.supplier_id == rating.supplier_id)
                )
                row = result.scalar_one()
                for field, value in values.items():
                    setattr(row, field, value)

        return rating

    async def find_reviews(self, supplier_id: str) -> List[ReviewRecord]:
        async with self.database.session() as session:
            result = await session.execute(
                select(ReviewModel)
                .where(ReviewModel.supplier_id == supplier_id)
                .order_by(ReviewModel.created_at.desc())
            )
            return [ReviewRecord.model_validate(r) for r in result.scalars().all()]

    async def count_machines(self, supplier_id: str) -> int:
        async with self.database.session() as session:
            result = await session.execute(
                select(func.count(MachineSupplierModel.id))
                .where(MachineSupplierModel.supplier_id == supplier_id)
            )
            return int(result.scalar_one())

    async def count_portfolio_images(self, supplier_id: str) -> int:
        async with self.database.session() as session:
            result = await session.execute(
                select(func.count(PortfolioImageModel.id))
                .join(PortfolioModel, PortfolioImageModel.portfolio_id == PortfolioModel.id)
                .where(PortfolioModel.supplier_id == supplier_id)
            )
            return int(result.scalar_one())

    async def top_ratings(self, limit: int = 10) -> List[CompositeRating]:
        async with self.database.session() as session:
            result = await session.execute(
                select(SupplierRatingModel)
                .order_by(SupplierRatingModel.total_score.desc(), SupplierRatingModel.supplier_id)
                .limit(limit)
            )
            return [CompositeRating.model_validate(r) for r in result.scalars().all()]

    # ============================================
    # QUOTES
    # ============================================

    async def find_quotes(self, project_id: str) -> List[QuoteRecord]:
        async with self.database.session() as session:
            project = await session.get(ProjectModel, project_id)
            if not project:
                raise NotFoundError('Project', project_id)

            result = await session.execute(
                select(QuoteModel)
                .where(QuoteModel.project_id == project_id)
                .order_by(QuoteModel.created_at, QuoteModel.id)
            )
            return [QuoteRecord.model_validate(q) for q in result.scalars().all()]

    async def find_quote(self, quote_id: str) -> QuoteRecord:
        async with self.database.session() as session:
            quote = await session.get(QuoteModel, quote_id)
            if not quote:
                raise NotFoundError('Quote', quote_id)
            return QuoteRecord.model_validate(quote)

    async def create_quote(
        self,
        project_id: str,
        supplier_id: str,
        price: float,
        delivery_time_days: Optional[int] = None,
        description: Optional[str] = None
    ) -> QuoteRecord:
        """Insert a PENDING quote; a second PENDING quote for the pair is rejected."""
        quote = QuoteModel(
            project_id=project_id,
            supplier_id=supplier_id,
            price=price,
            delivery_time_days=delivery_time_days,
            description=description,
            status=QuoteStatus.PENDING.value,
        )
        try:
            async with self.database.session() as session:
                session.add(quote)
                await session.flush()
                record = QuoteRecord.model_validate(quote)
        except IntegrityError as e:
            raise InvalidStateError(
                f"Supplier {supplier_id} already has a pending quote for project {project_id}"
            ) from e
        return record

    async def transition_quote(
        self,
        quote_id: str,
        from_status: QuoteStatus,
        to_status: QuoteStatus,
        at: Optional[datetime] = None
    ) -> bool:
        """
        Conditional status change of one quote.

        Returns:
            True if the quote was in `from_status` and has been moved
        """
        values = {'status': to_status.value}
        if to_status == QuoteStatus.ACCEPTED:
            values['accepted_at'] = at or datetime.utcnow()
        elif to_status == QuoteStatus.REJECTED:
            values['rejected_at'] = at or datetime.utcnow()

        async with self.database.session() as session:
            result = await session.execute(
                update(QuoteModel)
                .where(QuoteModel.id == quote_id, QuoteModel.status == from_status.value)
                .values(**values)
            )
            return result.rowcount == 1


__all__ = ['EngineDB']
