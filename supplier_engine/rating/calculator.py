"""
Composite supplier rating.

total = max(0, premium + review + profile + response + activity - penalties)

Sub-score maxima: premium 30, review 25, profile 20, response 15,
activity 10, so the total stays within [0, 100].
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from supplier_engine.cache import RatingCache
from supplier_engine.errors import NotFoundError
from supplier_engine.ports import RatingRepository, SupplierRepository
from supplier_engine.schemas import (
    CompositeRating,
    PremiumTier,
    ReviewRecord,
    SupplierRecord,
    UserRole,
)

logger = logging.getLogger(__name__)


PREMIUM_POINTS = {
    PremiumTier.GOLD: 30.0,
    PremiumTier.SILVER: 24.0,
    PremiumTier.BRONZE: 18.0,
}

# Profile completeness
WORKSHOP_NAME_POINTS = 2.5
WORKSHOP_ADDRESS_POINTS = 2.5
PROFILE_IMAGE_POINTS = 1.5
COVER_IMAGE_POINTS = 1.5
MACHINES_MAX_POINTS = 2.4
MACHINES_FULL_AT = 5
# Reserved until a supplier-materials source exists
MATERIALS_POINTS = 0.0
GALLERY_MAX_POINTS = 8.0
GALLERY_FULL_AT = 3

RESPONSE_WINDOW_HOURS = 12
ACTIVITY_MAX = 10.0
INACTIVITY_DAYS = 90


def _round(value: float) -> float:
    return round(value, 2)


def _published(reviews: List[ReviewRecord]) -> List[ReviewRecord]:
    return [r for r in reviews if r.is_approved and not r.is_deleted]


# ============================================
# SUB-SCORES
# ============================================

def premium_score(supplier: SupplierRecord) -> float:
    """Premium tier, max 30."""
    return PREMIUM_POINTS.get(supplier.premium_level, 0.0)


def review_score(reviews: List[ReviewRecord]) -> float:
    """
    Review quality and volume, max 25.

    Average rating contributes up to 17.5, review count 0.75 per review
    up to 7.5. Only approved, non-deleted reviews count.
    """
    published = _published(reviews)
    if not published:
        return 0.0

    avg_rating = sum(r.rating for r in published) / len(published)
    avg_component = (avg_rating / 5) * 17.5
    count_component = min(len(published) * 0.75, 7.5)
    return _round(avg_component + count_component)


def profile_score(supplier: SupplierRecord, machine_count: int, gallery_images: int) -> float:
    """Profile completeness, max 20 (18.4 reachable while materials score 0)."""
    score = 0.0

    if supplier.workshop_name:
        score += WORKSHOP_NAME_POINTS
    if supplier.workshop_address:
        score += WORKSHOP_ADDRESS_POINTS
    if supplier.profile_image_url:
        score += PROFILE_IMAGE_POINTS
    if supplier.cover_image_url:
        score += COVER_IMAGE_POINTS

    score += MACHINES_MAX_POINTS * min(max(machine_count, 0), MACHINES_FULL_AT) / MACHINES_FULL_AT
    score += MATERIALS_POINTS
    score += GALLERY_MAX_POINTS * min(max(gallery_images, 0), GALLERY_FULL_AT) / GALLERY_FULL_AT

    return _round(score)


def response_score(reviews: List[ReviewRecord]) -> float:
    """
    Responsiveness, max 15.

    Averages the response time of published reviews answered within 12h:
    under 2h -> 15, under 12h -> 10, no qualifying review -> 0.
    """
    qualifying = [
        r.response_time_hours for r in _published(reviews)
        if r.response_time_hours is not None and r.response_time_hours < RESPONSE_WINDOW_HOURS
    ]
    if not qualifying:
        return 0.0

    avg_response = sum(qualifying) / len(qualifying)
    if avg_response < 2:
        return 15.0
    if avg_response < RESPONSE_WINDOW_HOURS:
        return 10.0
    return 0.0


def activity_score(reviews: List[ReviewRecord], last_login_at: Optional[datetime], now: datetime) -> float:
    """
    Activity, max 10.

    +3 when the supplier has any review at all (review age is not checked),
    plus login recency: <=7d 7, <=30d 5, <=90d 3, older or never 1.
    """
    score = 0.0

    if reviews:
        score += 3

    if last_login_at is None:
        score += 1
    else:
        since_login = now - last_login_at
        if since_login <= timedelta(days=7):
            score += 7
        elif since_login <= timedelta(days=30):
            score += 5
        elif since_login <= timedelta(days=90):
            score += 3
        else:
            score += 1

    return min(score, ACTIVITY_MAX)


def penalties(reviews: List[ReviewRecord], now: datetime) -> float:
    """
    Penalties (unbounded, subtracted from the sum).

    - average published rating below 2: +30
    - response rate (published reviews with a response time / published
      reviews) below 0.5: +20; no published reviews counts as rate 1
    - no review newer than 90 days, or no review at all: +40
    """
    total = 0.0
    published = _published(reviews)

    if published:
        avg_rating = sum(r.rating for r in published) / len(published)
        if avg_rating < 2:
            total += 30

    responded = len([r for r in published if r.response_time_hours is not None])
    response_rate = responded / len(published) if published else 1.0
    if response_rate < 0.5:
        total += 20

    latest = max((r.created_at for r in reviews), default=None)
    if latest is None or latest < now - timedelta(days=INACTIVITY_DAYS):
        total += 40

    return total


# ============================================
# CALCULATOR
# ============================================

class RatingCalculator:
    """
    Computes, persists and serves composite ratings.

    `get_total_score` is the cache-aside entry point used during fan-out
    and quote ranking.
    """

    def __init__(
        self,
        suppliers: SupplierRepository,
        ratings: RatingRepository,
        cache: Optional[RatingCache] = None
    ):
        self.suppliers = suppliers
        self.ratings = ratings
        self.cache = cache

    async def calculate(self, supplier_id: str, now: Optional[datetime] = None) -> CompositeRating:
        """
        Recompute and persist the composite rating of one supplier.

        Raises:
            NotFoundError: supplier missing or not a SUPPLIER
        """
        now = now or datetime.utcnow()

        supplier = await self.suppliers.find_supplier(supplier_id)
        if supplier.role != UserRole.SUPPLIER:
            raise NotFoundError('Supplier', supplier_id)

        reviews = await self.ratings.find_reviews(supplier_id)
        machines = await self.ratings.count_machines(supplier_id)
        gallery = await self.ratings.count_portfolio_images(supplier_id)

        rating = CompositeRating(
            supplier_id=supplier_id,
            premium_score=premium_score(supplier),
            review_score=review_score(reviews),
            profile_score=profile_score(supplier, machines, gallery),
            response_score=response_score(reviews),
            activity_score=activity_score(reviews, supplier.last_login_at, now),
            penalties=penalties(reviews, now),
            last_calculated_at=now,
        )
        subtotal = (
            rating.premium_score + rating.review_score + rating.profile_score
            + rating.response_score + rating.activity_score
        )
        rating.total_score = max(0.0, _round(subtotal - rating.penalties))

        logger.debug(
            f"Rating for {supplier_id}: total={rating.total_score} "
            f"(premium={rating.premium_score}, review={rating.review_score}, "
            f"profile={rating.profile_score}, response={rating.response_score}, "
            f"activity={rating.activity_score}, penalties={rating.penalties})"
        )

        return await self.ratings.upsert_rating(rating)

    async def get(self, supplier_id: str) -> CompositeRating:
        """Persisted rating, computed on first access."""
        rating = await self.ratings.find_rating(supplier_id)
        if rating is None:
            rating = await self.calculate(supplier_id)
        return rating

    async def get_total_score(self, supplier_id: str) -> float:
        """Total score through the rating cache."""
        if self.cache is not None:
            cached = await self.cache.get_cached_score(supplier_id)
            if cached is not None:
                return cached

        rating = await self.get(supplier_id)

        if self.cache is not None:
            await self.cache.put(supplier_id, rating.total_score)
        return rating.total_score

    async def recalculate(self, supplier_id: str) -> CompositeRating:
        """Recompute and refresh the cached score."""
        rating = await self.calculate(supplier_id)
        if self.cache is not None:
            await self.cache.put(supplier_id, rating.total_score)
        return rating

    async def recalculate_all(self, supplier_ids: List[str]) -> Dict[str, int]:
        """
        Recompute every given supplier; one failure never stops the sweep.

        Returns:
            {'updated': int, 'failed': int}
        """
        stats = {'updated': 0, 'failed': 0}

        for supplier_id in supplier_ids:
            try:
                await self.recalculate(supplier_id)
                stats['updated'] += 1
            except Exception as e:
                stats['failed'] += 1
                logger.warning(f"⚠️ Rating recalculation failed for supplier {supplier_id}: {e}")

        logger.info(f"✅ Ratings recalculated: {stats['updated']} updated, {stats['failed']} failed")
        return stats

    async def top_suppliers(self, limit: int = 10) -> List[CompositeRating]:
        return await self.ratings.top_ratings(limit)
