"""
Candidate selection for project distribution.

Pool = suppliers serving the project's category or city. Each eligible
supplier scores:

    match (exact 100 / category 50 / city 30)
    + rating bonus (total score / 100 * 40)
    + recency bonus (login within 7d 10, within 30d 5)
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set, Tuple

from supplier_engine.errors import TransientDependencyFailure
from supplier_engine.ports import (
    MembershipRepository,
    ProjectRepository,
    SupplierRepository,
    TotalScoreSource,
)
from supplier_engine.schemas import (
    Exclusion,
    ExclusionReason,
    MatchType,
    ProjectRecord,
    ScoredCandidate,
    SupplierRecord,
    UserRole,
)

logger = logging.getLogger(__name__)


MATCH_BONUS = {
    MatchType.EXACT: 100.0,
    MatchType.CATEGORY: 50.0,
    MatchType.CITY: 30.0,
}
RATING_WEIGHT = 40.0
DEFAULT_MAX_CANDIDATES = 20


def match_type_for(supplier_id: str, category_members: Set[str], city_members: Set[str]) -> MatchType:
    if supplier_id in category_members and supplier_id in city_members:
        return MatchType.EXACT
    if supplier_id in category_members:
        return MatchType.CATEGORY
    return MatchType.CITY


def recency_bonus(last_login_at: Optional[datetime], now: datetime) -> float:
    if last_login_at is None:
        return 0.0
    since_login = now - last_login_at
    if since_login <= timedelta(days=7):
        return 10.0
    if since_login <= timedelta(days=30):
        return 5.0
    return 0.0


def _rank_key(candidate: ScoredCandidate) -> Tuple[float, str]:
    return (-candidate.score, candidate.supplier_id)


class CandidateScorer:
    """
    Selects and explains the suppliers notified about a project.

    Ordering is score descending, then supplier ID ascending, so equal
    scores always come out in the same order.
    """

    def __init__(
        self,
        projects: ProjectRepository,
        memberships: MembershipRepository,
        suppliers: SupplierRepository,
        ratings: TotalScoreSource,
        max_candidates: int = DEFAULT_MAX_CANDIDATES
    ):
        self.projects = projects
        self.memberships = memberships
        self.suppliers = suppliers
        self.ratings = ratings
        self.max_candidates = max_candidates

    async def _load_pool(self, project: ProjectRecord) -> Tuple[Set[str], Set[str], List[SupplierRecord]]:
        category_members = await self.memberships.find_category_members(project.category_id)
        city_members = await self.memberships.find_city_members(project.city_id)
        pool_ids = sorted(category_members | city_members)
        suppliers = await self.suppliers.find_suppliers(pool_ids)
        return category_members, city_members, suppliers

    async def _rating_bonus(self, supplier_id: str) -> float:
        try:
            total = await self.ratings.get_total_score(supplier_id)
        except Exception as e:
            failure = TransientDependencyFailure('rating', e)
            logger.warning(f"⚠️ Rating bonus for supplier {supplier_id} set to 0: {failure}")
            return 0.0
        return (total / 100) * RATING_WEIGHT

    async def _score(
        self,
        supplier: SupplierRecord,
        category_members: Set[str],
        city_members: Set[str],
        now: datetime
    ) -> ScoredCandidate:
        match_type = match_type_for(supplier.id, category_members, city_members)
        rating = await self._rating_bonus(supplier.id)
        recency = recency_bonus(supplier.last_login_at, now)
        return ScoredCandidate(
            supplier_id=supplier.id,
            score=MATCH_BONUS[match_type] + rating + recency,
            match_type=match_type,
            rating_bonus=rating,
            recency_bonus=recency,
        )

    def _top(self, scored: List[ScoredCandidate]) -> List[ScoredCandidate]:
        return sorted(scored, key=_rank_key)[:self.max_candidates]

    async def select_candidates(self, project_id: str, now: Optional[datetime] = None) -> List[ScoredCandidate]:
        """
        Top-N eligible suppliers for a project.

        Raises:
            NotFoundError: project does not exist
        """
        project = await self.projects.find_project(project_id)
        return await self.select_for_project(project, now=now)

    async def select_for_project(
        self,
        project: ProjectRecord,
        now: Optional[datetime] = None
    ) -> List[ScoredCandidate]:
        """Top-N eligible suppliers for an already loaded project."""
        now = now or datetime.utcnow()
        category_members, city_members, suppliers = await self._load_pool(project)

        scored = []
        for supplier in suppliers:
            if not supplier.is_eligible:
                continue
            scored.append(await self._score(supplier, category_members, city_members, now))

        selected = self._top(scored)
        logger.info(
            f"🎯 Project {project.id}: {len(selected)} candidates selected "
            f"from a pool of {len(suppliers)}"
        )
        return selected

    async def relevant_suppliers(self, project_id: str, now: Optional[datetime] = None) -> List[SupplierRecord]:
        """Supplier records of the selected candidates, in score order."""
        selected = await self.select_candidates(project_id, now=now)
        by_id = {s.id: s for s in await self.suppliers.find_suppliers([c.supplier_id for c in selected])}
        return [by_id[c.supplier_id] for c in selected if c.supplier_id in by_id]

    async def explain_exclusions(self, project_id: str, now: Optional[datetime] = None) -> List[Exclusion]:
        """
        Why each pool supplier outside the top-N was left out.

        Every pool supplier is scored, eligible or not. Reasons in priority
        order: inactive, blocked, inactive (wrong role), limit_reached
        (score below the lowest selected score), low_score.

        Raises:
            NotFoundError: project does not exist
        """
        now = now or datetime.utcnow()
        project = await self.projects.find_project(project_id)
        category_members, city_members, suppliers = await self._load_pool(project)

        scored: Dict[str, ScoredCandidate] = {}
        for supplier in suppliers:
            scored[supplier.id] = await self._score(supplier, category_members, city_members, now)

        selected = self._top([scored[s.id] for s in suppliers if s.is_eligible])
        selected_ids = {c.supplier_id for c in selected}
        lowest_selected = selected[-1].score if selected else None

        exclusions = []
        for supplier in suppliers:
            if supplier.id in selected_ids:
                continue
            candidate = scored[supplier.id]

            if not supplier.is_active:
                reason = ExclusionReason.INACTIVE
            elif supplier.is_blocked:
                reason = ExclusionReason.BLOCKED
            elif supplier.role != UserRole.SUPPLIER:
                reason = ExclusionReason.INACTIVE
            elif lowest_selected is not None and candidate.score < lowest_selected:
                reason = ExclusionReason.LIMIT_REACHED
            else:
                reason = ExclusionReason.LOW_SCORE

            exclusions.append(Exclusion(
                supplier_id=supplier.id,
                reason=reason,
                score=candidate.score,
                match_type=candidate.match_type,
            ))

        exclusions.sort(key=lambda e: (-e.score, e.supplier_id))
        return exclusions
