"""
Unit tests for candidate selection.

Covers:
- Match bonus (exact / category / city)
- Rating and recency bonuses
- Eligibility filtering
- MAX_CANDIDATES cap and deterministic ordering
- Exclusion reasons
"""

from datetime import timedelta

import pytest

from supplier_engine.errors import NotFoundError
from supplier_engine.matching import CandidateScorer
from supplier_engine.schemas import ExclusionReason, MatchType, UserRole


@pytest.fixture
def scenario(repo):
    """Category C: S1, S2, S3. City T: S2, S3, S4."""
    repo.add_project('p1', category_id='C', city_id='T')
    repo.add_supplier('S1', categories=['C'])
    repo.add_supplier('S2', categories=['C'], cities=['T'])
    repo.add_supplier('S3', categories=['C'], cities=['T'])
    repo.add_supplier('S4', cities=['T'])
    return repo


def make_scorer(repo, ratings, max_candidates=20):
    return CandidateScorer(repo, repo, repo, ratings, max_candidates=max_candidates)


@pytest.mark.unit
class TestSelectCandidates:

    async def test_reference_scenario(self, scenario, fake_ratings, now):
        ratings = fake_ratings({'S1': 80, 'S2': 90, 'S3': 50, 'S4': 70})

        selected = await make_scorer(scenario, ratings).select_candidates('p1', now=now)

        assert [c.supplier_id for c in selected] == ['S2', 'S3', 'S1', 'S4']
        assert [c.score for c in selected] == pytest.approx([136, 120, 82, 58])
        assert [c.match_type for c in selected] == [
            MatchType.EXACT, MatchType.EXACT, MatchType.CATEGORY, MatchType.CITY,
        ]

    async def test_recency_bonus(self, repo, fake_ratings, now):
        repo.add_project('p1')
        repo.add_supplier('week', categories=['C'], last_login_at=now - timedelta(days=7))
        repo.add_supplier('month', categories=['C'], last_login_at=now - timedelta(days=20))
        repo.add_supplier('stale', categories=['C'], last_login_at=now - timedelta(days=31))

        selected = await make_scorer(repo, fake_ratings()).select_candidates('p1', now=now)

        bonuses = {c.supplier_id: c.recency_bonus for c in selected}
        assert bonuses == {'week': 10, 'month': 5, 'stale': 0}

    async def test_ineligible_suppliers_never_selected(self, scenario, fake_ratings, now):
        scenario.add_supplier('inactive', categories=['C'], cities=['T'], is_active=False)
        scenario.add_supplier('blocked', categories=['C'], cities=['T'], is_blocked=True)
        scenario.add_supplier('customer', categories=['C'], cities=['T'], role=UserRole.CUSTOMER)

        selected = await make_scorer(scenario, fake_ratings()).select_candidates('p1', now=now)

        ids = {c.supplier_id for c in selected}
        assert ids == {'S1', 'S2', 'S3', 'S4'}

    async def test_max_candidates(self, repo, fake_ratings, now):
        repo.add_project('p1')
        for i in range(30):
            repo.add_supplier(f's{i:02d}', categories=['C'])
        ratings = fake_ratings({f's{i:02d}': i for i in range(30)})

        selected = await make_scorer(repo, ratings).select_candidates('p1', now=now)

        assert len(selected) == 20
        scores = [c.score for c in selected]
        assert scores == sorted(scores, reverse=True)
        assert selected[0].supplier_id == 's29'

    async def test_ties_broken_by_supplier_id(self, repo, fake_ratings, now):
        repo.add_project('p1')
        for supplier_id in ('c', 'a', 'd', 'b'):
            repo.add_supplier(supplier_id, categories=['C'])

        selected = await make_scorer(repo, fake_ratings(), max_candidates=3).select_candidates('p1', now=now)

        assert [c.supplier_id for c in selected] == ['a', 'b', 'c']

    async def test_rating_failure_scores_zero(self, scenario, fake_ratings, now):
        ratings = fake_ratings({'S1': 80, 'S2': 90, 'S3': 50, 'S4': 70}, failing=['S2'])

        selected = await make_scorer(scenario, ratings).select_candidates('p1', now=now)

        s2 = next(c for c in selected if c.supplier_id == 'S2')
        assert s2.rating_bonus == 0
        assert s2.score == 100

    async def test_empty_pool(self, repo, fake_ratings, now):
        repo.add_project('p1', category_id='nobody', city_id='nowhere')

        assert await make_scorer(repo, fake_ratings()).select_candidates('p1', now=now) == []

    async def test_missing_project(self, repo, fake_ratings):
        with pytest.raises(NotFoundError):
            await make_scorer(repo, fake_ratings()).select_candidates('missing')

    async def test_relevant_suppliers(self, scenario, fake_ratings, now):
        ratings = fake_ratings({'S1': 80, 'S2': 90, 'S3': 50, 'S4': 70})

        suppliers = await make_scorer(scenario, ratings).relevant_suppliers('p1', now=now)

        assert [s.id for s in suppliers] == ['S2', 'S3', 'S1', 'S4']


@pytest.mark.unit
class TestExplainExclusions:

    async def test_reasons(self, scenario, fake_ratings, now):
        scenario.add_supplier('inactive', categories=['C'], is_active=False)
        scenario.add_supplier('blocked', categories=['C'], is_blocked=True)
        scenario.add_supplier('customer', cities=['T'], role=UserRole.CUSTOMER)
        ratings = fake_ratings({'S1': 80, 'S2': 90, 'S3': 50, 'S4': 70})

        exclusions = await make_scorer(scenario, ratings, max_candidates=2).explain_exclusions('p1', now=now)

        reasons = {e.supplier_id: e.reason for e in exclusions}
        assert reasons == {
            'S1': ExclusionReason.LIMIT_REACHED,
            'S4': ExclusionReason.LIMIT_REACHED,
            'inactive': ExclusionReason.INACTIVE,
            'blocked': ExclusionReason.BLOCKED,
            'customer': ExclusionReason.INACTIVE,
        }

    async def test_inactive_takes_priority_over_blocked(self, repo, fake_ratings, now):
        repo.add_project('p1')
        repo.add_supplier('s1', categories=['C'], is_active=False, is_blocked=True)

        exclusions = await make_scorer(repo, fake_ratings()).explain_exclusions('p1', now=now)

        assert exclusions[0].reason == ExclusionReason.INACTIVE

    async def test_tie_with_last_selected_is_low_score(self, repo, fake_ratings, now):
        repo.add_project('p1')
        repo.add_supplier('a', categories=['C'])
        repo.add_supplier('b', categories=['C'])

        exclusions = await make_scorer(repo, fake_ratings(), max_candidates=1).explain_exclusions('p1', now=now)

        assert [(e.supplier_id, e.reason) for e in exclusions] == [('b', ExclusionReason.LOW_SCORE)]

    async def test_selected_suppliers_are_not_explained(self, scenario, fake_ratings, now):
        exclusions = await make_scorer(scenario, fake_ratings()).explain_exclusions('p1', now=now)

        assert exclusions == []
