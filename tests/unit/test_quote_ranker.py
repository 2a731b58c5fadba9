"""
Unit tests for QuoteRanker.

Covers:
- Price, rating, delivery and recency components
- Neutral defaults (missing rating, missing delivery estimate)
- Ordering is a stable permutation of the input
"""

from datetime import timedelta

import pytest

from supplier_engine.ranking import QuoteRanker
from supplier_engine.schemas import QuoteRecord


def make_quote(quote_id, supplier_id, price, created_at, delivery=None):
    return QuoteRecord(
        id=quote_id,
        project_id='p1',
        supplier_id=supplier_id,
        price=price,
        delivery_time_days=delivery,
        created_at=created_at,
    )


@pytest.fixture
def scenario_quotes(now):
    created = now - timedelta(hours=1)
    return [
        make_quote('q1', 's1', 1_000_000, created, delivery=5),
        make_quote('q2', 's2', 1_200_000, created, delivery=3),
        make_quote('q3', 's3', 1_100_000, created, delivery=10),
    ]


@pytest.mark.unit
class TestComponents:

    async def test_reference_scenario(self, scenario_quotes, fake_ratings, now):
        ranker = QuoteRanker(fake_ratings({'s1': 80, 's2': 90, 's3': 60}))

        ranked = await ranker.score_quotes(scenario_quotes, now=now)
        by_id = {r.quote.id: r for r in ranked}

        assert [by_id[q].price_score for q in ('q1', 'q2', 'q3')] == [30, 0, 15]
        assert [by_id[q].rating_score for q in ('q1', 'q2', 'q3')] == [32, 36, 24]
        assert [by_id[q].delivery_score for q in ('q1', 'q2', 'q3')] == [14.29, 20, 0]
        assert [by_id[q].recency_score for q in ('q1', 'q2', 'q3')] == [0, 0, 0]
        assert [r.quote.id for r in ranked] == ['q1', 'q2', 'q3']
        assert by_id['q1'].score == 76.29

    async def test_two_prices(self, fake_ratings, now):
        quotes = [
            make_quote('cheap', 's1', 1_000_000, now),
            make_quote('pricey', 's2', 1_200_000, now),
        ]

        ranked = await QuoteRanker(fake_ratings()).score_quotes(quotes, now=now)
        by_id = {r.quote.id: r for r in ranked}

        assert by_id['cheap'].price_score == 30
        assert by_id['pricey'].price_score == 0

    async def test_equal_prices(self, fake_ratings, now):
        quotes = [make_quote(f'q{i}', f's{i}', 500, now) for i in range(3)]

        ranked = await QuoteRanker(fake_ratings()).score_quotes(quotes, now=now)

        assert all(r.price_score == 30 for r in ranked)

    async def test_missing_rating_is_neutral(self, fake_ratings, now):
        quotes = [make_quote('q1', 's1', 100, now)]

        ranked = await QuoteRanker(fake_ratings(failing=['s1'])).score_quotes(quotes, now=now)

        assert ranked[0].rating_score == 20

    async def test_delivery_defaults(self, fake_ratings, now):
        quotes = [
            make_quote('fast', 's1', 100, now, delivery=2),
            make_quote('slow', 's2', 100, now, delivery=6),
            make_quote('unknown', 's3', 100, now),
        ]

        ranked = await QuoteRanker(fake_ratings()).score_quotes(quotes, now=now)
        by_id = {r.quote.id: r for r in ranked}

        assert by_id['fast'].delivery_score == 20
        assert by_id['slow'].delivery_score == 0
        assert by_id['unknown'].delivery_score == 5

    async def test_nobody_estimated_delivery(self, fake_ratings, now):
        quotes = [make_quote('q1', 's1', 100, now), make_quote('q2', 's2', 200, now)]

        ranked = await QuoteRanker(fake_ratings()).score_quotes(quotes, now=now)

        assert all(r.delivery_score == 10 for r in ranked)

    async def test_single_estimate_scores_full(self, fake_ratings, now):
        quotes = [make_quote('q1', 's1', 100, now, delivery=4)]

        ranked = await QuoteRanker(fake_ratings()).score_quotes(quotes, now=now)

        assert ranked[0].delivery_score == 20

    async def test_recency(self, fake_ratings, now):
        quotes = [
            make_quote('old', 's1', 100, now - timedelta(hours=2)),
            make_quote('mid', 's2', 100, now - timedelta(hours=1)),
            make_quote('new', 's3', 100, now),
        ]

        ranked = await QuoteRanker(fake_ratings()).score_quotes(quotes, now=now)
        by_id = {r.quote.id: r for r in ranked}

        assert by_id['old'].recency_score == 0
        assert by_id['mid'].recency_score == 5
        assert by_id['new'].recency_score == 10


@pytest.mark.unit
class TestRank:

    async def test_empty(self, fake_ratings):
        assert await QuoteRanker(fake_ratings()).rank([]) == []

    async def test_permutation(self, scenario_quotes, fake_ratings, now):
        ranked = await QuoteRanker(fake_ratings({'s2': 100})).rank(scenario_quotes, now=now)

        assert len(ranked) == len(scenario_quotes)
        assert {q.id for q in ranked} == {q.id for q in scenario_quotes}

    async def test_ties_keep_input_order(self, fake_ratings, now):
        quotes = [make_quote(f'q{i}', f's{i}', 100, now) for i in (3, 1, 2)]

        ranked = await QuoteRanker(fake_ratings()).rank(quotes, now=now)

        assert [q.id for q in ranked] == ['q3', 'q1', 'q2']

    async def test_rating_looked_up_once_per_supplier(self, fake_ratings, now):
        ratings = fake_ratings({'s1': 50})
        quotes = [make_quote('q1', 's1', 100, now), make_quote('q2', 's1', 120, now)]

        await QuoteRanker(ratings).rank(quotes, now=now)

        assert ratings.calls == ['s1']
