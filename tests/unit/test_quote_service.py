"""
Unit tests for the quote lifecycle on SQLite.

Covers:
- Submission rules (project status, one pending quote per supplier)
- Accept rejects pending siblings and starts the project
- Ownership checks
- Ranked quotes and stats
"""

import pytest

from database import Category, City, Project, User
from supplier_engine.database import EngineDB
from supplier_engine.errors import ForbiddenError, InvalidStateError, NotFoundError
from supplier_engine.quotes import QuoteService
from supplier_engine.ranking import QuoteRanker
from supplier_engine.schemas import ProjectStatus, QuoteStatus


@pytest.fixture
async def engine_db(db):
    async with db.session() as session:
        session.add_all([
            User(id='cust', role='CUSTOMER'),
            User(id='s1', role='SUPPLIER'),
            User(id='s2', role='SUPPLIER'),
            User(id='s3', role='SUPPLIER'),
            Category(id='cat', title='Welding'),
            City(id='city', title='Isfahan'),
        ])
        await session.flush()
        session.add(Project(id='p1', customer_id='cust', category_id='cat', city_id='city', title='Gate'))
    return EngineDB(db)


@pytest.fixture
def service(engine_db, fake_ratings, fake_messenger):
    return QuoteService(engine_db, QuoteRanker(fake_ratings({'s1': 80, 's2': 90, 's3': 60})), fake_messenger())


@pytest.mark.unit
class TestSubmit:

    async def test_submit(self, service):
        quote = await service.submit('p1', 's1', 1000, delivery_time_days=5, description='Galvanised')

        assert quote.status == QuoteStatus.PENDING
        assert quote.delivery_time_days == 5

    async def test_quote_message_sent_to_customer(self, service):
        quote = await service.submit('p1', 's1', 1000)

        sent = service.messenger.sent
        assert len(sent) == 1
        assert sent[0]['sender_id'] == 's1'
        assert sent[0]['metadata']['type'] == 'quote'
        assert sent[0]['metadata']['quoteId'] == quote.id
        assert ('cust', 's1', 'p1') in service.messenger.conversations

    async def test_message_failure_keeps_quote(self, engine_db, fake_ratings, fake_messenger):
        service = QuoteService(engine_db, QuoteRanker(fake_ratings()), fake_messenger(failing=['s1']))

        quote = await service.submit('p1', 's1', 1000)

        assert (await engine_db.find_quote(quote.id)).status == QuoteStatus.PENDING

    async def test_second_pending_quote_rejected(self, service):
        await service.submit('p1', 's1', 1000)

        with pytest.raises(InvalidStateError):
            await service.submit('p1', 's1', 950)

    async def test_project_must_be_pending(self, service, engine_db):
        await engine_db.set_project_status('p1', ProjectStatus.IN_PROGRESS)

        with pytest.raises(InvalidStateError):
            await service.submit('p1', 's1', 1000)

    async def test_missing_project(self, service):
        with pytest.raises(NotFoundError):
            await service.submit('nope', 's1', 1000)

    async def test_price_must_be_positive(self, service):
        with pytest.raises(ValueError):
            await service.submit('p1', 's1', 0)


@pytest.mark.unit
class TestAcceptRejectWithdraw:

    async def test_accept_rejects_siblings(self, service, engine_db):
        q1 = await service.submit('p1', 's1', 1000)
        q2 = await service.submit('p1', 's2', 1100)
        q3 = await service.submit('p1', 's3', 1200)
        await service.withdraw(q3.id, 's3')

        accepted = await service.accept(q1.id, 'cust')

        assert accepted.status == QuoteStatus.ACCEPTED
        assert (await engine_db.find_quote(q2.id)).status == QuoteStatus.REJECTED
        assert (await engine_db.find_quote(q3.id)).status == QuoteStatus.WITHDRAWN
        assert (await engine_db.find_project('p1')).status == ProjectStatus.IN_PROGRESS

    async def test_only_owner_accepts(self, service):
        quote = await service.submit('p1', 's1', 1000)

        with pytest.raises(ForbiddenError):
            await service.accept(quote.id, 's2')

    async def test_accept_twice(self, service):
        q1 = await service.submit('p1', 's1', 1000)
        q2 = await service.submit('p1', 's2', 1100)
        await service.accept(q1.id, 'cust')

        with pytest.raises(InvalidStateError):
            await service.accept(q2.id, 'cust')

    async def test_reject(self, service):
        quote = await service.submit('p1', 's1', 1000)

        rejected = await service.reject(quote.id, 'cust')

        assert rejected.status == QuoteStatus.REJECTED
        with pytest.raises(InvalidStateError):
            await service.reject(quote.id, 'cust')

    async def test_withdraw_own_quote_only(self, service):
        quote = await service.submit('p1', 's1', 1000)

        with pytest.raises(ForbiddenError):
            await service.withdraw(quote.id, 's2')

        assert (await service.withdraw(quote.id, 's1')).status == QuoteStatus.WITHDRAWN


@pytest.mark.unit
class TestRankingAndStats:

    async def test_ranked_quotes(self, service):
        await service.submit('p1', 's1', 1_000_000, delivery_time_days=5)
        await service.submit('p1', 's2', 1_200_000, delivery_time_days=3)
        await service.submit('p1', 's3', 1_100_000, delivery_time_days=10)

        ranked = await service.ranked_quotes('p1')

        assert len(ranked) == 3
        assert ranked[0].quote.supplier_id == 's1'
        scores = [r.score for r in ranked]
        assert scores == sorted(scores, reverse=True)

    async def test_stats(self, service):
        q1 = await service.submit('p1', 's1', 1000)
        await service.submit('p1', 's2', 2000)
        await service.submit('p1', 's3', 3000)
        await service.accept(q1.id, 'cust')

        stats = await service.stats('p1')

        assert stats.total == 3
        assert stats.accepted == 1
        assert stats.rejected == 2
        assert stats.pending == 0
        assert stats.average_price == 2000
        assert stats.min_price == 1000
        assert stats.max_price == 3000

    async def test_stats_without_quotes(self, service):
        stats = await service.stats('p1')

        assert stats.total == 0
        assert stats.average_price == 0
