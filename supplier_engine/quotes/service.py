"""
Quote lifecycle: submit, accept, reject, withdraw, ranking and stats.

Accepting a quote is a sequence of independent per-entity writes
(reject pending siblings, accept, move project to IN_PROGRESS). Each
write is a conditional status change, so a retried accept converges.
"""

import logging
from datetime import datetime
from typing import List, Optional

from supplier_engine.errors import ForbiddenError, InvalidStateError
from supplier_engine.notifications.messenger import format_quote_message
from supplier_engine.ports import MessagingPort, QuoteRepository
from supplier_engine.ranking import QuoteRanker
from supplier_engine.schemas import (
    ProjectStatus,
    QuoteRecord,
    QuoteStats,
    QuoteStatus,
    RankedQuote,
)

logger = logging.getLogger(__name__)


class QuoteService:

    def __init__(
        self,
        repo: QuoteRepository,
        ranker: QuoteRanker,
        messenger: Optional[MessagingPort] = None
    ):
        self.repo = repo
        self.ranker = ranker
        self.messenger = messenger

    async def submit(
        self,
        project_id: str,
        supplier_id: str,
        price: float,
        delivery_time_days: Optional[int] = None,
        description: Optional[str] = None
    ) -> QuoteRecord:
        """
        Create a PENDING quote and post it to the customer's conversation.

        Raises:
            NotFoundError: project does not exist
            InvalidStateError: project no longer takes quotes, or the
                supplier already has a pending quote on it
            ValueError: non-positive price or delivery time
        """
        if price <= 0:
            raise ValueError("price must be positive")
        if delivery_time_days is not None and delivery_time_days <= 0:
            raise ValueError("delivery_time_days must be positive")

        project = await self.repo.find_project(project_id)
        if project.status != ProjectStatus.PENDING:
            raise InvalidStateError(f"Project {project_id} is not accepting quotes ({project.status.value})")

        quote = await self.repo.create_quote(
            project_id, supplier_id, price,
            delivery_time_days=delivery_time_days,
            description=description,
        )
        logger.info(f"💼 Quote {quote.id} submitted by {supplier_id} for project {project_id}")

        if self.messenger is not None:
            # The quote stands even if the customer message fails
            try:
                conversation_id = await self.messenger.get_or_create_conversation(
                    project.customer_id, supplier_id, project_id
                )
                content, metadata = format_quote_message(project, quote)
                await self.messenger.send_message(supplier_id, conversation_id, content, metadata)
            except Exception as e:
                logger.error(f"❌ Quote message for quote {quote.id} failed: {e}")

        return quote

    async def accept(self, quote_id: str, customer_id: str) -> QuoteRecord:
        """
        Accept a quote as the project owner.

        Raises:
            NotFoundError: quote or project does not exist
            ForbiddenError: caller does not own the project
            InvalidStateError: quote is not PENDING
        """
        quote = await self.repo.find_quote(quote_id)
        project = await self.repo.find_project(quote.project_id)

        if project.customer_id != customer_id:
            raise ForbiddenError(f"Customer {customer_id} cannot accept quotes on project {project.id}")
        if quote.status != QuoteStatus.PENDING:
            raise InvalidStateError(f"Quote {quote_id} is already {quote.status.value}")

        now = datetime.utcnow()

        rejected = 0
        for sibling in await self.repo.find_quotes(project.id):
            if sibling.id == quote_id or sibling.status != QuoteStatus.PENDING:
                continue
            if await self.repo.transition_quote(sibling.id, QuoteStatus.PENDING, QuoteStatus.REJECTED, at=now):
                rejected += 1

        if not await self.repo.transition_quote(quote_id, QuoteStatus.PENDING, QuoteStatus.ACCEPTED, at=now):
            current = await self.repo.find_quote(quote_id)
            if current.status != QuoteStatus.ACCEPTED:
                raise InvalidStateError(f"Quote {quote_id} is already {current.status.value}")

        await self.repo.set_project_status(project.id, ProjectStatus.IN_PROGRESS)

        logger.info(f"✅ Quote {quote_id} accepted, {rejected} sibling quotes rejected")
        return await self.repo.find_quote(quote_id)

    async def reject(self, quote_id: str, customer_id: str) -> QuoteRecord:
        quote = await self.repo.find_quote(quote_id)
        project = await self.repo.find_project(quote.project_id)

        if project.customer_id != customer_id:
            raise ForbiddenError(f"Customer {customer_id} cannot reject quotes on project {project.id}")

        if not await self.repo.transition_quote(quote_id, QuoteStatus.PENDING, QuoteStatus.REJECTED):
            raise InvalidStateError(f"Quote {quote_id} is not pending")

        return await self.repo.find_quote(quote_id)

    async def withdraw(self, quote_id: str, supplier_id: str) -> QuoteRecord:
        quote = await self.repo.find_quote(quote_id)

        if quote.supplier_id != supplier_id:
            raise ForbiddenError(f"Supplier {supplier_id} cannot withdraw quote {quote_id}")

        if not await self.repo.transition_quote(quote_id, QuoteStatus.PENDING, QuoteStatus.WITHDRAWN):
            raise InvalidStateError(f"Quote {quote_id} is not pending")

        return await self.repo.find_quote(quote_id)

    async def ranked_quotes(self, project_id: str, now: Optional[datetime] = None) -> List[RankedQuote]:
        """All quotes on a project with their score breakdown, best first."""
        quotes = await self.repo.find_quotes(project_id)
        return await self.ranker.score_quotes(quotes, now=now)

    async def stats(self, project_id: str) -> QuoteStats:
        quotes = await self.repo.find_quotes(project_id)
        prices = [q.price for q in quotes]

        return QuoteStats(
            total=len(quotes),
            pending=len([q for q in quotes if q.status == QuoteStatus.PENDING]),
            accepted=len([q for q in quotes if q.status == QuoteStatus.ACCEPTED]),
            rejected=len([q for q in quotes if q.status == QuoteStatus.REJECTED]),
            average_price=sum(prices) / len(prices) if prices else 0,
            min_price=min(prices) if prices else 0,
            max_price=max(prices) if prices else 0,
        )
