"""
Comparative scoring of the quotes on one project.

    price     0-30  cheapest 30, most expensive 0
    rating    0-40  supplier total score / 100 * 40 (20 when unavailable)
    delivery  0-20  fastest 20, slowest 0; no estimate 5; nobody estimated 10
    recency   0-10  newest towards 10, oldest 0
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from supplier_engine.errors import TransientDependencyFailure
from supplier_engine.ports import TotalScoreSource
from supplier_engine.schemas import QuoteRecord, RankedQuote

logger = logging.getLogger(__name__)


PRICE_WEIGHT = 30.0
RATING_WEIGHT = 40.0
NEUTRAL_RATING_SCORE = 20.0
DELIVERY_WEIGHT = 20.0
NO_ESTIMATE_SCORE = 5.0
NOBODY_ESTIMATED_SCORE = 10.0
RECENCY_WEIGHT = 10.0


def price_scores(quotes: List[QuoteRecord]) -> List[float]:
    prices = [q.price for q in quotes]
    low, high = min(prices), max(prices)
    spread = high - low
    if spread == 0:
        return [PRICE_WEIGHT] * len(quotes)
    return [PRICE_WEIGHT * (1 - (p - low) / spread) for p in prices]


def delivery_scores(quotes: List[QuoteRecord]) -> List[float]:
    estimates = [q.delivery_time_days for q in quotes if q.delivery_time_days is not None]
    if not estimates:
        return [NOBODY_ESTIMATED_SCORE] * len(quotes)

    fastest, slowest = min(estimates), max(estimates)
    spread = slowest - fastest

    scores = []
    for quote in quotes:
        if quote.delivery_time_days is None:
            scores.append(NO_ESTIMATE_SCORE)
        elif spread == 0:
            scores.append(DELIVERY_WEIGHT)
        else:
            scores.append(DELIVERY_WEIGHT * (1 - (quote.delivery_time_days - fastest) / spread))
    return scores


def recency_scores(quotes: List[QuoteRecord], now: datetime) -> List[float]:
    ages = [max((now - q.created_at).total_seconds(), 0.0) for q in quotes]
    oldest = max(ages)
    if oldest == 0:
        return [RECENCY_WEIGHT] * len(quotes)
    return [RECENCY_WEIGHT * (1 - age / oldest) for age in ages]


class QuoteRanker:
    """
    Orders the bids on a project best-first.

    Depends only on the quotes passed in and each supplier's total score;
    equal totals keep their input order.
    """

    def __init__(self, ratings: TotalScoreSource):
        self.ratings = ratings

    async def _rating_scores(self, quotes: List[QuoteRecord]) -> Dict[str, float]:
        scores: Dict[str, float] = {}
        for quote in quotes:
            if quote.supplier_id in scores:
                continue
            try:
                total = await self.ratings.get_total_score(quote.supplier_id)
                scores[quote.supplier_id] = (total / 100) * RATING_WEIGHT
            except Exception as e:
                failure = TransientDependencyFailure('rating', e)
                logger.warning(f"⚠️ Rating score for supplier {quote.supplier_id} set to neutral: {failure}")
                scores[quote.supplier_id] = NEUTRAL_RATING_SCORE
        return scores

    async def score_quotes(self, quotes: List[QuoteRecord], now: Optional[datetime] = None) -> List[RankedQuote]:
        """Score breakdown of every quote, sorted by total score desc."""
        if not quotes:
            return []

        now = now or datetime.utcnow()
        price = price_scores(quotes)
        delivery = delivery_scores(quotes)
        recency = recency_scores(quotes, now)
        rating = await self._rating_scores(quotes)

        ranked = []
        for i, quote in enumerate(quotes):
            rating_score = rating[quote.supplier_id]
            ranked.append(RankedQuote(
                quote=quote,
                score=round(price[i] + rating_score + delivery[i] + recency[i], 2),
                price_score=round(price[i], 2),
                rating_score=round(rating_score, 2),
                delivery_score=round(delivery[i], 2),
                recency_score=round(recency[i], 2),
            ))

        # sorted() is stable, ties keep input order
        return sorted(ranked, key=lambda r: -r.score)

    async def rank(self, quotes: List[QuoteRecord], now: Optional[datetime] = None) -> List[QuoteRecord]:
        """Same quotes, best first."""
        return [r.quote for r in await self.score_quotes(quotes, now=now)]
