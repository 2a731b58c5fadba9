"""Quote ranking for the customer's bid view."""

from .quote_ranker import QuoteRanker

__all__ = ['QuoteRanker']
