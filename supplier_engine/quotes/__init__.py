"""Quote lifecycle on top of the quote ranker."""

from .service import QuoteService

__all__ = ['QuoteService']
