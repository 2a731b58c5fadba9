"""
Composite supplier rating (0-100).

Five sub-scores (premium, reviews, profile, responsiveness, activity)
minus penalties, persisted per supplier and served through RatingCache.
"""

from .calculator import RatingCalculator

__all__ = ['RatingCalculator']
