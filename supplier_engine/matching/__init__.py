"""
Candidate matching.

Selects which suppliers hear about a new project and explains who was
left out.
"""

from .candidate_scorer import CandidateScorer

__all__ = ['CandidateScorer']
