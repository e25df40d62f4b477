"""Relevancy scoring for discovered candidates."""

from .scorer import score_candidate, score_candidates
from .weights import DEFAULT_SCORE_WEIGHTS, ScoreWeights

__all__ = ["DEFAULT_SCORE_WEIGHTS", "ScoreWeights", "score_candidate", "score_candidates"]
