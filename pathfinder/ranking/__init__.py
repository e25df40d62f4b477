"""Ranking, search and pagination of scored candidates."""

from .ranker import PagedResult, rank

__all__ = ["PagedResult", "rank"]
