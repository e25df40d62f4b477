"""Sort, search and paginate scored candidates."""

from dataclasses import dataclass
import math

from ..discovery.config import DEFAULT_DISCOVERY_CONFIG, DiscoveryConfig
from ..discovery.types import Candidate
from ..errors import ValidationError
from ..text import contains_term, fold

SORT_KEYS = ("relevancy", "followers", "name")


@dataclass(frozen=True)
class PagedResult:
    items: tuple[Candidate, ...]
    total: int
    page: int
    page_size: int
    total_pages: int


def _relevancy_key(candidate: Candidate) -> tuple[float, int, str]:
    return (
        -candidate.relevancy_score,
        -candidate.person.followers_count,
        candidate.user_id,
    )


def _followers_key(candidate: Candidate) -> tuple[int, str]:
    return (-candidate.person.followers_count, candidate.user_id)


def _name_key(candidate: Candidate) -> tuple[str, str]:
    return (fold(candidate.person.name or candidate.person.screen_name), candidate.user_id)


_SORTERS = {
    "relevancy": _relevancy_key,
    "followers": _followers_key,
    "name": _name_key,
}


def sort_candidates(candidates: list[Candidate], sort_key: str = "relevancy") -> list[Candidate]:
    """Sort with a user id tie-break so repeated calls agree."""
    sorter = _SORTERS.get((sort_key or "").strip().lower())
    if sorter is None:
        raise ValidationError(
            f"unknown sort key {sort_key!r}; expected one of {', '.join(SORT_KEYS)}"
        )
    return sorted(candidates, key=sorter)


def searchable_text(candidate: Candidate) -> list[str | None]:
    """Every string a search term may match, including path entities."""
    person = candidate.person
    values: list[str | None] = [person.name, person.screen_name, person.description]
    for ref in (*candidate.shared_orgs, *candidate.intermediaries, *candidate.third_parties):
        values.extend((ref.name, ref.screen_name))
    for connection in candidate.org_connections:
        values.extend((connection.org.name, connection.org.screen_name, connection.via_user))
    for record in candidate.paths:
        for ref in record.auxiliary_nodes():
            values.extend((ref.name, ref.screen_name))
    values.extend(candidate.shared_chains)
    return values


def filter_candidates(candidates: list[Candidate], search_term: str | None) -> list[Candidate]:
    """Case-insensitive substring match over candidate and path data."""
    if not fold(search_term):
        return list(candidates)
    return [c for c in candidates if contains_term(searchable_text(c), search_term)]


def rank(
    candidates: list[Candidate],
    sort_key: str = "relevancy",
    search_term: str | None = "",
    page: int = 1,
    page_size: int | None = None,
    *,
    config: DiscoveryConfig = DEFAULT_DISCOVERY_CONFIG,
) -> PagedResult:
    """Filter, sort and slice one page of candidates."""
    ordered = sort_candidates(filter_candidates(candidates, search_term), sort_key)

    bounded_page = config.clamp_page(page)
    bounded_size = config.clamp_page_size(page_size)
    total = len(ordered)
    start = (bounded_page - 1) * bounded_size

    return PagedResult(
        items=tuple(ordered[start : start + bounded_size]),
        total=total,
        page=bounded_page,
        page_size=bounded_size,
        total_pages=math.ceil(total / bounded_size) if total else 0,
    )
