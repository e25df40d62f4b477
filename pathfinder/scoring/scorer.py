"""Relevancy scoring with an inspectable breakdown."""

from dataclasses import replace
from datetime import datetime, timezone
import math

from ..discovery.types import Candidate, PersonNode, ScoreBreakdown
from .weights import DEFAULT_SCORE_WEIGHTS, ScoreWeights

_SECONDS_PER_DAY = 86400.0
_DAYS_PER_YEAR = 365.25


def _as_utc(moment: datetime | None) -> datetime:
    if moment is None:
        return datetime.now(timezone.utc)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def base_score(candidate: Candidate, weights: ScoreWeights) -> float:
    """Sum of per-type bases over every connection type the candidate holds."""
    return sum(weights.base_for(path_type) for path_type in candidate.connection_types)


def relationship_multiplier(candidate: Candidate, weights: ScoreWeights) -> float:
    """Multiplier of the strongest relationship observed on the candidate's paths."""
    if not candidate.relationship_types:
        return weights.default_multiplier
    return max(weights.multiplier_for(edge_type) for edge_type in candidate.relationship_types)


def account_quality(person: PersonNode, weights: ScoreWeights, as_of: datetime) -> float:
    """Reach and credibility of the candidate's own account.

    Counts enter logarithmically so very large accounts do not dominate.
    """
    quality = weights.followers_weight * math.log10(person.followers_count + 1)
    quality += weights.listed_weight * math.log10(person.listed_count + 1)

    if person.created_at is not None:
        age_years = (as_of - person.created_at).total_seconds() / (
            _SECONDS_PER_DAY * _DAYS_PER_YEAR
        )
        quality += weights.age_weight_per_year * min(max(age_years, 0.0), weights.max_age_years)

    if person.verified:
        quality += weights.verified_bonus
    if (person.verification_type or "").strip().lower() == "business":
        quality += weights.business_bonus
    return quality


def bonuses(candidate: Candidate, weights: ScoreWeights) -> float:
    """Additive credit for corroborating paths and reciprocal follows."""
    total = weights.extra_type_bonus * max(0, len(candidate.connection_types) - 1)
    total += weights.extra_org_bonus * max(0, len(candidate.org_connections) - 1)
    if candidate.reciprocal:
        total += weights.reciprocal_bonus
    return total


def freshness_decay(candidate: Candidate, weights: ScoreWeights, as_of: datetime) -> float:
    """Half-life decay on the oldest timestamp among the candidate and its path nodes."""
    stamps = [candidate.person.last_updated]
    for record in candidate.paths:
        stamps.extend(node.last_updated for node in record.auxiliary_nodes())
    stamps = [stamp for stamp in stamps if stamp is not None]
    if not stamps:
        return 1.0

    age_days = (as_of - min(stamps)).total_seconds() / _SECONDS_PER_DAY
    if age_days <= 0:
        return 1.0
    decay = 0.5 ** (age_days / weights.half_life_days)
    return max(weights.min_freshness, min(1.0, decay))


def score_candidate(
    candidate: Candidate,
    *,
    weights: ScoreWeights = DEFAULT_SCORE_WEIGHTS,
    as_of: datetime | None = None,
) -> ScoreBreakdown:
    """Compute every scoring term and the total they combine into."""
    moment = _as_utc(as_of)

    base = base_score(candidate, weights)
    multiplier = relationship_multiplier(candidate, weights)
    quality = account_quality(candidate.person, weights, moment)
    extra = bonuses(candidate, weights)
    decay = freshness_decay(candidate, weights, moment)
    total = (base * multiplier + quality + extra) * decay

    return ScoreBreakdown(
        base=base,
        relationship_multiplier=multiplier,
        account_quality=quality,
        bonuses=extra,
        freshness_decay=decay,
        total=total,
        weights_version=weights.version,
    )


def score_candidates(
    candidates: list[Candidate],
    *,
    weights: ScoreWeights = DEFAULT_SCORE_WEIGHTS,
    as_of: datetime | None = None,
) -> list[Candidate]:
    """Return copies of the candidates with ``score`` filled in."""
    moment = _as_utc(as_of)
    return [
        replace(candidate, score=score_candidate(candidate, weights=weights, as_of=moment))
        for candidate in candidates
    ]
