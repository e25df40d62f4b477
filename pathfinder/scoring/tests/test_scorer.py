from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from pathfinder.discovery.types import (
    Candidate,
    MatchSource,
    NodeRef,
    OrgConnection,
    OrgDirectPath,
    PathHop,
    PathPov,
    PathType,
    PersonNode,
)
from pathfinder.graph.schema import EdgeType
from pathfinder.scoring.scorer import (
    account_quality,
    freshness_decay,
    score_candidate,
    score_candidates,
)
from pathfinder.scoring.weights import DEFAULT_SCORE_WEIGHTS

AS_OF = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _org_connection(org_id: str) -> OrgConnection:
    return OrgConnection(
        org=NodeRef(org_id, org_id, org_id.title()),
        user_relation_type=EdgeType.WORKS_AT,
        prospect_relation_type=EdgeType.WORKS_AT,
        match_source=MatchSource.PROSPECT_DIRECT,
    )


def _candidate(**overrides) -> Candidate:
    person = PersonNode(
        user_id="c",
        screen_name="carol",
        name="Carol",
        followers_count=999,
        listed_count=99,
        verified=True,
        verification_type="Business",
        created_at=AS_OF - timedelta(days=5 * 365.25),
        last_updated=AS_OF - timedelta(days=90),
    )
    fields = {
        "person": person,
        "connection_types": (PathType.DIRECT, PathType.ORG_DIRECT),
        "org_connections": (_org_connection("x"), _org_connection("y")),
        "shared_orgs": (),
        "intermediaries": (),
        "third_parties": (),
        "shared_chains": (),
        "relationship_types": (EdgeType.FOLLOWS, EdgeType.WORKS_AT),
        "reciprocal": True,
        "paths": (),
    }
    fields.update(overrides)
    return Candidate(**fields)


def _path_with_org(org: NodeRef) -> OrgDirectPath:
    source = NodeRef("a", "alice", "Alice")
    carol = NodeRef("c", "carol", "Carol")
    target = NodeRef("b", "bob", "Bob")
    return OrgDirectPath(
        pov=PathPov.INTRODUCER,
        destination=PersonNode(user_id="c", screen_name="carol", name="Carol"),
        hops=(PathHop(source, None), PathHop(carol, EdgeType.FOLLOWS)),
        bridge=(
            PathHop(carol, None),
            PathHop(org, EdgeType.WORKS_AT),
            PathHop(target, EdgeType.WORKS_AT),
        ),
        reciprocal=False,
        shared_org=org,
        org_connection=_org_connection(org.user_id),
    )


class TestScoreCandidate:
    def test_breakdown_terms(self):
        breakdown = score_candidate(_candidate(), as_of=AS_OF)

        assert breakdown.base == pytest.approx(75.0)
        assert breakdown.relationship_multiplier == pytest.approx(1.8)
        # 4*log10(1000) + 3*log10(100) + 2*5 years + verified 8 + business 15
        assert breakdown.account_quality == pytest.approx(51.0)
        # one extra type, one extra org, reciprocal
        assert breakdown.bonuses == pytest.approx(43.0)
        assert breakdown.freshness_decay == pytest.approx(0.5)
        assert breakdown.total == pytest.approx(114.5)
        assert breakdown.weights_version == DEFAULT_SCORE_WEIGHTS.version

    def test_total_formula_holds(self):
        for candidate in (
            _candidate(),
            _candidate(connection_types=(PathType.CHAIN_AFFINITY,), reciprocal=False),
            _candidate(relationship_types=(), org_connections=()),
        ):
            b = score_candidate(candidate, as_of=AS_OF)
            expected = (
                b.base * b.relationship_multiplier + b.account_quality + b.bonuses
            ) * b.freshness_decay
            assert b.total == pytest.approx(expected)

    def test_terms_are_non_negative(self):
        bare = _candidate(
            person=PersonNode(user_id="z", screen_name="z", name="Z"),
            connection_types=(PathType.DIRECT,),
            org_connections=(),
            relationship_types=(EdgeType.FOLLOWS,),
            reciprocal=False,
        )
        b = score_candidate(bare, as_of=AS_OF)

        assert b.base >= 0
        assert b.relationship_multiplier >= 0
        assert b.account_quality == 0
        assert b.bonuses == 0
        assert 0 < b.freshness_decay <= 1

    def test_direct_base_is_lower_than_org_base(self):
        weights = DEFAULT_SCORE_WEIGHTS
        direct = weights.base_for(PathType.DIRECT)
        for path_type in PathType:
            if path_type is not PathType.DIRECT:
                assert weights.base_for(path_type) > direct

    def test_multiplier_uses_strongest_relationship(self):
        affiliated = _candidate(
            relationship_types=(EdgeType.FOLLOWS, EdgeType.AFFILIATED_WITH)
        )
        assert score_candidate(affiliated, as_of=AS_OF).relationship_multiplier == 0.9

    def test_account_quality_has_diminishing_returns(self):
        small = PersonNode(user_id="s", screen_name="s", name="S", followers_count=1_000)
        big = replace(small, followers_count=1_000_000)
        huge = replace(small, followers_count=1_000_000_000)

        q_small = account_quality(small, DEFAULT_SCORE_WEIGHTS, AS_OF)
        q_big = account_quality(big, DEFAULT_SCORE_WEIGHTS, AS_OF)
        q_huge = account_quality(huge, DEFAULT_SCORE_WEIGHTS, AS_OF)

        assert q_small < q_big < q_huge
        assert q_huge - q_big == pytest.approx(q_big - q_small, rel=1e-3)


class TestFreshnessDecay:
    def test_no_timestamps_means_no_decay(self):
        candidate = _candidate(person=PersonNode(user_id="c", screen_name="c", name="C"))
        assert freshness_decay(candidate, DEFAULT_SCORE_WEIGHTS, AS_OF) == 1.0

    def test_future_timestamp_means_no_decay(self):
        person = replace(_candidate().person, last_updated=AS_OF + timedelta(days=3))
        assert freshness_decay(_candidate(person=person), DEFAULT_SCORE_WEIGHTS, AS_OF) == 1.0

    def test_oldest_path_node_drives_decay_with_floor(self):
        stale_org = NodeRef("x", "orgx", "Org X", last_updated=AS_OF - timedelta(days=365))
        candidate = _candidate(paths=(_path_with_org(stale_org),))

        decay = freshness_decay(candidate, DEFAULT_SCORE_WEIGHTS, AS_OF)

        assert decay == pytest.approx(DEFAULT_SCORE_WEIGHTS.min_freshness)

    def test_decay_in_unit_interval(self):
        for days in (0, 1, 45, 90, 10_000):
            person = replace(_candidate().person, last_updated=AS_OF - timedelta(days=days))
            decay = freshness_decay(_candidate(person=person), DEFAULT_SCORE_WEIGHTS, AS_OF)
            assert 0 < decay <= 1


def test_score_candidates_sets_score_without_mutating_input():
    original = _candidate()
    (scored,) = score_candidates([original], as_of=AS_OF)

    assert original.score is None
    assert scored.score is not None
    assert scored.relevancy_score == pytest.approx(scored.score.total)
