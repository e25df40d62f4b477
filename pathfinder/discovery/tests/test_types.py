from datetime import datetime, timezone

import pytest

from pathfinder.discovery.types import (
    Candidate,
    DirectPath,
    NodeRef,
    PathHop,
    PathPov,
    PathType,
    PersonNode,
    parse_chains,
    parse_timestamp,
)
from pathfinder.errors import PathBoundError
from pathfinder.graph.schema import EdgeType


def _ref(user_id: str) -> NodeRef:
    return NodeRef(user_id=user_id, screen_name=user_id, name=user_id.upper())


def _person(user_id: str) -> PersonNode:
    return PersonNode(user_id=user_id, screen_name=user_id, name=user_id.upper())


class TestPersonNode:
    def test_from_record_reads_camel_case_properties(self):
        person = PersonNode.from_record(
            {
                "userId": "42",
                "screenName": "Acme",
                "name": "  Acme   Labs ",
                "followersCount": "1200",
                "listedCount": None,
                "verified": True,
                "vibe": "Organization",
                "lastUpdated": "2024-03-01T12:00:00Z",
                "orgSubtype": "protocol",
                "chains": '["Ethereum", "Base", "Ethereum"]',
            }
        )

        assert person.user_id == "42"
        assert person.name == "Acme Labs"
        assert person.followers_count == 1200
        assert person.listed_count == 0
        assert person.is_organization is True
        assert person.last_updated == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
        assert person.org_subtype == ("protocol",)
        assert person.chains == ("Ethereum", "Base")

    def test_from_record_falls_back_to_screen_name_for_name(self):
        person = PersonNode.from_record({"userId": "1", "screenName": "bob"})
        assert person.name == "bob"
        assert person.vibe == "individual"
        assert person.last_updated is None

    def test_ref_equality_ignores_timestamp(self):
        early = NodeRef("1", "a", "A", last_updated=datetime(2020, 1, 1, tzinfo=timezone.utc))
        assert early == NodeRef("1", "a", "A")


class TestParsing:
    def test_parse_timestamp_variants(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp("not a date") is None
        naive = parse_timestamp(datetime(2024, 1, 1))
        assert naive.tzinfo is timezone.utc

    def test_parse_chains_variants(self):
        assert parse_chains(["Solana", " Solana ", "Base"]) == ("Solana", "Base")
        assert parse_chains("Solana, Base") == ("Solana", "Base")
        assert parse_chains("[]") == ()
        assert parse_chains(None) == ()


class TestPathBound:
    def test_record_beyond_hop_bound_is_rejected(self):
        hops = tuple(PathHop(_ref(f"n{i}"), EdgeType.FOLLOWS) for i in range(6))
        with pytest.raises(PathBoundError):
            DirectPath(
                pov=PathPov.SOURCE,
                destination=_person("n5"),
                hops=hops,
                bridge=(),
                reciprocal=False,
            )

    def test_record_at_hop_bound_is_accepted(self):
        hops = tuple(PathHop(_ref(f"n{i}"), EdgeType.FOLLOWS) for i in range(5))
        record = DirectPath(
            pov=PathPov.SOURCE,
            destination=_person("n4"),
            hops=hops,
            bridge=(),
            reciprocal=False,
        )
        assert record.relationship_types() == (EdgeType.FOLLOWS,)


class TestCandidate:
    def test_primary_type_follows_priority_not_discovery_order(self):
        candidate = Candidate(
            person=_person("c"),
            connection_types=(PathType.CHAIN_AFFINITY, PathType.ORG_DIRECT),
            org_connections=(),
            shared_orgs=(),
            intermediaries=(),
            third_parties=(),
            shared_chains=(),
            relationship_types=(),
            reciprocal=False,
            paths=(),
        )
        assert candidate.primary_type is PathType.ORG_DIRECT
        assert candidate.is_multi_path is True
        assert candidate.relevancy_score == 0.0
