import pytest

from pathfinder.discovery.aggregator import aggregate
from pathfinder.discovery.types import (
    ChainAffinityPath,
    DirectPath,
    MatchSource,
    NodeRef,
    OrgConnection,
    OrgDirectPath,
    OrgIndirectPath,
    PathHop,
    PathPov,
    PathType,
    PersonNode,
)
from pathfinder.errors import ValidationError
from pathfinder.graph.schema import EdgeType

SOURCE = PersonNode(user_id="a", screen_name="alice", name="Alice")
TARGET = PersonNode(user_id="b", screen_name="bob", name="Bob")


def _person(user_id: str) -> PersonNode:
    return PersonNode(user_id=user_id, screen_name=user_id, name=user_id.title())


def _ref(user_id: str) -> NodeRef:
    return NodeRef(user_id=user_id, screen_name=user_id, name=user_id.title())


def _intro_hops(candidate: PersonNode) -> tuple[PathHop, ...]:
    return (PathHop(SOURCE.ref(), None), PathHop(candidate.ref(), EdgeType.FOLLOWS))


def _direct(candidate: PersonNode, reciprocal: bool = False) -> DirectPath:
    return DirectPath(
        pov=PathPov.INTRODUCER,
        destination=candidate,
        hops=_intro_hops(candidate),
        bridge=(PathHop(candidate.ref(), None), PathHop(TARGET.ref(), EdgeType.FOLLOWS)),
        reciprocal=reciprocal,
    )


def _org_direct(candidate: PersonNode, org_id: str, relation=EdgeType.WORKS_AT) -> OrgDirectPath:
    org = _ref(org_id)
    return OrgDirectPath(
        pov=PathPov.INTRODUCER,
        destination=candidate,
        hops=_intro_hops(candidate),
        bridge=(
            PathHop(candidate.ref(), None),
            PathHop(org, relation),
            PathHop(TARGET.ref(), EdgeType.WORKS_AT),
        ),
        reciprocal=False,
        shared_org=org,
        org_connection=OrgConnection(
            org=org,
            user_relation_type=relation,
            prospect_relation_type=EdgeType.WORKS_AT,
            match_source=MatchSource.PROSPECT_DIRECT,
        ),
    )


def _org_indirect(candidate: PersonNode, org_id: str, via_id: str) -> OrgIndirectPath:
    org = _ref(org_id)
    via = _ref(via_id)
    return OrgIndirectPath(
        pov=PathPov.INTRODUCER,
        destination=candidate,
        hops=_intro_hops(candidate),
        bridge=(
            PathHop(candidate.ref(), None),
            PathHop(org, EdgeType.WORKED_AT),
            PathHop(via, EdgeType.WORKS_AT),
            PathHop(TARGET.ref(), EdgeType.FOLLOWS),
        ),
        reciprocal=False,
        shared_org=org,
        intermediary=via,
        org_connection=OrgConnection(
            org=org,
            user_relation_type=EdgeType.WORKED_AT,
            prospect_relation_type=EdgeType.WORKS_AT,
            match_source=MatchSource.PROSPECT_FOLLOWING,
            via_user=via.screen_name,
        ),
    )


def _chain(candidate: PersonNode, chains: tuple[str, ...]) -> ChainAffinityPath:
    org = _ref("chain-org")
    prospect_org = _ref("prospect-org")
    return ChainAffinityPath(
        pov=PathPov.INTRODUCER,
        destination=candidate,
        hops=_intro_hops(candidate),
        bridge=(
            PathHop(candidate.ref(), None),
            PathHop(org, EdgeType.WORKS_AT),
            PathHop(prospect_org, None),
            PathHop(TARGET.ref(), EdgeType.WORKS_AT),
        ),
        reciprocal=False,
        shared_org=org,
        prospect_org=prospect_org,
        chains=chains,
    )


def _aggregate(paths):
    return aggregate(paths, source_user_id="a", target_user_id="b")


class TestAggregate:
    def test_one_candidate_per_user_id(self):
        carol, dave = _person("c"), _person("d")
        candidates = _aggregate(
            [_direct(carol), _org_direct(carol, "x"), _direct(dave), _org_direct(carol, "y")]
        )

        assert [c.user_id for c in candidates] == ["c", "d"]
        assert len({c.user_id for c in candidates}) == len(candidates)

    def test_direct_and_org_paths_merge_into_multi_path_candidate(self):
        carol = _person("c")
        (candidate,) = _aggregate([_direct(carol, reciprocal=True), _org_direct(carol, "x")])

        assert candidate.connection_types == (PathType.DIRECT, PathType.ORG_DIRECT)
        assert candidate.is_multi_path is True
        assert candidate.reciprocal is True
        assert candidate.relationship_types == (EdgeType.FOLLOWS, EdgeType.WORKS_AT)

    def test_shared_orgs_dedup_by_user_id(self):
        carol = _person("c")
        (candidate,) = _aggregate(
            [
                _org_direct(carol, "x", EdgeType.WORKS_AT),
                _org_direct(carol, "x", EdgeType.MEMBER_OF),
                _org_indirect(carol, "x", "y"),
            ]
        )

        assert [o.user_id for o in candidate.shared_orgs] == ["x"]
        assert [i.user_id for i in candidate.intermediaries] == ["y"]
        # one connection per (org, match source)
        assert [
            (c.org.user_id, c.match_source) for c in candidate.org_connections
        ] == [("x", MatchSource.PROSPECT_DIRECT), ("x", MatchSource.PROSPECT_FOLLOWING)]
        assert len(candidate.paths) == 3

    def test_chains_dedup_case_insensitively(self):
        carol = _person("c")
        (candidate,) = _aggregate([_chain(carol, ("Base", "Solana")), _chain(carol, ("base",))])
        assert candidate.shared_chains == ("Base", "Solana")

    def test_union_is_idempotent(self):
        carol, dave = _person("c"), _person("d")
        paths = [_direct(carol), _org_indirect(carol, "x", "y"), _org_direct(dave, "z")]

        assert _aggregate(paths + paths) == _aggregate(paths)

    def test_source_pov_records_are_not_candidates(self):
        record = DirectPath(
            pov=PathPov.SOURCE,
            destination=TARGET,
            hops=(PathHop(SOURCE.ref(), None), PathHop(TARGET.ref(), EdgeType.FOLLOWS)),
            bridge=(),
            reciprocal=False,
        )
        assert _aggregate([record]) == []

    def test_empty_input(self):
        assert _aggregate([]) == []

    @pytest.mark.parametrize("source,target", [("a", "a"), ("", "b"), ("a", "  ")])
    def test_rejects_self_path_and_empty_ids(self, source, target):
        with pytest.raises(ValidationError):
            aggregate([_direct(_person("c"))], source_user_id=source, target_user_id=target)

    def test_padded_endpoint_ids_still_exclude_endpoints(self):
        carol = _person("c")
        candidates = aggregate(
            [_direct(carol), _direct(_person("d"))], source_user_id=" c", target_user_id="b "
        )
        assert [c.user_id for c in candidates] == ["d"]
