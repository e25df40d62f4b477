"""Structured, presentation-neutral description of a discovered path."""

from dataclasses import dataclass

from .types import (
    ChainAffinityPath,
    NodeRef,
    OrgIndirectPath,
    PathRecord,
    PersonNode,
    SharedThirdPartyPath,
)

ROLE_YOU = "you"
ROLE_INTRODUCER = "introducer"
ROLE_ORGANIZATION = "organization"
ROLE_INTERMEDIARY = "intermediary"
ROLE_THIRD_PARTY = "third_party"
ROLE_PROSPECT = "prospect"


@dataclass(frozen=True)
class ChainNode:
    user_id: str
    screen_name: str
    name: str
    role: str
    relationship: str | None


@dataclass(frozen=True)
class PathDescription:
    path_type: str
    pov: str
    nodes: tuple[ChainNode, ...]
    chains: tuple[str, ...] = ()


def _role_for(
    ref: NodeRef, record: PathRecord, source: PersonNode, target: PersonNode
) -> str:
    if ref.user_id == source.user_id:
        return ROLE_YOU
    if ref.user_id == target.user_id:
        return ROLE_PROSPECT
    if record.is_introducer and ref.user_id == record.destination.user_id:
        return ROLE_INTRODUCER
    if isinstance(record, OrgIndirectPath) and ref.user_id == record.intermediary.user_id:
        return ROLE_INTERMEDIARY
    if isinstance(record, SharedThirdPartyPath) and ref.user_id == record.third_party.user_id:
        return ROLE_THIRD_PARTY
    return ROLE_ORGANIZATION


def describe_path(
    record: PathRecord, *, source: PersonNode, target: PersonNode
) -> PathDescription:
    """Walk source -> ... -> target, labelling each node with its role.

    ``relationship`` is the edge type leading into the node; it is None for
    the first node and for the non-edge jump of a chain affinity path.
    """
    walk = list(record.hops)
    if record.bridge:
        # bridge starts at the candidate, already the last hop
        walk.extend(record.bridge[1:])

    nodes = tuple(
        ChainNode(
            user_id=hop.node.user_id,
            screen_name=hop.node.screen_name,
            name=hop.node.name,
            role=_role_for(hop.node, record, source, target),
            relationship=hop.incoming_edge.value if hop.incoming_edge else None,
        )
        for hop in walk
    )
    chains = record.chains if isinstance(record, ChainAffinityPath) else ()
    return PathDescription(
        path_type=record.path_type.value,
        pov=record.pov.value,
        nodes=nodes,
        chains=chains,
    )
