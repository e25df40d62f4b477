"""Merge raw path records into one candidate per introducer."""

from ..errors import ValidationError
from ..graph.schema import EdgeType
from .types import (
    Candidate,
    ChainAffinityPath,
    NodeRef,
    OrgConnection,
    OrgDirectPath,
    OrgIndirectPath,
    PathRecord,
    PathType,
    SharedThirdPartyPath,
)


def validate_endpoints(source_user_id: str | None, target_user_id: str | None) -> None:
    """Reject empty identifiers and self-paths before any query runs."""
    source = (source_user_id or "").strip()
    target = (target_user_id or "").strip()
    if not source:
        raise ValidationError("source user id is required")
    if not target:
        raise ValidationError("target user id is required")
    if source == target:
        raise ValidationError(f"source and target are the same user: {source}")


class _CandidateBuilder:
    def __init__(self, first: PathRecord):
        self.person = first.destination
        self.connection_types: list[PathType] = []
        self.org_connections: dict[tuple[str, str], OrgConnection] = {}
        self.shared_orgs: dict[str, NodeRef] = {}
        self.intermediaries: dict[str, NodeRef] = {}
        self.third_parties: dict[str, NodeRef] = {}
        self.shared_chains: dict[str, str] = {}
        self.relationship_types: dict[EdgeType, None] = {}
        self.reciprocal = False
        self.paths: dict[PathRecord, None] = {}

    def add(self, record: PathRecord) -> None:
        if record in self.paths:
            return
        self.paths[record] = None

        if record.path_type not in self.connection_types:
            self.connection_types.append(record.path_type)
        for edge_type in record.relationship_types():
            self.relationship_types.setdefault(edge_type, None)
        self.reciprocal = self.reciprocal or record.reciprocal

        if isinstance(record, (OrgDirectPath, OrgIndirectPath)):
            connection = record.org_connection
            key = (connection.org.user_id, connection.match_source.value)
            self.org_connections.setdefault(key, connection)
            self.shared_orgs.setdefault(record.shared_org.user_id, record.shared_org)
        if isinstance(record, OrgIndirectPath):
            self.intermediaries.setdefault(
                record.intermediary.user_id, record.intermediary
            )
        if isinstance(record, SharedThirdPartyPath):
            self.shared_orgs.setdefault(record.shared_org.user_id, record.shared_org)
            self.third_parties.setdefault(record.third_party.user_id, record.third_party)
        if isinstance(record, ChainAffinityPath):
            self.shared_orgs.setdefault(record.shared_org.user_id, record.shared_org)
            for chain in record.chains:
                self.shared_chains.setdefault(chain.casefold(), chain)

    def build(self) -> Candidate:
        return Candidate(
            person=self.person,
            connection_types=tuple(self.connection_types),
            org_connections=tuple(self.org_connections.values()),
            shared_orgs=tuple(self.shared_orgs.values()),
            intermediaries=tuple(self.intermediaries.values()),
            third_parties=tuple(self.third_parties.values()),
            shared_chains=tuple(self.shared_chains.values()),
            relationship_types=tuple(self.relationship_types),
            reciprocal=self.reciprocal,
            paths=tuple(self.paths),
        )


def aggregate(
    paths: list[PathRecord],
    *,
    source_user_id: str,
    target_user_id: str,
) -> list[Candidate]:
    """Group introducer paths by candidate, deduplicating auxiliary entities.

    Candidates come back in first-discovery order. Source-POV records describe
    the source's own reach and never become candidates.
    """
    validate_endpoints(source_user_id, target_user_id)
    endpoints = {source_user_id.strip(), target_user_id.strip()}

    builders: dict[str, _CandidateBuilder] = {}
    for record in paths:
        if not record.is_introducer:
            continue
        user_id = record.destination.user_id
        if user_id in endpoints:
            continue
        builder = builders.get(user_id)
        if builder is None:
            builder = builders[user_id] = _CandidateBuilder(record)
        builder.add(record)

    return [builder.build() for builder in builders.values()]
