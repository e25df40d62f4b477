"""Path discovery strategies over the graph access port.

Every strategy reports two points of view:

* introducer paths: a candidate C tied to the source by a follow in either
  direction who can connect the source to the target (C is never the source
  or the target);
* source paths: the source reaches the target by itself through the same
  organizational shape, with no introducer in between.

Strategies build their own lookup state per call and never mutate the graph.
"""

from dataclasses import dataclass
import logging

from ..graph.schema import ORG_EDGE_TYPES, THIRD_PARTY_EDGE_TYPES, EdgeType
from ..text import fold
from .aggregator import validate_endpoints
from .port import GraphPort
from .types import (
    MAX_PATH_HOPS,
    ChainAffinityPath,
    DirectPath,
    MatchSource,
    OrgConnection,
    OrgDirectPath,
    OrgIndirectPath,
    PathHop,
    PathPov,
    PathRecord,
    PathType,
    PersonNode,
    SharedThirdPartyPath,
)

log = logging.getLogger(__name__)

_FOLLOWS = [EdgeType.FOLLOWS.value]
_ORG = [t.value for t in ORG_EDGE_TYPES]
_WORKS_AT = [EdgeType.WORKS_AT.value]
_THIRD_PARTY = [t.value for t in THIRD_PARTY_EDGE_TYPES]


@dataclass(frozen=True)
class _Link:
    node: PersonNode
    relation: EdgeType
    direction: str


def _clean_links(raw_rows: list[dict]) -> list[_Link]:
    """Normalize neighbor rows, dropping malformed ones, in a stable order."""
    links: list[_Link] = []
    for raw in raw_rows or []:
        node = raw.get("node")
        if not isinstance(node, dict):
            continue

        relation = str(raw.get("relation") or "").strip().upper()
        try:
            edge_type = EdgeType(relation)
        except ValueError:
            continue

        person = PersonNode.from_record(node)
        if not person.user_id:
            continue

        direction = str(raw.get("direction") or "out").strip().lower()
        if direction not in {"in", "out"}:
            direction = "out"

        links.append(_Link(node=person, relation=edge_type, direction=direction))

    links.sort(key=lambda link: (link.node.user_id, link.relation.value, link.direction))
    return links


class _GraphReader:
    """Per-call memo over port lookups. Never shared between strategies."""

    def __init__(self, storage: GraphPort):
        self.storage = storage
        self._memo: dict[tuple[str, str, tuple[str, ...]], list[_Link]] = {}

    def links(
        self, node_ids, direction: str, edge_types: list[str]
    ) -> dict[str, list[_Link]]:
        types_key = tuple(sorted(edge_types))
        ids = sorted({node_id for node_id in node_ids if node_id})
        missing = [
            node_id
            for node_id in ids
            if (node_id, direction, types_key) not in self._memo
        ]

        if len(missing) == 1:
            fetched = {
                missing[0]: self.storage.get_neighbors(
                    missing[0], direction=direction, edge_types=list(types_key)
                )
            }
        elif missing:
            fetched = self.storage.get_neighbors_batch(
                missing, direction=direction, edge_types=list(types_key)
            )
        else:
            fetched = {}

        for node_id in missing:
            self._memo[(node_id, direction, types_key)] = _clean_links(
                fetched.get(node_id, [])
            )

        return {node_id: self._memo[(node_id, direction, types_key)] for node_id in ids}

    def neighbors(
        self, node_id: str, direction: str, edge_types: list[str]
    ) -> dict[str, PersonNode]:
        return {
            link.node.user_id: link.node
            for link in self.links([node_id], direction, edge_types)[node_id]
        }

    def followers(self, user_id: str) -> dict[str, PersonNode]:
        return self.neighbors(user_id, "in", _FOLLOWS)

    def following(self, user_id: str) -> dict[str, PersonNode]:
        return self.neighbors(user_id, "out", _FOLLOWS)

    def mutuals(self, user_id: str) -> dict[str, PersonNode]:
        following = self.following(user_id)
        followers = self.followers(user_id)
        return {uid: node for uid, node in following.items() if uid in followers}

    def mutual_ids_batch(self, user_ids) -> dict[str, set[str]]:
        following = self.links(user_ids, "out", _FOLLOWS)
        followers = self.links(user_ids, "in", _FOLLOWS)
        result: dict[str, set[str]] = {}
        for user_id, out_links in following.items():
            in_ids = {link.node.user_id for link in followers.get(user_id, [])}
            result[user_id] = {
                link.node.user_id for link in out_links if link.node.user_id in in_ids
            }
        return result

    def introducers(self, source: PersonNode, target: PersonNode) -> dict[str, PersonNode]:
        """People the source follows or who follow the source, minus both endpoints."""
        excluded = {source.user_id, target.user_id}
        tied = {**self.following(source.user_id), **self.followers(source.user_id)}
        return {uid: node for uid, node in sorted(tied.items()) if uid not in excluded}


def _index_by_node(links: list[_Link]) -> dict[str, list[_Link]]:
    index: dict[str, list[_Link]] = {}
    for link in links:
        index.setdefault(link.node.user_id, []).append(link)
    return index


def _shared_chains(left: tuple[str, ...], right: tuple[str, ...]) -> tuple[str, ...]:
    right_folded = {fold(chain) for chain in right}
    return tuple(chain for chain in left if fold(chain) in right_folded)


class PathDiscoverer:
    """Base strategy. Subclasses yield ``(record_class, fields)`` rows."""

    path_type: PathType

    def __init__(self, storage: GraphPort, max_hops: int = MAX_PATH_HOPS):
        self.storage = storage
        self.max_hops = max(1, min(max_hops, MAX_PATH_HOPS))

    def discover(self, source_user_id: str, target_user_id: str) -> list[PathRecord]:
        """Return every path of this strategy's type between source and target."""
        validate_endpoints(source_user_id, target_user_id)
        source_user_id = source_user_id.strip()
        target_user_id = target_user_id.strip()
        reader = _GraphReader(self.storage)
        endpoints = {
            person.user_id: person
            for person in (
                PersonNode.from_record(raw)
                for raw in self.storage.get_users([source_user_id, target_user_id])
            )
        }
        source = endpoints.get(source_user_id)
        target = endpoints.get(target_user_id)
        if source is None or target is None:
            return []

        records: list[PathRecord] = []
        seen: set[PathRecord] = set()
        for record_cls, fields in self._rows(reader, source, target):
            if self._exceeds_bound(fields):
                log.debug(
                    f"Dropping {self.path_type.value} row beyond {self.max_hops} hops"
                )
                continue
            record = record_cls(**fields)
            if record in seen:
                continue
            seen.add(record)
            records.append(record)
        return records

    def _exceeds_bound(self, fields: dict) -> bool:
        return any(
            len(fields.get(key, ())) - 1 > self.max_hops for key in ("hops", "bridge")
        )

    def _rows(self, reader: _GraphReader, source: PersonNode, target: PersonNode):
        raise NotImplementedError

    @staticmethod
    def _introducer_hops(source: PersonNode, candidate: PersonNode) -> tuple[PathHop, ...]:
        return (
            PathHop(source.ref(), None),
            PathHop(candidate.ref(), EdgeType.FOLLOWS),
        )

    @staticmethod
    def _start(person: PersonNode) -> PathHop:
        return PathHop(person.ref(), None)


class DirectDiscoverer(PathDiscoverer):
    """People tied by follows to both the source and the target."""

    path_type = PathType.DIRECT

    def _rows(self, reader, source, target):
        source_side = reader.introducers(source, target)
        target_side = {**reader.following(target.user_id), **reader.followers(target.user_id)}
        target_mutuals = reader.mutuals(target.user_id)

        for user_id in sorted(source_side):
            if user_id not in target_side:
                continue
            candidate = source_side[user_id]
            yield DirectPath, {
                "pov": PathPov.INTRODUCER,
                "destination": candidate,
                "hops": self._introducer_hops(source, candidate),
                "bridge": (
                    self._start(candidate),
                    PathHop(target.ref(), EdgeType.FOLLOWS),
                ),
                "reciprocal": user_id in target_mutuals,
            }


class OrgDirectDiscoverer(PathDiscoverer):
    """Someone and the target both hold an organizational edge to the same node."""

    path_type = PathType.ORG_DIRECT

    def _rows(self, reader, source, target):
        introducers = reader.introducers(source, target)
        target_mutuals = reader.mutuals(target.user_id)
        target_orgs = _index_by_node(reader.links([target.user_id], "out", _ORG)[target.user_id])

        people = {source.user_id: source, **introducers}
        org_links = reader.links(people.keys(), "out", _ORG)

        for user_id in [source.user_id, *introducers]:
            person = people[user_id]
            is_source = user_id == source.user_id
            for link in org_links.get(user_id, []):
                org = link.node
                if org.user_id in {source.user_id, target.user_id, user_id}:
                    continue
                for target_link in target_orgs.get(org.user_id, []):
                    connection = OrgConnection(
                        org=org.ref(),
                        user_relation_type=link.relation,
                        prospect_relation_type=target_link.relation,
                        match_source=MatchSource.PROSPECT_DIRECT,
                    )
                    walk = (
                        PathHop(org.ref(), link.relation),
                        PathHop(target.ref(), target_link.relation),
                    )
                    if is_source:
                        yield OrgDirectPath, {
                            "pov": PathPov.SOURCE,
                            "destination": target,
                            "hops": (self._start(source), *walk),
                            "bridge": (),
                            "reciprocal": user_id in target_mutuals,
                            "shared_org": org.ref(),
                            "org_connection": connection,
                        }
                    else:
                        yield OrgDirectPath, {
                            "pov": PathPov.INTRODUCER,
                            "destination": person,
                            "hops": self._introducer_hops(source, person),
                            "bridge": (self._start(person), *walk),
                            "reciprocal": user_id in target_mutuals,
                            "shared_org": org.ref(),
                            "org_connection": connection,
                        }


class OrgIndirectDiscoverer(PathDiscoverer):
    """Shared organization with an intermediary who mutually follows the target."""

    path_type = PathType.ORG_INDIRECT

    def _rows(self, reader, source, target):
        introducers = reader.introducers(source, target)
        target_mutuals = reader.mutuals(target.user_id)

        intermediaries = {
            uid: node
            for uid, node in sorted(target_mutuals.items())
            if uid not in {source.user_id, target.user_id}
        }
        if not intermediaries:
            return

        intermediary_orgs = {
            uid: _index_by_node(links)
            for uid, links in reader.links(intermediaries.keys(), "out", _ORG).items()
        }
        intermediary_mutuals = reader.mutual_ids_batch(intermediaries.keys())

        people = {source.user_id: source, **introducers}
        org_links = reader.links(people.keys(), "out", _ORG)

        for user_id in [source.user_id, *introducers]:
            person = people[user_id]
            is_source = user_id == source.user_id
            for via_id, via in intermediaries.items():
                if via_id == user_id or user_id not in intermediary_mutuals.get(via_id, set()):
                    continue
                via_orgs = intermediary_orgs.get(via_id, {})
                for link in org_links.get(user_id, []):
                    org = link.node
                    if org.user_id in {source.user_id, target.user_id, user_id, via_id}:
                        continue
                    for via_link in via_orgs.get(org.user_id, []):
                        connection = OrgConnection(
                            org=org.ref(),
                            user_relation_type=link.relation,
                            prospect_relation_type=via_link.relation,
                            match_source=MatchSource.PROSPECT_FOLLOWING,
                            via_user=via.screen_name,
                        )
                        walk = (
                            PathHop(org.ref(), link.relation),
                            PathHop(via.ref(), via_link.relation),
                            PathHop(target.ref(), EdgeType.FOLLOWS),
                        )
                        fields = {
                            "shared_org": org.ref(),
                            "intermediary": via.ref(),
                            "org_connection": connection,
                            "reciprocal": user_id in target_mutuals,
                        }
                        if is_source:
                            fields.update(
                                pov=PathPov.SOURCE,
                                destination=target,
                                hops=(self._start(source), *walk),
                                bridge=(),
                            )
                        else:
                            fields.update(
                                pov=PathPov.INTRODUCER,
                                destination=person,
                                hops=self._introducer_hops(source, person),
                                bridge=(self._start(person), *walk),
                            )
                        yield OrgIndirectPath, fields


class SharedThirdPartyDiscoverer(PathDiscoverer):
    """Employers of both sides share an investor or auditor."""

    path_type = PathType.SHARED_THIRD_PARTY

    def _rows(self, reader, source, target):
        target_orgs = [
            link.node
            for link in reader.links([target.user_id], "out", _WORKS_AT)[target.user_id]
            if link.node.is_organization
        ]
        if not target_orgs:
            return

        # employer org id -> [(third party, relation to employer, target org, relation to target org)]
        bridges: dict[str, list[tuple[PersonNode, EdgeType, PersonNode, EdgeType]]] = {}
        backers = reader.links([org.user_id for org in target_orgs], "in", _THIRD_PARTY)
        backer_ids = {link.node.user_id for links in backers.values() for link in links}
        backed = reader.links(backer_ids, "out", _THIRD_PARTY)

        for target_org in target_orgs:
            for backer_link in backers.get(target_org.user_id, []):
                third_party = backer_link.node
                for out_link in backed.get(third_party.user_id, []):
                    org = out_link.node
                    if not org.is_organization or org.user_id == target_org.user_id:
                        continue
                    bridges.setdefault(org.user_id, []).append(
                        (third_party, out_link.relation, target_org, backer_link.relation)
                    )
        if not bridges:
            return

        introducers = reader.introducers(source, target)
        target_mutuals = reader.mutuals(target.user_id)
        people = {source.user_id: source, **introducers}
        employers = reader.links(people.keys(), "out", _WORKS_AT)

        for user_id in [source.user_id, *introducers]:
            person = people[user_id]
            is_source = user_id == source.user_id
            for link in employers.get(user_id, []):
                org = link.node
                if not org.is_organization:
                    continue
                for third_party, org_relation, target_org, target_org_relation in bridges.get(
                    org.user_id, []
                ):
                    if third_party.user_id in {source.user_id, target.user_id, user_id}:
                        continue
                    relation_types = tuple(dict.fromkeys((org_relation, target_org_relation)))
                    walk = (
                        PathHop(org.ref(), EdgeType.WORKS_AT),
                        PathHop(third_party.ref(), org_relation),
                        PathHop(target_org.ref(), target_org_relation),
                        PathHop(target.ref(), EdgeType.WORKS_AT),
                    )
                    fields = {
                        "shared_org": org.ref(),
                        "third_party": third_party.ref(),
                        "prospect_org": target_org.ref(),
                        "relation_types": relation_types,
                        "reciprocal": user_id in target_mutuals,
                    }
                    if is_source:
                        fields.update(
                            pov=PathPov.SOURCE,
                            destination=target,
                            hops=(self._start(source), *walk),
                            bridge=(),
                        )
                    else:
                        fields.update(
                            pov=PathPov.INTRODUCER,
                            destination=person,
                            hops=self._introducer_hops(source, person),
                            bridge=(self._start(person), *walk),
                        )
                    yield SharedThirdPartyPath, fields


class ChainAffinityDiscoverer(PathDiscoverer):
    """Employers of both sides operate on a common chain.

    The jump between the two organizations is not a graph edge, so its hop
    carries ``incoming_edge=None``.
    """

    path_type = PathType.CHAIN_AFFINITY

    def _rows(self, reader, source, target):
        target_orgs = [
            link.node
            for link in reader.links([target.user_id], "out", _WORKS_AT)[target.user_id]
            if link.node.is_organization and link.node.chains
        ]
        if not target_orgs:
            return

        introducers = reader.introducers(source, target)
        target_mutuals = reader.mutuals(target.user_id)
        people = {source.user_id: source, **introducers}
        employers = reader.links(people.keys(), "out", _WORKS_AT)

        for user_id in [source.user_id, *introducers]:
            person = people[user_id]
            is_source = user_id == source.user_id
            for link in employers.get(user_id, []):
                org = link.node
                if not org.is_organization or not org.chains:
                    continue
                for target_org in target_orgs:
                    if target_org.user_id == org.user_id:
                        continue
                    chains = _shared_chains(org.chains, target_org.chains)
                    if not chains:
                        continue
                    walk = (
                        PathHop(org.ref(), EdgeType.WORKS_AT),
                        PathHop(target_org.ref(), None),
                        PathHop(target.ref(), EdgeType.WORKS_AT),
                    )
                    fields = {
                        "shared_org": org.ref(),
                        "prospect_org": target_org.ref(),
                        "chains": chains,
                        "reciprocal": user_id in target_mutuals,
                    }
                    if is_source:
                        fields.update(
                            pov=PathPov.SOURCE,
                            destination=target,
                            hops=(self._start(source), *walk),
                            bridge=(),
                        )
                    else:
                        fields.update(
                            pov=PathPov.INTRODUCER,
                            destination=person,
                            hops=self._introducer_hops(source, person),
                            bridge=(self._start(person), *walk),
                        )
                    yield ChainAffinityPath, fields


DISCOVERER_CLASSES: tuple[type[PathDiscoverer], ...] = (
    DirectDiscoverer,
    OrgDirectDiscoverer,
    OrgIndirectDiscoverer,
    SharedThirdPartyDiscoverer,
    ChainAffinityDiscoverer,
)


def build_discoverers(
    storage: GraphPort, max_hops: int = MAX_PATH_HOPS
) -> list[PathDiscoverer]:
    """One instance of every strategy, in path-type priority order."""
    return [cls(storage, max_hops=max_hops) for cls in DISCOVERER_CLASSES]
