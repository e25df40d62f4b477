"""Typed contracts for path discovery, aggregation and scoring."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import json
from typing import Any, ClassVar

from ..errors import PathBoundError
from ..graph.schema import EdgeType, NodeVibe
from ..text import normalize_whitespace

MAX_PATH_HOPS = 4


class PathType(Enum):
    """Structural category of a connection.

    Declaration order doubles as the primary-type priority.
    """

    DIRECT = "direct"
    ORG_DIRECT = "org_direct"
    ORG_INDIRECT = "org_indirect"
    SHARED_THIRD_PARTY = "shared_third_party"
    CHAIN_AFFINITY = "chain_affinity"


class PathPov(Enum):
    """Whose network the path runs through."""

    INTRODUCER = "introducer"  # someone who follows the source can intro
    SOURCE = "source"  # the source is connected without an introducer


class MatchSource(Enum):
    """How the prospect side of an org connection was matched."""

    PROSPECT_DIRECT = "prospect_direct"
    PROSPECT_FOLLOWING = "prospect_following"


def parse_timestamp(value: Any) -> datetime | None:
    """Coerce stored timestamps (ISO string, datetime, neo4j DateTime) to aware UTC."""
    if value is None or value == "":
        return None
    if hasattr(value, "to_native"):
        value = value.to_native()
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_chains(value: Any) -> tuple[str, ...]:
    """Parse an org's chain list stored as a list, JSON array or comma string."""
    if value is None:
        return ()
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return ()
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError:
            decoded = text.split(",")
        value = decoded if isinstance(decoded, list) else []
    if not isinstance(value, (list, tuple)):
        return ()

    chains: list[str] = []
    for item in value:
        name = normalize_whitespace(str(item))
        if name and name not in chains:
            chains.append(name)
    return tuple(chains)


def _first(raw: dict, *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return default


def _as_int(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class NodeRef:
    """Identity triple for an auxiliary entity on a path."""

    user_id: str
    screen_name: str
    name: str
    last_updated: datetime | None = field(default=None, compare=False)


@dataclass(frozen=True)
class PersonNode:
    """Read-only view of a User node (individual or organization)."""

    user_id: str
    screen_name: str
    name: str
    followers_count: int = 0
    following_count: int = 0
    verified: bool = False
    profile_image_url: str | None = None
    description: str | None = None
    vibe: str = NodeVibe.INDIVIDUAL.value
    last_updated: datetime | None = None
    org_type: str | None = None
    org_subtype: tuple[str, ...] = ()
    listed_count: int = 0
    created_at: datetime | None = None
    verification_type: str | None = None
    chains: tuple[str, ...] = ()

    @property
    def is_organization(self) -> bool:
        return self.vibe == NodeVibe.ORGANIZATION.value

    def ref(self) -> NodeRef:
        return NodeRef(
            user_id=self.user_id,
            screen_name=self.screen_name,
            name=self.name,
            last_updated=self.last_updated,
        )

    @classmethod
    def from_record(cls, raw: dict) -> "PersonNode":
        """Build from a graph row using the stored camelCase property names."""
        user_id = str(_first(raw, "userId", "user_id", "id", default="")).strip()
        screen_name = str(_first(raw, "screenName", "screen_name", default="")).strip()
        name = normalize_whitespace(_first(raw, "name", default="")) or screen_name

        subtype = _first(raw, "orgSubtype", "org_subtype", default=())
        if isinstance(subtype, str):
            subtype = [subtype] if subtype.strip() else []

        vibe = _first(raw, "vibe", default=NodeVibe.INDIVIDUAL.value)

        return cls(
            user_id=user_id,
            screen_name=screen_name,
            name=name,
            followers_count=_as_int(_first(raw, "followersCount", "followers_count")),
            following_count=_as_int(_first(raw, "followingCount", "following_count")),
            verified=bool(_first(raw, "verified", default=False)),
            profile_image_url=_first(raw, "profileImageUrl", "profile_image_url"),
            description=_first(raw, "description"),
            vibe=str(vibe).lower(),
            last_updated=parse_timestamp(_first(raw, "lastUpdated", "last_updated")),
            org_type=_first(raw, "orgType", "org_type"),
            org_subtype=tuple(str(s) for s in subtype),
            listed_count=_as_int(_first(raw, "listedCount", "listed_count")),
            created_at=parse_timestamp(_first(raw, "createdAt", "created_at")),
            verification_type=_first(raw, "verificationType", "verification_type"),
            chains=parse_chains(_first(raw, "chains")),
        )


@dataclass(frozen=True)
class PathHop:
    node: NodeRef
    incoming_edge: EdgeType | None


@dataclass(frozen=True)
class OrgConnection:
    org: NodeRef
    user_relation_type: EdgeType
    prospect_relation_type: EdgeType
    match_source: MatchSource
    via_user: str | None = None


def _check_bound(hops: tuple[PathHop, ...], label: str) -> None:
    if len(hops) - 1 > MAX_PATH_HOPS:
        raise PathBoundError(
            f"{label} has {len(hops) - 1} hops; at most {MAX_PATH_HOPS} are supported"
        )


@dataclass(frozen=True)
class PathRecord:
    """One discovered path. Concrete variants add their own fields.

    ``hops`` runs from the source to ``destination`` (the candidate for
    introducer paths, the target for source paths). ``bridge`` runs from the
    candidate to the target and is empty for source paths.
    """

    path_type: ClassVar[PathType]

    pov: PathPov
    destination: PersonNode
    hops: tuple[PathHop, ...]
    bridge: tuple[PathHop, ...]
    reciprocal: bool

    def __post_init__(self) -> None:
        _check_bound(self.hops, f"{self.path_type.value} path")
        _check_bound(self.bridge, f"{self.path_type.value} bridge")

    @property
    def is_introducer(self) -> bool:
        return self.pov is PathPov.INTRODUCER

    def relationship_types(self) -> tuple[EdgeType, ...]:
        """Edge types that characterize the candidate's tie to the target."""
        raise NotImplementedError

    def auxiliary_nodes(self) -> tuple[NodeRef, ...]:
        """Organizations and people on the path besides the endpoints."""
        return ()


@dataclass(frozen=True)
class DirectPath(PathRecord):
    path_type: ClassVar[PathType] = PathType.DIRECT

    def relationship_types(self) -> tuple[EdgeType, ...]:
        return (EdgeType.FOLLOWS,)


@dataclass(frozen=True)
class OrgDirectPath(PathRecord):
    path_type: ClassVar[PathType] = PathType.ORG_DIRECT

    shared_org: NodeRef
    org_connection: OrgConnection

    def relationship_types(self) -> tuple[EdgeType, ...]:
        return (self.org_connection.user_relation_type,)

    def auxiliary_nodes(self) -> tuple[NodeRef, ...]:
        return (self.shared_org,)


@dataclass(frozen=True)
class OrgIndirectPath(PathRecord):
    path_type: ClassVar[PathType] = PathType.ORG_INDIRECT

    shared_org: NodeRef
    intermediary: NodeRef
    org_connection: OrgConnection

    def relationship_types(self) -> tuple[EdgeType, ...]:
        return (self.org_connection.user_relation_type,)

    def auxiliary_nodes(self) -> tuple[NodeRef, ...]:
        return (self.shared_org, self.intermediary)


@dataclass(frozen=True)
class SharedThirdPartyPath(PathRecord):
    path_type: ClassVar[PathType] = PathType.SHARED_THIRD_PARTY

    shared_org: NodeRef
    third_party: NodeRef
    prospect_org: NodeRef
    relation_types: tuple[EdgeType, ...]

    def relationship_types(self) -> tuple[EdgeType, ...]:
        return self.relation_types

    def auxiliary_nodes(self) -> tuple[NodeRef, ...]:
        return (self.shared_org, self.third_party, self.prospect_org)


@dataclass(frozen=True)
class ChainAffinityPath(PathRecord):
    path_type: ClassVar[PathType] = PathType.CHAIN_AFFINITY

    shared_org: NodeRef
    prospect_org: NodeRef
    chains: tuple[str, ...]

    def relationship_types(self) -> tuple[EdgeType, ...]:
        return (EdgeType.WORKS_AT,)

    def auxiliary_nodes(self) -> tuple[NodeRef, ...]:
        return (self.shared_org, self.prospect_org)


@dataclass(frozen=True)
class ScoreBreakdown:
    base: float
    relationship_multiplier: float
    account_quality: float
    bonuses: float
    freshness_decay: float
    total: float
    weights_version: str = ""


@dataclass(frozen=True)
class Candidate:
    """All introducer paths that end at the same person, merged."""

    person: PersonNode
    connection_types: tuple[PathType, ...]
    org_connections: tuple[OrgConnection, ...]
    shared_orgs: tuple[NodeRef, ...]
    intermediaries: tuple[NodeRef, ...]
    third_parties: tuple[NodeRef, ...]
    shared_chains: tuple[str, ...]
    relationship_types: tuple[EdgeType, ...]
    reciprocal: bool
    paths: tuple[PathRecord, ...]
    score: ScoreBreakdown | None = None

    @property
    def user_id(self) -> str:
        return self.person.user_id

    @property
    def primary_type(self) -> PathType:
        for path_type in PathType:
            if path_type in self.connection_types:
                return path_type
        return self.connection_types[0]

    @property
    def is_multi_path(self) -> bool:
        return len(self.connection_types) > 1

    @property
    def relevancy_score(self) -> float:
        return self.score.total if self.score else 0.0


@dataclass(frozen=True)
class ConnectionResult:
    source_user_id: str
    target_user_id: str
    introducers: tuple[Candidate, ...]
    direct_connections: tuple[PathRecord, ...]
    warnings: tuple[str, ...]
    unavailable_path_types: tuple[PathType, ...]
    source: PersonNode | None = None
    target: PersonNode | None = None

    @property
    def partial(self) -> bool:
        return len(self.unavailable_path_types) > 0
