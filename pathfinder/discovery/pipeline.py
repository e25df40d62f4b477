"""Connection discovery orchestration: fan-out, aggregate, score, rank."""

from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime
import logging
import os
import time

from ..errors import GraphUnavailableError, TargetNotFoundError, ValidationError
from ..graph.neo4j_storage import Neo4jStorage
from ..graph.schema import normalize_screen_name
from ..ranking.ranker import sort_candidates
from ..scoring.scorer import score_candidates
from ..scoring.weights import DEFAULT_SCORE_WEIGHTS, ScoreWeights
from .aggregator import aggregate, validate_endpoints
from .cache import ResultCache
from .config import DEFAULT_DISCOVERY_CONFIG, DiscoveryConfig
from .describe import describe_path
from .discoverers import PathDiscoverer, build_discoverers
from .port import GraphPort
from .types import (
    Candidate,
    ChainAffinityPath,
    ConnectionResult,
    NodeRef,
    OrgConnection,
    OrgIndirectPath,
    PathRecord,
    PathType,
    PersonNode,
    SharedThirdPartyPath,
)

log = logging.getLogger(__name__)


def _default_storage() -> Neo4jStorage:
    return Neo4jStorage(
        uri=os.environ.get("NEO4J_URI", "bolt://localhost:7687"),
        user=os.environ.get("NEO4J_USER", "neo4j"),
        password=os.environ.get("NEO4J_PASSWORD", "pathfinder"),
    )


def _empty_result(
    source_user_id: str,
    target_user_id: str,
    source: PersonNode | None = None,
    target: PersonNode | None = None,
) -> ConnectionResult:
    return ConnectionResult(
        source_user_id=source_user_id,
        target_user_id=target_user_id,
        introducers=tuple(),
        direct_connections=tuple(),
        warnings=tuple(),
        unavailable_path_types=tuple(),
        source=source,
        target=target,
    )


def resolve_target(storage: GraphPort, screen_name: str) -> PersonNode:
    """Resolve a handle (with or without @) to its user node."""
    normalized = normalize_screen_name(screen_name)
    if not normalized:
        raise ValidationError("target screen name is required")

    try:
        rows = storage.find_users_by_screen_names([normalized])
    except Exception as exc:
        raise GraphUnavailableError(f"screen name lookup failed: {exc}") from exc

    for row in rows:
        person = PersonNode.from_record(row)
        if person.user_id and normalize_screen_name(person.screen_name) == normalized:
            return person
    raise TargetNotFoundError(f"No user found with screen name @{normalized}")


def _run_discoverers(
    discoverers: list[PathDiscoverer],
    source_user_id: str,
    target_user_id: str,
    config: DiscoveryConfig,
) -> tuple[list[PathRecord], list[str], list[PathType]]:
    """Run every strategy concurrently under one deadline.

    A strategy that raises or misses the deadline contributes no paths and
    is reported in the returned warnings and unavailable path types.
    """
    pool = ThreadPoolExecutor(
        max_workers=max(1, config.max_workers), thread_name_prefix="discover"
    )
    try:
        futures = [
            (pool.submit(discoverer.discover, source_user_id, target_user_id), discoverer)
            for discoverer in discoverers
        ]
        _, pending = wait(
            [future for future, _ in futures],
            timeout=max(0.1, config.discovery_timeout_sec),
        )
    finally:
        pool.shutdown(wait=False, cancel_futures=True)

    records: list[PathRecord] = []
    warnings: list[str] = []
    unavailable: list[PathType] = []

    for future, discoverer in futures:
        label = discoverer.path_type.value
        if future in pending:
            future.cancel()
            log.warning(
                f"{label} discovery timed out after {config.discovery_timeout_sec}s"
            )
            warnings.append(f"{label}_timed_out")
            unavailable.append(discoverer.path_type)
            continue
        try:
            records.extend(future.result())
        except Exception as exc:
            log.warning(f"{label} discovery failed: {exc}")
            warnings.append(f"{label}_failed")
            unavailable.append(discoverer.path_type)

    return records, warnings, unavailable


def find_connections(
    source_user_id: str,
    target_user_id: str,
    *,
    storage: GraphPort | None = None,
    config: DiscoveryConfig = DEFAULT_DISCOVERY_CONFIG,
    weights: ScoreWeights = DEFAULT_SCORE_WEIGHTS,
    as_of: datetime | None = None,
    cache: ResultCache | None = None,
    discoverers: list[PathDiscoverer] | None = None,
) -> ConnectionResult:
    """Discover, merge and score every introducer between two users.

    Raises ValidationError for empty ids or a self-path, and
    GraphUnavailableError when the graph cannot be read at all.
    Partial strategy failures are reported on the result instead.
    """
    validate_endpoints(source_user_id, target_user_id)
    source_user_id = source_user_id.strip()
    target_user_id = target_user_id.strip()

    if cache is not None:
        cached = cache.get(source_user_id, target_user_id)
        if cached is not None:
            log.debug(f"Cache hit for {source_user_id}:{target_user_id}")
            return cached

    owned_storage = storage is None
    db = storage or _default_storage()
    started = time.perf_counter()

    try:
        try:
            rows = db.get_users([source_user_id, target_user_id])
        except Exception as exc:
            raise GraphUnavailableError(f"graph lookup failed: {exc}") from exc

        endpoints = {
            person.user_id: person for person in map(PersonNode.from_record, rows)
        }
        source = endpoints.get(source_user_id)
        target = endpoints.get(target_user_id)
        if source is None or target is None:
            missing = source_user_id if source is None else target_user_id
            log.info(f"User {missing} not in graph; no connections to report")
            return _empty_result(source_user_id, target_user_id, source, target)

        strategies = discoverers
        if strategies is None:
            strategies = build_discoverers(db, max_hops=config.max_path_hops)
        records, warnings, unavailable = _run_discoverers(
            strategies, source_user_id, target_user_id, config
        )
        if strategies and len(unavailable) == len(strategies):
            raise GraphUnavailableError(
                f"all discovery strategies failed: {', '.join(warnings)}"
            )

        candidates = aggregate(
            records, source_user_id=source_user_id, target_user_id=target_user_id
        )
        scored = score_candidates(candidates, weights=weights, as_of=as_of)

        result = ConnectionResult(
            source_user_id=source_user_id,
            target_user_id=target_user_id,
            introducers=tuple(sort_candidates(scored, "relevancy")),
            direct_connections=tuple(r for r in records if not r.is_introducer),
            warnings=tuple(warnings),
            unavailable_path_types=tuple(unavailable),
            source=source,
            target=target,
        )

        elapsed = time.perf_counter() - started
        log.info(
            f"Found {len(result.introducers)} introducers and "
            f"{len(result.direct_connections)} direct connections "
            f"for {source_user_id} -> {target_user_id} in {elapsed:.2f}s"
            + (" (partial)" if result.partial else "")
        )

        if cache is not None:
            cache.put(result)
        return result
    finally:
        if owned_storage:
            db.close()


def _ref_payload(ref: NodeRef | None) -> dict | None:
    if ref is None:
        return None
    return {"userId": ref.user_id, "screenName": ref.screen_name, "name": ref.name}


def _org_connection_payload(connection: OrgConnection) -> dict:
    return {
        "orgUserId": connection.org.user_id,
        "orgScreenName": connection.org.screen_name,
        "orgName": connection.org.name,
        "userRelationType": connection.user_relation_type.value,
        "prospectRelationType": connection.prospect_relation_type.value,
        "matchSource": connection.match_source.value,
        "viaUser": connection.via_user,
    }


def _description_payload(
    record: PathRecord, source: PersonNode | None, target: PersonNode | None
) -> dict | None:
    if source is None or target is None:
        return None
    description = describe_path(record, source=source, target=target)
    return {
        "pathType": description.path_type,
        "pov": description.pov,
        "nodes": [
            {
                "userId": node.user_id,
                "screenName": node.screen_name,
                "name": node.name,
                "role": node.role,
                "relationship": node.relationship,
            }
            for node in description.nodes
        ],
        "chains": list(description.chains),
    }


def candidate_payload(
    candidate: Candidate,
    source: PersonNode | None = None,
    target: PersonNode | None = None,
) -> dict:
    """Presentation contract for one candidate. Rounding happens only here."""
    person = candidate.person
    primary = candidate.primary_type
    primary_paths = [r for r in candidate.paths if r.path_type is primary]

    primary_connections: list[dict] = []
    for record in primary_paths:
        connection = getattr(record, "org_connection", None)
        if connection is not None:
            payload = _org_connection_payload(connection)
            if payload not in primary_connections:
                primary_connections.append(payload)

    intermediary = next(
        (r.intermediary for r in candidate.paths if isinstance(r, OrgIndirectPath)), None
    )
    third_party = next(
        (r.third_party for r in candidate.paths if isinstance(r, SharedThirdPartyPath)),
        None,
    )
    chain_paths = [r for r in candidate.paths if isinstance(r, ChainAffinityPath)]

    score = candidate.score
    breakdown = None
    if score is not None:
        breakdown = {
            "base": round(score.base, 1),
            "relationshipMultiplier": round(score.relationship_multiplier, 2),
            "accountQuality": round(score.account_quality, 1),
            "bonuses": round(score.bonuses, 1),
            "freshnessDecay": round(score.freshness_decay, 2),
            "total": round(score.total, 1),
            "weightsVersion": score.weights_version,
        }

    return {
        "userId": person.user_id,
        "name": person.name,
        "screenName": person.screen_name,
        "profileImageUrl": person.profile_image_url,
        "description": person.description,
        "followersCount": person.followers_count,
        "followingCount": person.following_count,
        "verified": person.verified,
        "connectionType": primary.value,
        "connectionTypes": [t.value for t in candidate.connection_types],
        "orgConnections": primary_connections,
        "sharedOrg": _ref_payload(candidate.shared_orgs[0] if candidate.shared_orgs else None),
        "intermediary": _ref_payload(intermediary),
        "thirdParty": _ref_payload(third_party),
        "sharedChains": list(chain_paths[0].chains) if chain_paths else [],
        "allOrgConnections": [_org_connection_payload(c) for c in candidate.org_connections],
        "allSharedOrgs": [_ref_payload(r) for r in candidate.shared_orgs],
        "allIntermediaries": [_ref_payload(r) for r in candidate.intermediaries],
        "allThirdParties": [_ref_payload(r) for r in candidate.third_parties],
        "allSharedChains": list(candidate.shared_chains),
        "isReciprocal": candidate.reciprocal,
        "isMultiPath": candidate.is_multi_path,
        "relevancyScore": round(candidate.relevancy_score, 1),
        "scoreBreakdown": breakdown,
        "paths": [
            description
            for description in (
                _description_payload(r, source, target) for r in candidate.paths
            )
            if description is not None
        ],
    }


def direct_connection_payload(
    record: PathRecord, source: PersonNode | None, target: PersonNode | None
) -> dict:
    """Presentation contract for a path the source holds without an introducer."""
    return {
        "connectionType": record.path_type.value,
        "sharedOrg": _ref_payload(getattr(record, "shared_org", None)),
        "intermediary": _ref_payload(getattr(record, "intermediary", None)),
        "thirdParty": _ref_payload(getattr(record, "third_party", None)),
        "prospectOrg": _ref_payload(getattr(record, "prospect_org", None)),
        "sharedChains": list(getattr(record, "chains", ())),
        "isReciprocal": record.reciprocal,
        "path": _description_payload(record, source, target),
    }


def result_payload(
    result: ConnectionResult, candidates: list[Candidate] | None = None
) -> dict:
    """Serialize a result; ``candidates`` overrides the introducer list (e.g. one page)."""
    items = list(result.introducers) if candidates is None else list(candidates)

    by_type: dict[str, int] = {t.value: 0 for t in PathType}
    for candidate in result.introducers:
        for path_type in candidate.connection_types:
            by_type[path_type.value] += 1

    return {
        "sourceUserId": result.source_user_id,
        "targetUserId": result.target_user_id,
        "introducers": [
            candidate_payload(c, result.source, result.target) for c in items
        ],
        "directConnections": [
            direct_connection_payload(r, result.source, result.target)
            for r in result.direct_connections
        ],
        "counts": {
            "introducers": len(result.introducers),
            "directConnections": len(result.direct_connections),
            "byType": by_type,
        },
        "partialResults": result.partial,
        "unavailablePathTypes": [t.value for t in result.unavailable_path_types],
        "warnings": list(result.warnings),
    }
