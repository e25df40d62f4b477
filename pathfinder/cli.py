"""CLI for pathfinder."""

from dataclasses import replace
import json
import logging
from pathlib import Path

import click

from .discovery.config import DiscoveryConfig
from .discovery.pipeline import find_connections, resolve_target, result_payload
from .errors import PathfinderError
from .graph.memory_storage import InMemoryGraph
from .graph.neo4j_storage import Neo4jStorage
from .ranking.ranker import SORT_KEYS, rank
from .scoring.weights import DEFAULT_SCORE_WEIGHTS, ScoreWeights


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """Pathfinder - warm intro paths through your relationship graph."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _open_storage(snapshot: Path | None, uri: str, user: str, password: str):
    if snapshot is not None:
        return InMemoryGraph.load_snapshot(snapshot)
    return Neo4jStorage(uri=uri, user=user, password=password)


@cli.command()
@click.argument("source_user_id", type=str)
@click.argument("target_screen_name", type=str)
@click.option(
    "--sort",
    "sort_key",
    type=click.Choice(SORT_KEYS),
    default="relevancy",
    help="Sort order for introducers",
)
@click.option("--search", default="", help="Filter by name, handle, bio or path entity")
@click.option("--page", type=int, default=1, help="1-based page number")
@click.option("--page-size", type=int, default=None, help="Introducers per page")
@click.option("--json", "as_json", is_flag=True, help="Print the full JSON payload")
@click.option(
    "--snapshot",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Read the graph from a JSON snapshot instead of Neo4j",
)
@click.option(
    "--weights",
    "weights_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML score weight table",
)
@click.option("--timeout", type=float, default=None, help="Discovery deadline in seconds")
@click.option("--uri", envvar="NEO4J_URI", default="bolt://localhost:7687", help="Neo4j URI")
@click.option("--user", envvar="NEO4J_USER", default="neo4j", help="Neo4j username")
@click.option(
    "--password", envvar="NEO4J_PASSWORD", default="pathfinder", help="Neo4j password"
)
def find(
    source_user_id: str,
    target_screen_name: str,
    sort_key: str,
    search: str,
    page: int,
    page_size: int | None,
    as_json: bool,
    snapshot: Path | None,
    weights_file: Path | None,
    timeout: float | None,
    uri: str,
    user: str,
    password: str,
):
    """Find people who can introduce SOURCE_USER_ID to TARGET_SCREEN_NAME."""
    config = DiscoveryConfig.from_env()
    if timeout is not None:
        config = replace(config, discovery_timeout_sec=max(0.1, timeout))

    try:
        storage = _open_storage(snapshot, uri, user, password)
    except PathfinderError as exc:
        raise SystemExit(f"Error: {exc}") from exc

    try:
        weights = (
            ScoreWeights.from_yaml(weights_file) if weights_file else DEFAULT_SCORE_WEIGHTS
        )
        target = resolve_target(storage, target_screen_name)
        result = find_connections(
            source_user_id,
            target.user_id,
            storage=storage,
            config=config,
            weights=weights,
        )
        paged = rank(
            list(result.introducers),
            sort_key=sort_key,
            search_term=search,
            page=page,
            page_size=page_size,
            config=config,
        )
    except PathfinderError as exc:
        raise SystemExit(f"Error: {exc}") from exc
    finally:
        storage.close()

    if as_json:
        payload = result_payload(result, candidates=list(paged.items))
        payload["page"] = {
            "page": paged.page,
            "pageSize": paged.page_size,
            "total": paged.total,
            "totalPages": paged.total_pages,
        }
        click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    click.echo(f"Introducers to @{target.screen_name}: {paged.total}")
    for warning in result.warnings:
        click.echo(f"  [warning] {warning}")

    offset = (paged.page - 1) * paged.page_size
    for i, candidate in enumerate(paged.items, offset + 1):
        types = ", ".join(t.value for t in candidate.connection_types)
        click.echo(
            f"{i}. [{candidate.relevancy_score:.1f}] {candidate.person.name} "
            f"(@{candidate.person.screen_name}) - {types}"
        )
        for org in candidate.shared_orgs:
            click.echo(f"   via {org.name} (@{org.screen_name})")

    if paged.total_pages > 1:
        click.echo(f"\nPage {paged.page}/{paged.total_pages}")

    if result.direct_connections:
        click.echo(f"\nYou are connected directly: {len(result.direct_connections)} path(s)")
        for record in result.direct_connections:
            shared_org = getattr(record, "shared_org", None)
            via = f" via {shared_org.name}" if shared_org else ""
            click.echo(f"  - {record.path_type.value}{via}")


@cli.command("init-schema")
@click.option("--uri", envvar="NEO4J_URI", default="bolt://localhost:7687", help="Neo4j URI")
@click.option("--user", envvar="NEO4J_USER", default="neo4j", help="Neo4j username")
@click.option(
    "--password", envvar="NEO4J_PASSWORD", default="pathfinder", help="Neo4j password"
)
def init_schema(uri: str, user: str, password: str):
    """Create the Neo4j constraint and indexes used by discovery."""
    storage = Neo4jStorage(uri=uri, user=user, password=password)
    try:
        statements = storage.ensure_schema()
    finally:
        storage.close()
    click.echo(f"Applied {len(statements)} schema statements to {uri}")


@cli.command()
@click.option(
    "--snapshot",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Read the graph from a JSON snapshot instead of Neo4j",
)
@click.option("--uri", envvar="NEO4J_URI", default="bolt://localhost:7687", help="Neo4j URI")
@click.option("--user", envvar="NEO4J_USER", default="neo4j", help="Neo4j username")
@click.option(
    "--password", envvar="NEO4J_PASSWORD", default="pathfinder", help="Neo4j password"
)
def stats(snapshot: Path | None, uri: str, user: str, password: str):
    """Show graph node and relationship counts."""
    storage = _open_storage(snapshot, uri, user, password)
    try:
        data = storage.get_stats()
    finally:
        storage.close()

    click.echo(f"Nodes: {data['nodes']}")
    click.echo(f"Relationships: {data['relationships']}")
    for vibe, count in sorted(data["by_vibe"].items()):
        click.echo(f"  {vibe}: {count}")
    for relation, count in sorted(data["by_relation"].items()):
        click.echo(f"  {relation}: {count}")


if __name__ == "__main__":
    cli()
