"""Neo4j adapter for the graph access port.

People and organizations are ``:User`` nodes keyed by ``userId``. All reads
used by discovery are batched with ``UNWIND`` so a strategy issues a handful
of queries regardless of how many candidates it inspects.
"""

from typing import Any

from neo4j import GraphDatabase

from ..errors import ValidationError
from .schema import NodeVibe, edge_type_names, normalize_screen_name, validate_edge_type


class Neo4jStorage:
    """Read access to the relationship graph, plus snapshot import for fixtures."""

    def __init__(
        self,
        uri: str = "bolt://localhost:7687",
        user: str = "neo4j",
        password: str = "pathfinder",
    ):
        self.driver = GraphDatabase.driver(uri, auth=(user, password))

    def close(self):
        self.driver.close()

    def clear(self, force: bool = False):
        """Clear all nodes and relationships.

        Args:
            force: Must be True to execute destructive wipe.
        """
        if not force:
            raise RuntimeError("Refusing to clear database without force=True")
        with self.driver.session() as session:
            session.run("MATCH (n) DETACH DELETE n")

    def ensure_schema(self) -> list[str]:
        """Create the userId constraint and lookup indexes. Returns statements run."""
        statements = [
            "CREATE CONSTRAINT user_id_unique IF NOT EXISTS "
            "FOR (u:User) REQUIRE u.userId IS UNIQUE",
            "CREATE INDEX user_screen_name IF NOT EXISTS FOR (u:User) ON (u.screenName)",
            "CREATE INDEX user_screen_name_lower IF NOT EXISTS "
            "FOR (u:User) ON (u.screenNameLower)",
            "CREATE INDEX user_vibe IF NOT EXISTS FOR (u:User) ON (u.vibe)",
        ]
        with self.driver.session() as session:
            for statement in statements:
                session.run(statement)
        return statements

    def _serialize_value(self, value: Any) -> Any:
        """Convert Neo4j values into JSON-serializable values."""
        if value is None or isinstance(value, (str, int, float, bool)):
            return value
        if isinstance(value, list):
            return [self._serialize_value(v) for v in value]
        if isinstance(value, dict):
            return {k: self._serialize_value(v) for k, v in value.items()}
        if hasattr(value, "to_native"):
            return value.to_native().isoformat()
        return str(value)

    def _node_dict(self, node) -> dict:
        return self._serialize_value(dict(node))

    @staticmethod
    def _pattern(direction: str, edge_types: list[str] | None) -> str:
        type_filter = ""
        if edge_types:
            names = edge_type_names(edge_types)
            unknown = [name for name in names if not validate_edge_type(name)]
            if unknown:
                raise ValidationError(f"Unknown edge type: {', '.join(unknown)}")
            type_filter = ":" + "|".join(names)

        if direction == "out":
            return f"(n)-[r{type_filter}]->(neighbor:User)"
        if direction == "in":
            return f"(n)<-[r{type_filter}]-(neighbor:User)"
        return f"(n)-[r{type_filter}]-(neighbor:User)"

    def get_users(self, user_ids: list[str]) -> list[dict]:
        ids = list(dict.fromkeys(i for i in user_ids if i))
        if not ids:
            return []
        with self.driver.session() as session:
            result = session.run(
                """
                UNWIND $ids AS id
                MATCH (u:User {userId: id})
                RETURN u
                """,
                ids=ids,
            )
            return [self._node_dict(r["u"]) for r in result]

    def find_users_by_screen_names(self, screen_names: list[str]) -> list[dict]:
        names = sorted({normalize_screen_name(n) for n in screen_names} - {""})
        if not names:
            return []
        with self.driver.session() as session:
            result = session.run(
                """
                MATCH (u:User)
                WHERE u.screenNameLower IN $names OR toLower(u.screenName) IN $names
                RETURN u
                ORDER BY u.userId
                """,
                names=names,
            )
            return [self._node_dict(r["u"]) for r in result]

    def get_neighbors(
        self,
        node_id: str,
        direction: str = "both",
        edge_types: list[str] | None = None,
    ) -> list[dict]:
        """Get neighbors of a node.

        Args:
            node_id: The node's userId
            direction: "in", "out", or "both"
            edge_types: Optional list of relationship types to filter

        Returns:
            List of neighbor dicts with node and relationship info
        """
        return self.get_neighbors_batch(
            [node_id], direction=direction, edge_types=edge_types
        ).get(node_id, [])

    def get_neighbors_batch(
        self,
        node_ids: list[str],
        direction: str = "out",
        edge_types: list[str] | None = None,
    ) -> dict[str, list[dict]]:
        """Neighbors of many nodes in one round trip, keyed by requested id."""
        ids = list(dict.fromkeys(i for i in node_ids if i))
        neighbors: dict[str, list[dict]] = {node_id: [] for node_id in ids}
        if not ids:
            return neighbors

        pattern = self._pattern(direction, edge_types)
        with self.driver.session() as session:
            result = session.run(
                f"""
                UNWIND $ids AS id
                MATCH (n:User {{userId: id}})
                MATCH {pattern}
                RETURN id, neighbor, type(r) as relation,
                       CASE WHEN startNode(r) = n THEN 'out' ELSE 'in' END as direction
                """,
                ids=ids,
            )
            for r in result:
                neighbors[r["id"]].append(
                    {
                        "node": self._node_dict(r["neighbor"]),
                        "relation": r["relation"],
                        "direction": r["direction"],
                    }
                )
        return neighbors

    def get_stats(self) -> dict[str, Any]:
        """Get database statistics."""
        with self.driver.session() as session:
            node_count = session.run(
                "MATCH (u:User) RETURN count(u) as count"
            ).single()["count"]
            rel_count = session.run(
                "MATCH (:User)-[r]->(:User) RETURN count(r) as count"
            ).single()["count"]

            by_vibe = {
                row["vibe"]: row["count"]
                for row in session.run(
                    """
                    MATCH (u:User)
                    RETURN coalesce(u.vibe, 'unknown') as vibe, count(u) as count
                    """
                )
            }
            by_relation = {
                row["relation"]: row["count"]
                for row in session.run(
                    """
                    MATCH (:User)-[r]->(:User)
                    RETURN type(r) as relation, count(r) as count
                    """
                )
            }

        return {
            "nodes": node_count,
            "relationships": rel_count,
            "by_vibe": by_vibe,
            "by_relation": by_relation,
        }

    def import_snapshot(
        self, snapshot: dict[str, Any], clear_first: bool = False
    ) -> dict[str, int]:
        """Import a ``{"nodes": [...], "edges": [...]}`` snapshot payload."""
        nodes = snapshot.get("nodes", [])
        edges = snapshot.get("edges", [])

        for edge in edges:
            if not validate_edge_type(str(edge.get("relation", "")).upper()):
                raise ValidationError(f"Unknown edge type: {edge.get('relation')}")

        def _import_tx(tx) -> dict[str, int]:
            node_count = 0
            edge_count = 0

            if clear_first:
                tx.run("MATCH (n) DETACH DELETE n")

            for node in nodes:
                props = dict(node.get("properties", {}))
                user_id = node.get("id") or props.get("userId")
                if not user_id:
                    continue
                props["userId"] = user_id
                props.setdefault("vibe", NodeVibe.INDIVIDUAL.value)
                if props.get("screenName"):
                    props["screenNameLower"] = normalize_screen_name(props["screenName"])
                tx.run(
                    """
                    MERGE (u:User {userId: $id})
                    SET u += $props
                    """,
                    id=user_id,
                    props=props,
                )
                node_count += 1

            for edge in edges:
                relation = str(edge["relation"]).upper()
                tx.run(
                    f"""
                    MATCH (a:User {{userId: $from_id}}), (b:User {{userId: $to_id}})
                    MERGE (a)-[:{relation}]->(b)
                    """,
                    from_id=edge["from_id"],
                    to_id=edge["to_id"],
                )
                edge_count += 1

            return {"nodes": node_count, "edges": edge_count}

        with self.driver.session() as session:
            return session.execute_write(_import_tx)
