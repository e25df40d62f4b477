"""In-memory graph access port backed by a NetworkX multigraph."""

from collections import Counter
import json
import logging
from pathlib import Path
from typing import Any

import networkx as nx

from ..errors import ValidationError
from .schema import (
    NodeVibe,
    edge_type_names,
    normalize_screen_name,
    validate_edge,
    validate_vibe,
)

log = logging.getLogger(__name__)


class InMemoryGraph:
    """Relationship graph held in memory.

    Nodes are keyed by ``userId`` and carry the same camelCase properties as
    the Neo4j ``:User`` nodes. Parallel edges are keyed by relation type, so
    adding the same typed edge twice is a no-op.
    """

    def __init__(self):
        self.graph = nx.MultiDiGraph()

    def add_person(
        self,
        user_id: str,
        screen_name: str | None = None,
        name: str | None = None,
        *,
        vibe: str = NodeVibe.INDIVIDUAL.value,
        **properties: Any,
    ) -> None:
        """Add or update a user node."""
        user_id = str(user_id or "").strip()
        if not user_id:
            raise ValidationError("userId is required")
        if not validate_vibe(vibe):
            raise ValidationError(f"Unknown vibe: {vibe}")

        handle = screen_name or properties.pop("screenName", None) or user_id
        props = {
            "userId": user_id,
            "screenName": handle,
            "name": name or properties.pop("name", None) or handle,
            "vibe": vibe,
            **properties,
        }
        if self.graph.has_node(user_id):
            self.graph.nodes[user_id].update(props)
        else:
            self.graph.add_node(user_id, **props)

    def add_organization(
        self,
        user_id: str,
        screen_name: str | None = None,
        name: str | None = None,
        **properties: Any,
    ) -> None:
        self.add_person(
            user_id, screen_name, name, vibe=NodeVibe.ORGANIZATION.value, **properties
        )

    def add_edge(self, from_id: str, to_id: str, relation: str, strict: bool = False) -> None:
        """Add a typed edge between two existing nodes.

        Unknown relation types are rejected. Vibe mismatches are logged, or
        rejected when ``strict`` is set.
        """
        relation = str(relation or "").strip().upper()
        for node_id in (from_id, to_id):
            if not self.graph.has_node(node_id):
                raise ValidationError(f"Unknown node: {node_id}")

        result = validate_edge(
            self.graph.nodes[from_id].get("vibe"),
            self.graph.nodes[to_id].get("vibe"),
            relation,
            strict=strict,
        )
        if not result:
            raise ValidationError("; ".join(result.errors))
        for warning in result.warnings:
            log.warning(f"{from_id} -[{relation}]-> {to_id}: {warning}")

        if not self.graph.has_edge(from_id, to_id, key=relation):
            self.graph.add_edge(from_id, to_id, key=relation, relation=relation)

    def get_users(self, user_ids: list[str]) -> list[dict]:
        return [
            dict(self.graph.nodes[user_id])
            for user_id in dict.fromkeys(user_ids)
            if self.graph.has_node(user_id)
        ]

    def find_users_by_screen_names(self, screen_names: list[str]) -> list[dict]:
        wanted = {normalize_screen_name(name) for name in screen_names}
        wanted.discard("")
        return [
            dict(data)
            for _, data in sorted(self.graph.nodes(data=True))
            if normalize_screen_name(data.get("screenName")) in wanted
        ]

    def get_neighbors(
        self,
        node_id: str,
        direction: str = "both",
        edge_types: list[str] | None = None,
    ) -> list[dict]:
        if not self.graph.has_node(node_id):
            return []
        wanted = set(edge_type_names(edge_types)) if edge_types else None

        neighbors = []
        if direction in ("out", "both"):
            for _, neighbor, relation in self.graph.out_edges(node_id, keys=True):
                if wanted is None or relation in wanted:
                    neighbors.append(
                        {
                            "node": dict(self.graph.nodes[neighbor]),
                            "relation": relation,
                            "direction": "out",
                        }
                    )
        if direction in ("in", "both"):
            for neighbor, _, relation in self.graph.in_edges(node_id, keys=True):
                if wanted is None or relation in wanted:
                    neighbors.append(
                        {
                            "node": dict(self.graph.nodes[neighbor]),
                            "relation": relation,
                            "direction": "in",
                        }
                    )
        return neighbors

    def get_neighbors_batch(
        self,
        node_ids: list[str],
        direction: str = "out",
        edge_types: list[str] | None = None,
    ) -> dict[str, list[dict]]:
        return {
            node_id: self.get_neighbors(node_id, direction=direction, edge_types=edge_types)
            for node_id in node_ids
        }

    def close(self) -> None:
        """Nothing to release."""

    def get_stats(self) -> dict[str, Any]:
        by_vibe = Counter(
            data.get("vibe", "unknown") for _, data in self.graph.nodes(data=True)
        )
        by_relation = Counter(key for _, _, key in self.graph.edges(keys=True))
        return {
            "nodes": self.graph.number_of_nodes(),
            "relationships": self.graph.number_of_edges(),
            "by_vibe": dict(by_vibe),
            "by_relation": dict(by_relation),
        }

    @classmethod
    def from_snapshot(cls, snapshot: dict[str, Any]) -> "InMemoryGraph":
        """Build from ``{"nodes": [...], "edges": [...]}`` snapshot payload."""
        graph = cls()
        for node in snapshot.get("nodes", []):
            props = dict(node.get("properties", {}))
            user_id = node.get("id") or props.pop("userId", None)
            props.pop("userId", None)
            vibe = props.pop("vibe", NodeVibe.INDIVIDUAL.value)
            graph.add_person(user_id, vibe=vibe, **props)
        for edge in snapshot.get("edges", []):
            graph.add_edge(edge["from_id"], edge["to_id"], edge["relation"])
        return graph

    @classmethod
    def load_snapshot(cls, path: str | Path) -> "InMemoryGraph":
        """Load a snapshot JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_snapshot(data)
