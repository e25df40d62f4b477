"""Read-only graph access contract used by the discovery pipeline."""

from typing import Protocol


class GraphPort(Protocol):
    """Pattern lookups over the property graph.

    Neighbor rows have the shape
    ``{"node": {...props}, "relation": "WORKS_AT", "direction": "out"|"in"}``
    where node props use the stored camelCase names (``userId``,
    ``screenName``, ``lastUpdated``...).
    """

    def get_users(self, user_ids: list[str]) -> list[dict]: ...

    def find_users_by_screen_names(self, screen_names: list[str]) -> list[dict]: ...

    def get_neighbors(
        self,
        node_id: str,
        direction: str = "both",
        edge_types: list[str] | None = None,
    ) -> list[dict]: ...

    def get_neighbors_batch(
        self,
        node_ids: list[str],
        direction: str = "out",
        edge_types: list[str] | None = None,
    ) -> dict[str, list[dict]]: ...

    def close(self) -> None: ...
