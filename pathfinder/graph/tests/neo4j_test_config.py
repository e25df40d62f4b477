"""Connection settings for the Neo4j integration tests.

The tests wipe the database they connect to, so they run against a
separate instance and refuse the one pathfinder itself reads from.
"""

import os

DEFAULT_TEST_URI = "bolt://localhost:17687"
APP_URI = "bolt://localhost:7687"


def get_test_neo4j_config() -> tuple[str, str, str]:
    uri = os.getenv("PATHFINDER_TEST_NEO4J_URI", DEFAULT_TEST_URI)
    user = os.getenv("PATHFINDER_TEST_NEO4J_USER", "neo4j")
    password = os.getenv("PATHFINDER_TEST_NEO4J_PASSWORD", "pathfinder-test")
    return uri, user, password


def guard_test_uri(uri: str) -> None:
    """Refuse the application's own graph, default or from NEO4J_URI."""
    protected = {APP_URI, os.getenv("NEO4J_URI", APP_URI).strip()}
    if uri.strip() in protected:
        raise RuntimeError(
            f"Refusing to clear the pathfinder graph at {uri}. "
            f"Set PATHFINDER_TEST_NEO4J_URI (default {DEFAULT_TEST_URI})"
        )
