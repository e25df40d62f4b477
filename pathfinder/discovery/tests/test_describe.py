from pathfinder.discovery.describe import describe_path
from pathfinder.discovery.discoverers import (
    ChainAffinityDiscoverer,
    OrgIndirectDiscoverer,
    SharedThirdPartyDiscoverer,
)
from pathfinder.discovery.types import PersonNode
from pathfinder.graph.memory_storage import InMemoryGraph

SOURCE = PersonNode(user_id="a", screen_name="alice", name="Alice")
TARGET = PersonNode(user_id="b", screen_name="bob", name="Bob")


def _graph() -> InMemoryGraph:
    graph = InMemoryGraph()
    graph.add_person("a", "alice", "Alice")
    graph.add_person("b", "bob", "Bob")
    graph.add_person("c", "carol", "Carol")
    return graph


def test_introducer_path_roles_in_walk_order():
    graph = _graph()
    graph.add_person("y", "yara", "Yara")
    graph.add_organization("x", "orgx", "Org X")
    graph.add_edge("c", "a", "FOLLOWS")
    graph.add_edge("c", "x", "WORKS_AT")
    graph.add_edge("y", "x", "WORKS_AT")
    for left, right in (("c", "y"), ("y", "b")):
        graph.add_edge(left, right, "FOLLOWS")
        graph.add_edge(right, left, "FOLLOWS")
    (record,) = OrgIndirectDiscoverer(graph).discover("a", "b")

    description = describe_path(record, source=SOURCE, target=TARGET)

    assert description.path_type == "org_indirect"
    assert description.pov == "introducer"
    assert [(n.user_id, n.role, n.relationship) for n in description.nodes] == [
        ("a", "you", None),
        ("c", "introducer", "FOLLOWS"),
        ("x", "organization", "WORKS_AT"),
        ("y", "intermediary", "WORKS_AT"),
        ("b", "prospect", "FOLLOWS"),
    ]
    assert description.chains == ()


def test_source_path_labels_third_party():
    graph = _graph()
    graph.add_organization("orgA", "orga", "Org A")
    graph.add_organization("orgB", "orgb", "Org B")
    graph.add_organization("fund", "fund", "Big Fund")
    graph.add_edge("a", "orgA", "WORKS_AT")
    graph.add_edge("fund", "orgA", "INVESTED_IN")
    graph.add_edge("fund", "orgB", "INVESTED_IN")
    graph.add_edge("b", "orgB", "WORKS_AT")
    (record,) = SharedThirdPartyDiscoverer(graph).discover("a", "b")

    description = describe_path(record, source=SOURCE, target=TARGET)

    assert [n.role for n in description.nodes] == [
        "you",
        "organization",
        "third_party",
        "organization",
        "prospect",
    ]


def test_chain_affinity_carries_chains_not_nodes():
    graph = _graph()
    graph.add_organization("orgC", "orgc", chains=["Base"])
    graph.add_organization("orgB", "orgb", chains=["Base"])
    graph.add_edge("c", "a", "FOLLOWS")
    graph.add_edge("c", "orgC", "WORKS_AT")
    graph.add_edge("b", "orgB", "WORKS_AT")
    (record,) = ChainAffinityDiscoverer(graph).discover("a", "b")

    description = describe_path(record, source=SOURCE, target=TARGET)

    assert description.chains == ("Base",)
    assert "Base" not in [n.name for n in description.nodes]
    assert [n.relationship for n in description.nodes][3] is None
