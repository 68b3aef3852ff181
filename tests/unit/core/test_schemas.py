"""
Unit tests for core/schemas.py and core/ontology.py

Tests the record definitions including:
- Defaults and timezone-aware timestamps
- Deep copy via clone()
- Struct equality used for change detection
- Graph lookup helpers and snapshot emptiness
"""
from datetime import datetime, timezone

import msgspec
import pytest

from core.schemas import (
    GraphNode,
    GraphEdge,
    Graph,
    HistorySnapshot,
    SnapshotComparison,
    Position,
    as_utc,
    clone,
    clone_list,
    generate_id,
    now_utc,
)
from core.ontology import NodeType, EdgeType, NodeState, LayoutType


def test_node_defaults():
    """
    Validate GraphNode defaults.

    Verifies:
    - State defaults to inactive
    - properties defaults to an empty dict (not shared)
    - Timestamps are timezone-aware
    """
    first = GraphNode(type=NodeType.TASK, label="first")
    second = GraphNode(type=NodeType.TASK, label="second")

    first.properties["x"] = 1

    assert first.state == NodeState.INACTIVE
    assert second.properties == {}
    assert first.created_at.tzinfo is not None
    assert first.id == ""


def test_clone_is_deep_and_equal():
    """
    Validate that clone() returns an equal but independent copy.
    """
    node = GraphNode(
        id="a",
        type=NodeType.DATA,
        label="dataset",
        properties={"rows": [1, 2, 3]},
        position=Position(x=1.0, y=2.0),
    )

    copy = clone(node)
    copy.properties["rows"].append(4)
    copy.position.x = 99.0

    assert node.properties["rows"] == [1, 2, 3]
    assert node.position.x == 1.0
    assert clone(node) == node


def test_clone_validates_types():
    """
    Validate that clone() rejects values outside the closed vocabularies.
    """
    node = GraphNode(id="a", type=NodeType.TASK, label="a")
    node.state = "sleeping"

    with pytest.raises(msgspec.ValidationError):
        clone(node)


def test_clone_list():
    """
    Validate that clone_list copies every element.
    """
    edges = [GraphEdge(id="e1", type=EdgeType.DATA_FLOW, source_id="a", target_id="b")]

    copies = clone_list(edges, GraphEdge)
    copies[0].weight = 5.0

    assert edges[0].weight is None
    assert copies[0].id == "e1"


def test_equality_sees_every_field():
    """
    Validate that struct equality detects a change in any field.
    """
    stamp = now_utc()
    node = GraphNode(id="a", type=NodeType.TASK, label="a", created_at=stamp, updated_at=stamp)

    same = clone(node)
    moved = clone(node)
    moved.position = Position(x=0.0, y=0.0)

    assert same == node
    assert moved != node


def test_graph_lookup_helpers():
    """
    Validate Graph.get_node and Graph.get_edge.
    """
    graph = Graph(
        id="g1",
        name="Lookup",
        nodes=[GraphNode(id="a", type=NodeType.AGENT, label="a")],
        edges=[GraphEdge(id="e1", type=EdgeType.COMMUNICATION, source_id="a", target_id="a")],
    )

    assert graph.get_node("a").type == NodeType.AGENT
    assert graph.get_node("missing") is None
    assert graph.get_edge("e1").source_id == "a"
    assert graph.get_edge("missing") is None
    assert graph.layout == LayoutType.FORCE_DIRECTED.value


def test_snapshot_and_comparison_emptiness():
    """
    Validate HistorySnapshot.is_empty and SnapshotComparison.is_identical.
    """
    snapshot = HistorySnapshot(id=generate_id(), graph_id="g1", timestamp=now_utc())
    assert snapshot.is_empty()

    snapshot.removed_node_ids.append("a")
    assert not snapshot.is_empty()

    assert SnapshotComparison().is_identical()


def test_as_utc():
    """
    Validate that naive datetimes become UTC and aware ones are kept.
    """
    naive = datetime(2024, 1, 1, 12, 0)
    aware = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    assert as_utc(naive) == aware
    assert as_utc(aware) is aware


def test_records_serialize_to_json():
    """
    Validate that enums serialize by value.
    """
    node = GraphNode(id="a", type=NodeType.DECISION_POINT, label="choose", state=NodeState.WARNING)

    data = msgspec.json.decode(msgspec.json.encode(node))

    assert data["type"] == "decision_point"
    assert data["state"] == "warning"
