"""
Unit tests for viz/core.py - render-ready projections

Tests the visualization layer including:
- VizNode/VizEdge colouring
- Full snapshot construction with layer hints
- Streaming deltas built from history snapshots
- Arrow IPC export through polars
"""
import io

import polars as pl

from core.schemas import GraphNode, GraphEdge, Position
from core.ontology import NodeType, EdgeType, NodeState
from viz.core import (
    NODE_COLORS,
    STATE_COLORS,
    EDGE_COLORS,
    HIGHLIGHT_EDGE_COLOR,
    VizNode,
    VizEdge,
    GraphDelta,
    create_viz_snapshot,
    serialize_to_arrow,
)


def test_viz_node_colours_by_type_and_state():
    """
    Validate node colouring modes and the explicit colour override.
    """
    node = GraphNode(id="a", type=NodeType.AGENT, label="Planner", state=NodeState.ERROR)

    by_type = VizNode.from_graph_node(node)
    by_state = VizNode.from_graph_node(node, color_mode="state")
    node.color = "#123456"
    explicit = VizNode.from_graph_node(node)

    assert by_type.color == NODE_COLORS["agent"]
    assert by_state.color == STATE_COLORS["error"]
    assert explicit.color == "#123456"
    assert by_type.label == "Planner"


def test_viz_node_carries_position():
    """
    Validate that positioned nodes expose x/y.
    """
    node = GraphNode(id="a", type=NodeType.TASK, label="", position=Position(x=3.0, y=4.0))

    viz = VizNode.from_graph_node(node)

    assert (viz.x, viz.y) == (3.0, 4.0)
    assert viz.label.startswith("task:")


def test_viz_edge_highlight_colour():
    """
    Validate edge colouring by type and the highlight override.
    """
    edge = GraphEdge(id="e1", type=EdgeType.DATA_FLOW, source_id="a", target_id="b")

    plain = VizEdge.from_graph_edge(edge)
    edge.state = "highlighted"
    edge.animated = True
    highlighted = VizEdge.from_graph_edge(edge)

    assert plain.color == EDGE_COLORS["data_flow"]
    assert plain.weight == 1.0
    assert highlighted.color == HIGHLIGHT_EDGE_COLOR
    assert highlighted.animated is True


def test_create_viz_snapshot_layer_hints(store, g1):
    """
    Validate snapshot construction from a live graph.

    Verifies:
    - Counts, version and layout are carried over
    - Layers follow hierarchical levels
    - Root and leaf flags
    """
    graph = store.get_graph(g1)

    snapshot = create_viz_snapshot(graph, label="live")

    nodes = {n.id: n for n in snapshot.nodes}
    assert snapshot.node_count == 2
    assert snapshot.edge_count == 1
    assert snapshot.version == 4
    assert snapshot.layer_count == 2
    assert nodes["a"].layer == 0 and nodes["a"].is_root and not nodes["a"].is_leaf
    assert nodes["b"].layer == 1 and nodes["b"].is_leaf
    assert snapshot.root_count == 1
    assert snapshot.leaf_count == 1
    assert snapshot.to_dict()["label"] == "live"


def test_create_viz_snapshot_of_empty_graph(store):
    """
    Validate that an empty graph produces an empty snapshot.
    """
    store.initialize_graph("empty", "Empty")

    snapshot = create_viz_snapshot(store.get_graph("empty"))

    assert snapshot.nodes == []
    assert snapshot.layer_count == 0


def test_graph_delta_from_history_snapshot(store, history, g1):
    """
    Validate that a history delta maps onto a streaming delta.
    """
    history.record_snapshot(g1)
    store.remove_node(g1, "a")
    snapshot = history.get_snapshot(history.record_snapshot(g1, "removed a"))

    delta = GraphDelta.from_history_snapshot(snapshot, sequence=2)

    assert delta.nodes_removed == ["a"]
    assert delta.edges_removed == ["e1"]
    assert delta.nodes_added == []
    assert delta.sequence == 2
    assert delta.event == "removed a"
    assert not delta.is_empty()
    assert delta.to_dict()["graph_id"] == g1


def test_serialize_to_arrow(store, g1):
    """
    Validate Arrow IPC export of nodes and edges.
    """
    store.apply_layout(g1, "grid")
    snapshot = create_viz_snapshot(store.get_graph(g1))

    nodes_bytes, edges_bytes = serialize_to_arrow(snapshot)

    nodes = pl.read_ipc(io.BytesIO(nodes_bytes))
    edges = pl.read_ipc(io.BytesIO(edges_bytes))
    assert nodes["id"].to_list() == ["a", "b"]
    assert nodes["x"].to_list() == [50.0, 200.0]
    assert edges["source"].to_list() == ["a"]
    assert edges["target"].to_list() == ["b"]
