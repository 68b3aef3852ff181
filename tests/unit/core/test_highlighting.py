"""
Unit tests for core/highlighting.py - PathHighlighter

Tests the highlight overlay including:
- Node, edge and path highlighting
- Highlight types and active executions
- Clearing (including elements removed meanwhile)
- Listener notification
"""
from core.highlighting import PathHighlighter
from core.schemas import GraphNode, GraphEdge
from core.ontology import NodeType, EdgeType, NodeState


def _chain_graph(store):
    """a -> b -> c, plus an unrelated node d."""
    store.initialize_graph("g1", "Chain")
    for node_id in ("a", "b", "c", "d"):
        store.add_node("g1", GraphNode(id=node_id, type=NodeType.TASK, label=node_id))
    store.add_edge("g1", GraphEdge(id="ab", type=EdgeType.EXECUTION_FLOW, source_id="a", target_id="b"))
    store.add_edge("g1", GraphEdge(id="bc", type=EdgeType.EXECUTION_FLOW, source_id="b", target_id="c"))
    return "g1"


# =============================================================================
# HIGHLIGHT TESTS
# =============================================================================

def test_highlight_node_sets_state(store, highlighter, g1):
    """
    Validate that highlight_node marks the node and remembers the type.
    """
    assert highlighter.highlight_node(g1, "a", "critical") is True

    assert store.get_graph(g1).get_node("a").state == NodeState.HIGHLIGHTED
    assert highlighter.get_highlighted_elements(g1).node_ids == ["a"]
    assert highlighter.get_highlight_type(g1, "a") == "critical"


def test_highlight_edge_sets_state_and_animation(store, highlighter, g1):
    """
    Validate that highlight_edge sets state "highlighted" and animated.
    """
    assert highlighter.highlight_edge(g1, "e1") is True

    edge = store.get_graph(g1).get_edge("e1")
    assert edge.state == "highlighted"
    assert edge.animated is True
    assert highlighter.get_highlight_type(g1, "e1") == "default"


def test_highlight_missing_elements_returns_false(highlighter, g1):
    """
    Validate that missing graphs, nodes and edges are soft failures.
    """
    assert highlighter.highlight_node(g1, "ghost") is False
    assert highlighter.highlight_edge(g1, "ghost") is False
    assert highlighter.highlight_node("nonexistent", "a") is False
    assert highlighter.get_highlighted_elements(g1).node_ids == []


def test_highlight_path_partial_failure(store, highlighter, g1):
    """
    Validate that a path with a missing element still highlights the rest.
    """
    result = highlighter.highlight_path(g1, ["a", "ghost"], ["e1"], "route")

    assert result is False
    highlights = highlighter.get_highlighted_elements(g1)
    assert highlights.node_ids == ["a"]
    assert highlights.edge_ids == ["e1"]
    assert highlighter.get_elements_by_highlight_type(g1, "route").edge_ids == ["e1"]


def test_highlight_active_execution(store, highlighter):
    """
    Validate that an active execution highlights the task's neighbourhood.

    Verifies:
    - The task, its incident edges and their other endpoints are highlighted
    - Unrelated nodes are left alone
    - The task is listed as an active execution
    """
    graph_id = _chain_graph(store)

    assert highlighter.highlight_active_execution(graph_id, "b") is True

    elements = highlighter.get_elements_by_highlight_type(graph_id, "active-execution")
    assert elements.node_ids == ["b", "a", "c"]
    assert elements.edge_ids == ["ab", "bc"]
    assert highlighter.get_active_executions(graph_id) == ["b"]
    assert store.get_graph(graph_id).get_node("d").state == NodeState.INACTIVE


def test_highlight_active_execution_missing_task(store, highlighter):
    """
    Validate that an unknown task is a soft failure.
    """
    graph_id = _chain_graph(store)

    assert highlighter.highlight_active_execution(graph_id, "ghost") is False
    assert highlighter.highlight_active_execution("nonexistent", "a") is False
    assert highlighter.get_active_executions(graph_id) == []


# =============================================================================
# CLEAR TESTS
# =============================================================================

def test_clear_highlights_resets_elements(store, highlighter, g1):
    """
    Validate that clearing resets nodes to active and edges to plain.
    """
    highlighter.highlight_path(g1, ["a", "b"], ["e1"])

    assert highlighter.clear_highlights(g1) is True

    graph = store.get_graph(g1)
    assert graph.get_node("a").state == NodeState.ACTIVE
    assert graph.get_node("b").state == NodeState.ACTIVE
    assert graph.get_edge("e1").state is None
    assert graph.get_edge("e1").animated is False
    assert highlighter.get_highlighted_elements(g1).node_ids == []
    assert highlighter.get_highlight_type(g1, "a") is None


def test_clear_highlights_skips_removed_elements(store, highlighter, g1):
    """
    Validate that elements deleted since highlighting don't break clearing.
    """
    highlighter.highlight_path(g1, ["a", "b"], ["e1"])
    store.remove_node(g1, "a")

    assert highlighter.clear_highlights(g1) is True
    assert store.get_graph(g1).get_node("b").state == NodeState.ACTIVE


def test_clear_without_highlights_is_noop(store, highlighter, g1):
    """
    Validate that clearing an untouched graph changes nothing.
    """
    version = store.get_graph(g1).version

    assert highlighter.clear_highlights(g1) is True
    assert store.get_graph(g1).version == version


# =============================================================================
# SUBSCRIPTION TESTS
# =============================================================================

def test_highlight_listeners_are_notified(highlighter, g1):
    """
    Validate that listeners get the current overlay, then each change.
    """
    received = []
    unsubscribe = highlighter.subscribe_to_highlight_updates(g1, received.append)

    highlighter.highlight_node(g1, "a")
    unsubscribe()
    unsubscribe()
    highlighter.highlight_node(g1, "b")

    assert received[0].node_ids == []
    assert received[-1].node_ids == ["a"]
    assert all("b" not in h.node_ids for h in received)


def test_returned_highlights_are_copies(highlighter, g1):
    """
    Validate that editing a returned HighlightSet changes nothing inside.
    """
    highlighter.highlight_node(g1, "a")

    highlights = highlighter.get_highlighted_elements(g1)
    highlights.node_ids.append("forged")

    assert highlighter.get_highlighted_elements(g1).node_ids == ["a"]


def test_separate_highlighters_share_store_state(store, mutation_logger, g1):
    """
    Validate that the overlay is per highlighter but states live in the store.
    """
    first = PathHighlighter(store, logger=mutation_logger)
    second = PathHighlighter(store, logger=mutation_logger)

    first.highlight_node(g1, "a")

    assert second.get_highlighted_elements(g1).node_ids == []
    assert store.get_graph(g1).get_node("a").state == NodeState.HIGHLIGHTED
