"""
AGENTVIZ CORE - Central exports for the graph data model.

This module provides access to:
- Vocabulary (NodeType, EdgeType, NodeState, LayoutType)
- Records (GraphNode, GraphEdge, Graph, HistorySnapshot, ...)

Services live in their own modules:
- core.graph_store: GraphStore and the graph exception tree
- core.history: GraphHistory and SnapshotNotFoundError
- core.highlighting: PathHighlighter
- core.layouts: LayoutEngine and compute_levels
"""

from core.ontology import (
    NodeType,
    EdgeType,
    NodeState,
    LayoutType,
)
from core.schemas import (
    Position,
    Size,
    GraphNode,
    GraphEdge,
    Graph,
    HistorySnapshot,
    NodeChange,
    EdgeChange,
    SnapshotComparison,
    HighlightSet,
    clone,
    generate_id,
    now_utc,
)

__all__ = [
    # Vocabulary
    "NodeType",
    "EdgeType",
    "NodeState",
    "LayoutType",
    # Records
    "Position",
    "Size",
    "GraphNode",
    "GraphEdge",
    "Graph",
    "HistorySnapshot",
    "NodeChange",
    "EdgeChange",
    "SnapshotComparison",
    "HighlightSet",
    # Helpers
    "clone",
    "generate_id",
    "now_utc",
]
