"""
AGENTVIZ VISUALIZATION CORE - The Renderer's Data Model

This module turns GraphStore/GraphHistory records into the compact
shapes a Cosmograph-style front end consumes.

Architecture:
- VizNode/VizEdge: Lightweight, render-focused projections
- VizSnapshot: Full graph state for initial render
- GraphDelta: Incremental update built from a HistorySnapshot
- MutationEvent: Individual graph mutation for the mutation journal

Performance:
- Uses polars for Arrow IPC serialization
- Colors and layer hints are computed server-side
"""
import msgspec
from typing import Optional, Dict, List, Any, Tuple
from enum import Enum
import io

import polars as pl

from core.ontology import NodeType, NodeState, EdgeType, EDGE_STATE_HIGHLIGHTED
from core.schemas import Graph, GraphNode, GraphEdge, HistorySnapshot
from core.layouts import compute_levels


# =============================================================================
# COLOR PALETTES (Consistent across views)
# =============================================================================

# Node colors by type (Cosmograph-compatible hex)
NODE_COLORS: Dict[str, str] = {
    NodeType.TASK.value: "#2A9D8F",            # Teal - work items
    NodeType.AGENT.value: "#E63946",           # Red - actors
    NodeType.RESOURCE.value: "#457B9D",        # Blue - tools and data sources
    NodeType.DECISION_POINT.value: "#F4A261",  # Orange - branches
    NodeType.DATA.value: "#A8DADC",            # Light blue - artifacts
    NodeType.BARRIER.value: "#264653",         # Dark blue - sync points
    NodeType.EVENT.value: "#9B59B6",           # Purple - events
    NodeType.INTERACTION.value: "#E83E8C",     # Pink - interactions
    "default": "#6C757D",                      # Gray - unknown types
}

# Node colors by state (for state-based coloring mode)
STATE_COLORS: Dict[str, str] = {
    NodeState.INACTIVE.value: "#ADB5BD",       # Light gray - idle
    NodeState.ACTIVE.value: "#17A2B8",         # Cyan - running
    NodeState.COMPLETED.value: "#28A745",      # Green - done
    NodeState.ERROR.value: "#DC3545",          # Red - failure
    NodeState.WARNING.value: "#FFC107",        # Amber - attention
    NodeState.SELECTED.value: "#3498DB",       # Blue - user selection
    NodeState.HIGHLIGHTED.value: "#FF6B00",    # Bright orange - overlay
    "default": "#6C757D",
}

# Edge colors by type
EDGE_COLORS: Dict[str, str] = {
    EdgeType.DEPENDENCY.value: "#ADB5BD",      # Light gray
    EdgeType.EXECUTION_FLOW.value: "#2A9D8F",  # Teal
    EdgeType.DATA_FLOW.value: "#457B9D",       # Blue
    EdgeType.COMMUNICATION.value: "#E83E8C",   # Pink
    EdgeType.ASSIGNMENT.value: "#F4A261",      # Orange
    EdgeType.INTERACTION.value: "#9B59B6",     # Purple
    EdgeType.CONTRIBUTION.value: "#28A745",    # Green
    "default": "#6C757D",
}

# Edge color override while highlighted
HIGHLIGHT_EDGE_COLOR = "#FF6B00"


# =============================================================================
# MUTATION TYPES (For event logging)
# =============================================================================

class MutationType(str, Enum):
    """Types of graph mutations recorded in the mutation journal."""
    GRAPH_INITIALIZED = "GRAPH_INITIALIZED"
    NODE_CREATED = "NODE_CREATED"
    NODE_UPDATED = "NODE_UPDATED"
    NODE_DELETED = "NODE_DELETED"
    EDGE_CREATED = "EDGE_CREATED"
    EDGE_UPDATED = "EDGE_UPDATED"
    EDGE_DELETED = "EDGE_DELETED"
    STATE_CHANGED = "STATE_CHANGED"
    LAYOUT_APPLIED = "LAYOUT_APPLIED"
    SNAPSHOT_RECORDED = "SNAPSHOT_RECORDED"
    SNAPSHOT_REVERTED = "SNAPSHOT_REVERTED"


# =============================================================================
# VISUALIZATION DATA STRUCTURES
# =============================================================================

class VizNode(msgspec.Struct, kw_only=True):
    """
    Lightweight node representation for visualization.

    Contains only the fields needed for rendering, plus computed
    visualization properties (color, layer hints).
    """
    id: str
    type: str
    state: str
    label: str
    color: str
    size: float = 1.0
    x: Optional[float] = None
    y: Optional[float] = None
    parent_id: Optional[str] = None

    # Layout hints
    layer: int = 0
    is_root: bool = False
    is_leaf: bool = False

    @classmethod
    def from_graph_node(
        cls,
        node: GraphNode,
        color_mode: str = "type",       # "type" or "state"
        layer: int = 0,
        is_root: bool = False,
        is_leaf: bool = False,
    ) -> "VizNode":
        """Create VizNode from a GraphNode."""
        if node.color:
            color = node.color
        elif color_mode == "state":
            color = STATE_COLORS.get(node.state.value, STATE_COLORS["default"])
        else:
            color = NODE_COLORS.get(node.type.value, NODE_COLORS["default"])

        label = node.label[:20] if node.label else f"{node.type.value[:4]}:{node.id[:8]}"

        size = 1.0
        if node.size is not None:
            size = max(node.size.width, node.size.height) / 100.0

        return cls(
            id=node.id,
            type=node.type.value,
            state=node.state.value,
            label=label,
            color=color,
            size=size,
            x=node.position.x if node.position else None,
            y=node.position.y if node.position else None,
            parent_id=node.parent_id,
            layer=layer,
            is_root=is_root,
            is_leaf=is_leaf,
        )


class VizEdge(msgspec.Struct, kw_only=True):
    """
    Lightweight edge representation for visualization.
    """
    id: str
    source: str
    target: str
    type: str
    color: str
    weight: float = 1.0
    animated: bool = False

    @classmethod
    def from_graph_edge(cls, edge: GraphEdge) -> "VizEdge":
        """Create VizEdge from a GraphEdge."""
        if edge.state == EDGE_STATE_HIGHLIGHTED:
            color = HIGHLIGHT_EDGE_COLOR
        else:
            color = EDGE_COLORS.get(edge.type.value, EDGE_COLORS["default"])

        return cls(
            id=edge.id,
            source=edge.source_id,
            target=edge.target_id,
            type=edge.type.value,
            color=color,
            weight=edge.weight if edge.weight is not None else 1.0,
            animated=bool(edge.animated),
        )


class VizSnapshot(msgspec.Struct, kw_only=True):
    """
    Complete graph state for initial render.

    Sent on connection or page load.
    """
    graph_id: str
    name: str
    timestamp: str
    version: int
    layout: str
    node_count: int
    edge_count: int
    nodes: List[VizNode]
    edges: List[VizEdge]

    # Graph metrics for display
    layer_count: int = 0
    root_count: int = 0
    leaf_count: int = 0
    label: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return msgspec.to_builtins(self)


class GraphDelta(msgspec.Struct, kw_only=True):
    """
    Incremental graph update for real-time streaming.

    Built from a HistorySnapshot; much smaller than a full VizSnapshot.
    """
    graph_id: str
    timestamp: str
    sequence: int                       # Monotonic sequence number

    # Changes
    nodes_added: List[VizNode] = msgspec.field(default_factory=list)
    nodes_updated: List[VizNode] = msgspec.field(default_factory=list)
    nodes_removed: List[str] = msgspec.field(default_factory=list)  # IDs only
    edges_added: List[VizEdge] = msgspec.field(default_factory=list)
    edges_updated: List[VizEdge] = msgspec.field(default_factory=list)
    edges_removed: List[str] = msgspec.field(default_factory=list)  # IDs only
    event: Optional[str] = None

    def is_empty(self) -> bool:
        """Check if delta contains any changes."""
        return (
            not self.nodes_added and
            not self.nodes_updated and
            not self.nodes_removed and
            not self.edges_added and
            not self.edges_updated and
            not self.edges_removed
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return msgspec.to_builtins(self)

    @classmethod
    def from_history_snapshot(
        cls,
        snapshot: HistorySnapshot,
        sequence: int,
        color_mode: str = "type",
    ) -> "GraphDelta":
        """Project a history delta into a streaming delta."""
        return cls(
            graph_id=snapshot.graph_id,
            timestamp=snapshot.timestamp.isoformat(),
            sequence=sequence,
            nodes_added=[VizNode.from_graph_node(n, color_mode) for n in snapshot.added_nodes],
            nodes_updated=[VizNode.from_graph_node(n, color_mode) for n in snapshot.updated_nodes],
            nodes_removed=list(snapshot.removed_node_ids),
            edges_added=[VizEdge.from_graph_edge(e) for e in snapshot.added_edges],
            edges_updated=[VizEdge.from_graph_edge(e) for e in snapshot.updated_edges],
            edges_removed=list(snapshot.removed_edge_ids),
            event=snapshot.event,
        )


class MutationEvent(msgspec.Struct, kw_only=True):
    """
    Individual mutation event for the mutation journal.
    """
    timestamp: str
    sequence: int
    mutation_type: str                  # MutationType value
    graph_id: Optional[str] = None
    graph_version: Optional[int] = None

    # Nodes
    node_id: Optional[str] = None
    node_type: Optional[str] = None
    old_state: Optional[str] = None
    new_state: Optional[str] = None

    # Edges
    edge_id: Optional[str] = None
    source_id: Optional[str] = None
    target_id: Optional[str] = None
    edge_type: Optional[str] = None

    # History / layout
    snapshot_id: Optional[str] = None
    detail: Optional[str] = None


# =============================================================================
# SNAPSHOT CONSTRUCTION
# =============================================================================

def create_viz_snapshot(
    graph: Graph,
    color_mode: str = "type",
    label: str = "",
) -> VizSnapshot:
    """
    Create a VizSnapshot from a Graph (live or reconstructed).

    This is the main entry point for visualization.

    Args:
        graph: Graph copy from GraphStore.get_graph or GraphHistory
        color_mode: "type" or "state" for node coloring
        label: Human-readable label

    Returns:
        VizSnapshot ready for rendering
    """
    levels = compute_levels(graph.nodes, graph.edges)

    has_incoming = {e.target_id for e in graph.edges}
    has_outgoing = {e.source_id for e in graph.edges}

    viz_nodes = [
        VizNode.from_graph_node(
            node,
            color_mode=color_mode,
            layer=levels.get(node.id, 0),
            is_root=node.id not in has_incoming,
            is_leaf=node.id not in has_outgoing,
        )
        for node in graph.nodes
    ]
    viz_edges = [VizEdge.from_graph_edge(e) for e in graph.edges]

    return VizSnapshot(
        graph_id=graph.id,
        name=graph.name,
        timestamp=graph.timestamp.isoformat(),
        version=graph.version,
        layout=graph.layout,
        node_count=len(viz_nodes),
        edge_count=len(viz_edges),
        nodes=viz_nodes,
        edges=viz_edges,
        layer_count=(max(levels.values()) + 1) if levels else 0,
        root_count=sum(1 for n in viz_nodes if n.is_root),
        leaf_count=sum(1 for n in viz_nodes if n.is_leaf),
        label=label,
    )


# =============================================================================
# ARROW IPC SERIALIZATION
# =============================================================================

def serialize_to_arrow(snapshot: VizSnapshot) -> Tuple[bytes, bytes]:
    """
    Serialize VizSnapshot to Apache Arrow IPC format.

    Returns:
        Tuple of (nodes_arrow_bytes, edges_arrow_bytes)
    """
    nodes_df = pl.DataFrame(
        {
            "id": [n.id for n in snapshot.nodes],
            "type": [n.type for n in snapshot.nodes],
            "state": [n.state for n in snapshot.nodes],
            "label": [n.label for n in snapshot.nodes],
            "color": [n.color for n in snapshot.nodes],
            "size": [n.size for n in snapshot.nodes],
            "x": [n.x for n in snapshot.nodes],
            "y": [n.y for n in snapshot.nodes],
            "layer": [n.layer for n in snapshot.nodes],
            "is_root": [n.is_root for n in snapshot.nodes],
            "is_leaf": [n.is_leaf for n in snapshot.nodes],
        },
        schema={
            "id": pl.Utf8, "type": pl.Utf8, "state": pl.Utf8, "label": pl.Utf8,
            "color": pl.Utf8, "size": pl.Float64, "x": pl.Float64, "y": pl.Float64,
            "layer": pl.Int64, "is_root": pl.Boolean, "is_leaf": pl.Boolean,
        },
    )

    edges_df = pl.DataFrame(
        {
            "id": [e.id for e in snapshot.edges],
            "source": [e.source for e in snapshot.edges],
            "target": [e.target for e in snapshot.edges],
            "type": [e.type for e in snapshot.edges],
            "color": [e.color for e in snapshot.edges],
            "weight": [e.weight for e in snapshot.edges],
            "animated": [e.animated for e in snapshot.edges],
        },
        schema={
            "id": pl.Utf8, "source": pl.Utf8, "target": pl.Utf8, "type": pl.Utf8,
            "color": pl.Utf8, "weight": pl.Float64, "animated": pl.Boolean,
        },
    )

    nodes_buffer = io.BytesIO()
    edges_buffer = io.BytesIO()

    nodes_df.write_ipc(nodes_buffer)
    edges_df.write_ipc(edges_buffer)

    return nodes_buffer.getvalue(), edges_buffer.getvalue()
