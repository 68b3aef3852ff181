"""
AGENTVIZ SCHEMAS - The Grammar of the Workflow Graph

If ontology.py is the Dictionary (the words we can use),
schemas.py is the Grammar (how records are put together).

This module defines the records that flow through the graph layer:
- GraphNode / GraphEdge: Live graph entities owned by the GraphStore
- Graph: A named, versioned collection of nodes and edges
- HistorySnapshot: Immutable delta between two points of a graph's history
- SnapshotComparison: Result of diffing two reconstructed states
- HighlightSet: Elements currently highlighted in a graph

Design Principles:
1. STRICT TYPING: msgspec.Struct, validated on every JSON round trip
2. KW_ONLY: Keyword construction prevents positional mix-ups
3. OPEN MAPS: properties/metadata stay Dict[str, Any]
4. COPY ON READ: clone() hands callers independent copies

Timestamps are timezone-aware UTC datetimes.
"""
import msgspec
from typing import Optional, Dict, Any, List, TypeVar
from datetime import datetime, timezone
import uuid

from core.ontology import NodeType, EdgeType, NodeState


T = TypeVar("T")


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def now_utc() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with stored timestamps."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def generate_id() -> str:
    """Generate a new id for graphs, nodes, edges and snapshots."""
    return str(uuid.uuid4())


def clone(obj: T) -> T:
    """
    Deep, independent copy of a record via a msgspec JSON round trip.

    Nodes and edges reference each other by id only, so a plain data
    copy never has to deal with shared references. The round trip also
    validates field types, which is why updates are passed through it.
    """
    return msgspec.json.decode(msgspec.json.encode(obj), type=type(obj))


def clone_list(items: List[T], item_type: type) -> List[T]:
    """Deep copy of a homogeneous list of records."""
    return msgspec.json.decode(msgspec.json.encode(items), type=List[item_type])


# =============================================================================
# GEOMETRY
# =============================================================================

class Position(msgspec.Struct, kw_only=True):
    """Canvas position of a node."""
    x: float
    y: float


class Size(msgspec.Struct, kw_only=True):
    """Rendered size of a node."""
    width: float
    height: float


# =============================================================================
# GRAPH ENTITIES
# =============================================================================

class GraphNode(msgspec.Struct, kw_only=True):
    """
    A node in a workflow graph.

    `id` is unique within its graph and never changes. `created_at` is
    fixed when the node enters the store; `updated_at` is refreshed by
    every mutation. `parent_id`/`child_ids` overlay a tree on the graph
    but are not checked for cycles.
    """
    id: str = ""
    type: NodeType
    label: str
    properties: Dict[str, Any] = msgspec.field(default_factory=dict)
    state: NodeState = NodeState.INACTIVE

    # === Presentation ===
    position: Optional[Position] = None
    size: Optional[Size] = None
    icon: Optional[str] = None
    color: Optional[str] = None

    # === Tree overlay ===
    parent_id: Optional[str] = None
    child_ids: Optional[List[str]] = None

    # === Provenance ===
    created_at: datetime = msgspec.field(default_factory=now_utc)
    updated_at: datetime = msgspec.field(default_factory=now_utc)
    metadata: Optional[Dict[str, Any]] = None


class GraphEdge(msgspec.Struct, kw_only=True):
    """
    A directed edge between two nodes of the same graph.

    source_id/target_id are node ids; the store guarantees both resolve
    while the edge exists.
    """
    id: str = ""
    type: EdgeType
    source_id: str
    target_id: str
    label: Optional[str] = None
    properties: Optional[Dict[str, Any]] = None
    state: Optional[str] = None
    weight: Optional[float] = None
    animated: Optional[bool] = None
    created_at: datetime = msgspec.field(default_factory=now_utc)
    updated_at: datetime = msgspec.field(default_factory=now_utc)
    metadata: Optional[Dict[str, Any]] = None


class Graph(msgspec.Struct, kw_only=True):
    """
    A named, versioned collection of nodes and edges.

    `version` starts at 1 and grows by one per mutation; `timestamp`
    is the time of the last mutation.
    """
    id: str
    name: str
    nodes: List[GraphNode] = msgspec.field(default_factory=list)
    edges: List[GraphEdge] = msgspec.field(default_factory=list)
    layout: str = "force-directed"
    timestamp: datetime = msgspec.field(default_factory=now_utc)
    version: int = 1

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        """Node with the given id, or None."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_edge(self, edge_id: str) -> Optional[GraphEdge]:
        """Edge with the given id, or None."""
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        return None


# =============================================================================
# HISTORY RECORDS
# =============================================================================

class HistorySnapshot(msgspec.Struct, kw_only=True):
    """
    Immutable delta of one graph between two recorded points.

    Change sets are relative to the state the chain reached at the
    previous snapshot. The first snapshot of a graph lists everything
    as added.

    metadata keys: graph_version, node_count, edge_count, graph_name, layout
    """
    id: str
    graph_id: str
    timestamp: datetime
    added_nodes: List[GraphNode] = msgspec.field(default_factory=list)
    removed_node_ids: List[str] = msgspec.field(default_factory=list)
    updated_nodes: List[GraphNode] = msgspec.field(default_factory=list)
    added_edges: List[GraphEdge] = msgspec.field(default_factory=list)
    removed_edge_ids: List[str] = msgspec.field(default_factory=list)
    updated_edges: List[GraphEdge] = msgspec.field(default_factory=list)
    event: Optional[str] = None
    metadata: Dict[str, Any] = msgspec.field(default_factory=dict)

    def is_empty(self) -> bool:
        """True if the snapshot carries no changes."""
        return not (
            self.added_nodes or self.removed_node_ids or self.updated_nodes or
            self.added_edges or self.removed_edge_ids or self.updated_edges
        )


class NodeChange(msgspec.Struct, kw_only=True):
    """A node present in both compared states with different contents."""
    before: GraphNode
    after: GraphNode


class EdgeChange(msgspec.Struct, kw_only=True):
    """An edge present in both compared states with different contents."""
    before: GraphEdge
    after: GraphEdge


class SnapshotComparison(msgspec.Struct, kw_only=True):
    """Differences between the states reconstructed from two snapshots."""
    added_nodes: List[GraphNode] = msgspec.field(default_factory=list)
    removed_nodes: List[GraphNode] = msgspec.field(default_factory=list)
    changed_nodes: List[NodeChange] = msgspec.field(default_factory=list)
    added_edges: List[GraphEdge] = msgspec.field(default_factory=list)
    removed_edges: List[GraphEdge] = msgspec.field(default_factory=list)
    changed_edges: List[EdgeChange] = msgspec.field(default_factory=list)

    def is_identical(self) -> bool:
        """True if both states have the same nodes and edges."""
        return not (
            self.added_nodes or self.removed_nodes or self.changed_nodes or
            self.added_edges or self.removed_edges or self.changed_edges
        )


# =============================================================================
# HIGHLIGHT OVERLAY
# =============================================================================

class HighlightSet(msgspec.Struct, kw_only=True):
    """Node and edge ids currently highlighted in a graph."""
    node_ids: List[str] = msgspec.field(default_factory=list)
    edge_ids: List[str] = msgspec.field(default_factory=list)
