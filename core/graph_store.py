"""
AGENTVIZ GRAPH STORE - The Live Source of Truth

This file owns every live node and edge. Everything else (history,
highlighting, the viz export) only ever sees copies handed out by
get_graph() or by subscriber notifications.

Architecture:
  Callers (orchestrator, UI bridge, GraphHistory, PathHighlighter)
  - Use string ids: "g1", "task-7"
  - Call: store.add_node("g1", node), store.get_graph("g1")

  GraphStore (This File)
  - _graphs: Dict[str, Graph]     (graph id -> live Graph)
  - _bus: EventBus                (graph id -> subscribers)
  - _layouts: LayoutEngine        (layout name -> strategy)

Every successful mutation follows the same tail:
  version += 1 -> timestamp = now -> journal event -> notify subscribers

Copy Semantics:
- Inputs are copied on the way in (callers keep their objects)
- Outputs are copied on the way out (callers can't reach live state)
- Each subscriber gets its own copy per notification
"""
import random
from typing import Dict, List, Optional, Any, Callable

import msgspec

from core.ontology import LayoutType
from core.schemas import (
    Graph, GraphNode, GraphEdge,
    clone, clone_list, generate_id, now_utc,
)
from core.layouts import LayoutEngine, LayoutFunction
from infrastructure.config import GraphStoreConfig, LayoutConfig
from infrastructure.event_bus import EventBus
from infrastructure.logger import MutationLogger
from viz.core import MutationType


GraphCallback = Callable[[Graph], Any]
Unsubscribe = Callable[[], None]

# Fields that never change through update_node/update_edge
_IMMUTABLE_FIELDS = ("id", "created_at")


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================

class GraphError(Exception):
    """Base exception for graph operations."""
    pass


class GraphNotFoundError(GraphError):
    """Raised when a graph id is not in the store."""
    def __init__(self, graph_id: str):
        self.graph_id = graph_id
        super().__init__(f"Graph not found: {graph_id}")


class NodeNotFoundError(GraphError):
    """Raised when a node id is not in the graph."""
    def __init__(self, graph_id: str, node_id: str):
        self.graph_id = graph_id
        self.node_id = node_id
        super().__init__(f"Node not found: {node_id} (graph {graph_id})")


class EdgeNotFoundError(GraphError):
    """Raised when an edge id is not in the graph."""
    def __init__(self, graph_id: str, edge_id: str):
        self.graph_id = graph_id
        self.edge_id = edge_id
        super().__init__(f"Edge not found: {edge_id} (graph {graph_id})")


class GraphValidationError(GraphError):
    """Raised when a record or an update fails validation."""
    pass


class EdgeEndpointError(GraphValidationError):
    """Raised when an edge references a node that is not in the graph."""
    def __init__(self, graph_id: str, edge_id: str, missing: List[str]):
        self.graph_id = graph_id
        self.edge_id = edge_id
        self.missing = missing
        super().__init__(
            f"Edge {edge_id} references missing node(s) {', '.join(missing)} (graph {graph_id})"
        )


class DuplicateNodeError(GraphError):
    """Raised when attempting to add a node with existing ID."""
    def __init__(self, graph_id: str, node_id: str):
        self.graph_id = graph_id
        self.node_id = node_id
        super().__init__(f"Node already exists: {node_id} (graph {graph_id})")


class DuplicateEdgeError(GraphError):
    """Raised when attempting to add an edge with existing ID."""
    def __init__(self, graph_id: str, edge_id: str):
        self.graph_id = graph_id
        self.edge_id = edge_id
        super().__init__(f"Edge already exists: {edge_id} (graph {graph_id})")


# =============================================================================
# GRAPH STORE (The Live Graphs)
# =============================================================================

class GraphStore:
    """
    In-memory store of versioned workflow graphs.

    Usage:
        store = GraphStore()
        store.initialize_graph("g1", "Pipeline")

        store.add_node("g1", GraphNode(id="a", type=NodeType.TASK, label="Fetch"))
        store.add_node("g1", GraphNode(id="b", type=NodeType.AGENT, label="Worker"))
        store.add_edge("g1", GraphEdge(
            id="e1", type=EdgeType.ASSIGNMENT, source_id="a", target_id="b",
        ))

        unsubscribe = store.subscribe_to_graph_updates("g1", render)
        store.apply_layout("g1", "hierarchical")

    Thread Safety:
        NOT thread-safe. Every call runs to completion before the next.
    """

    def __init__(
        self,
        logger: Optional[MutationLogger] = None,
        config: Optional[GraphStoreConfig] = None,
        layout_config: Optional[LayoutConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize an empty store.

        Args:
            logger: Logger sink and mutation journal (a fresh one if None)
            config: [graph] settings
            layout_config: Constants for the built-in layouts
            rng: Random source for the randomized layouts (seed for tests)
        """
        self.logger = logger or MutationLogger(name="graph_store")
        self.config = config or GraphStoreConfig()
        self._graphs: Dict[str, Graph] = {}
        self._bus = EventBus(name="graph_store")
        self._layouts = LayoutEngine(layout_config, rng=rng)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    def has_graph(self, graph_id: str) -> bool:
        """Check if a graph exists."""
        return graph_id in self._graphs

    def list_graph_ids(self) -> List[str]:
        """Ids of every graph in the store, in creation order."""
        return list(self._graphs)

    def subscriber_count(self, graph_id: str) -> int:
        """Number of live subscribers for a graph."""
        return self._bus.subscriber_count(graph_id)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _require_graph(self, graph_id: str) -> Graph:
        graph = self._graphs.get(graph_id)
        if graph is None:
            raise GraphNotFoundError(graph_id)
        return graph

    @staticmethod
    def _node_index(graph: Graph, node_id: str) -> int:
        for i, node in enumerate(graph.nodes):
            if node.id == node_id:
                return i
        return -1

    @staticmethod
    def _edge_index(graph: Graph, edge_id: str) -> int:
        for i, edge in enumerate(graph.edges):
            if edge.id == edge_id:
                return i
        return -1

    def _missing_endpoints(self, graph: Graph, edge: GraphEdge) -> List[str]:
        node_ids = {node.id for node in graph.nodes}
        return [
            endpoint for endpoint in dict.fromkeys((edge.source_id, edge.target_id))
            if endpoint not in node_ids
        ]

    def _validated(self, record, what: str):
        """Copy a record through msgspec, turning type errors into GraphValidationError."""
        try:
            return clone(record)
        except (msgspec.ValidationError, msgspec.EncodeError, TypeError) as e:
            raise GraphValidationError(f"Invalid {what}: {e}") from e

    def _merge(self, record, updates: Dict[str, Any], what: str):
        """Apply field updates to a copy of a record, keeping id and created_at."""
        updates = {k: v for k, v in updates.items() if k not in _IMMUTABLE_FIELDS}
        try:
            merged = msgspec.structs.replace(record, **updates)
        except TypeError as e:
            raise GraphValidationError(f"Invalid update for {what}: {e}") from e
        merged.updated_at = now_utc()
        return self._validated(merged, what)

    def _commit(self, graph: Graph) -> None:
        """Bump version and timestamp, then fan out to subscribers."""
        graph.version += 1
        graph.timestamp = now_utc()
        self._notify(graph.id)

    def _notify(self, graph_id: str) -> None:
        graph = self._graphs.get(graph_id)
        if graph is not None:
            self._bus.publish(graph_id, graph, clone=clone)

    # =========================================================================
    # GRAPH LIFECYCLE
    # =========================================================================

    def initialize_graph(
        self,
        graph_id: str,
        name: str,
        layout: Optional[str] = None,
    ) -> str:
        """
        Create an empty graph at version 1.

        Re-initializing an existing id overwrites it and drops its
        subscribers.

        Args:
            graph_id: Graph id ("" generates one)
            name: Display name
            layout: Layout name recorded on the graph

        Returns:
            The graph id
        """
        graph_id = graph_id or generate_id()
        layout = layout or self.config.default_layout or LayoutType.FORCE_DIRECTED.value

        if graph_id in self._graphs:
            self.logger.warning("Re-initializing existing graph", graph_id=graph_id)
            self._bus.clear_subscribers(graph_id)

        self._graphs[graph_id] = Graph(
            id=graph_id,
            name=name,
            layout=layout,
            timestamp=now_utc(),
            version=1,
        )

        self.logger.info("Graph initialized", graph_id=graph_id, name=name)
        self.logger.log_mutation(
            MutationType.GRAPH_INITIALIZED,
            graph_id=graph_id,
            graph_version=1,
            detail=name,
        )
        return graph_id

    def get_graph(self, graph_id: str) -> Graph:
        """
        Deep, independent copy of a graph.

        Raises:
            GraphNotFoundError: If graph doesn't exist
        """
        return clone(self._require_graph(graph_id))

    # =========================================================================
    # NODE OPERATIONS
    # =========================================================================

    def add_node(self, graph_id: str, node: GraphNode, restore: bool = False) -> GraphNode:
        """
        Add a node to a graph.

        Args:
            graph_id: Target graph
            node: Node to add (copied; an empty id is generated)
            restore: Keep the incoming created_at (used when reverting)

        Returns:
            Copy of the stored node

        Raises:
            GraphNotFoundError: If graph doesn't exist
            DuplicateNodeError: If the node id is already in the graph
            GraphValidationError: If the node fails type validation
        """
        graph = self._require_graph(graph_id)
        stored = self._validated(node, "node")

        if not stored.id:
            stored.id = generate_id()
        if self._node_index(graph, stored.id) >= 0:
            raise DuplicateNodeError(graph_id, stored.id)

        now = now_utc()
        if not restore:
            stored.created_at = now
        stored.updated_at = now

        graph.nodes.append(stored)
        self.logger.log_mutation(
            MutationType.NODE_CREATED,
            graph_id=graph_id,
            node_id=stored.id,
            node_type=stored.type.value,
            new_state=stored.state.value,
            graph_version=graph.version + 1,
        )
        self._commit(graph)
        return clone(stored)

    def update_node(self, graph_id: str, node_id: str, **updates: Any) -> GraphNode:
        """
        Merge field updates into a node.

        `id` and `created_at` are ignored if present; `updated_at` is
        refreshed.

        Returns:
            Copy of the updated node

        Raises:
            GraphNotFoundError: If graph doesn't exist
            NodeNotFoundError: If node doesn't exist
            GraphValidationError: On unknown fields or ill-typed values
        """
        graph = self._require_graph(graph_id)
        idx = self._node_index(graph, node_id)
        if idx < 0:
            raise NodeNotFoundError(graph_id, node_id)

        current = graph.nodes[idx]
        merged = self._merge(current, updates, f"node {node_id}")
        graph.nodes[idx] = merged

        state_changed = merged.state != current.state
        self.logger.log_mutation(
            MutationType.STATE_CHANGED if state_changed else MutationType.NODE_UPDATED,
            graph_id=graph_id,
            node_id=node_id,
            node_type=merged.type.value,
            old_state=current.state.value,
            new_state=merged.state.value,
            graph_version=graph.version + 1,
        )
        self._commit(graph)
        return clone(merged)

    def remove_node(self, graph_id: str, node_id: str) -> bool:
        """
        Remove a node and every edge touching it, in one version bump.

        Returns:
            False (with a warning) if the graph or node doesn't exist
        """
        graph = self._graphs.get(graph_id)
        if graph is None:
            self.logger.warning("Cannot remove node: graph not found", graph_id=graph_id, node_id=node_id)
            return False

        idx = self._node_index(graph, node_id)
        if idx < 0:
            self.logger.warning("Cannot remove node: node not found", graph_id=graph_id, node_id=node_id)
            return False

        removed = graph.nodes.pop(idx)
        cascaded = [e for e in graph.edges if e.source_id == node_id or e.target_id == node_id]
        if cascaded:
            graph.edges = [e for e in graph.edges if e.source_id != node_id and e.target_id != node_id]

        for edge in cascaded:
            self.logger.log_mutation(
                MutationType.EDGE_DELETED,
                graph_id=graph_id,
                edge_id=edge.id,
                source_id=edge.source_id,
                target_id=edge.target_id,
                edge_type=edge.type.value,
                detail=f"cascade from node {node_id}",
            )
        self.logger.log_mutation(
            MutationType.NODE_DELETED,
            graph_id=graph_id,
            node_id=node_id,
            node_type=removed.type.value,
            graph_version=graph.version + 1,
        )
        self._commit(graph)
        return True

    # =========================================================================
    # EDGE OPERATIONS
    # =========================================================================

    def add_edge(self, graph_id: str, edge: GraphEdge, restore: bool = False) -> GraphEdge:
        """
        Add an edge between two existing nodes.

        Args:
            graph_id: Target graph
            edge: Edge to add (copied; an empty id is generated)
            restore: Keep the incoming created_at (used when reverting)

        Returns:
            Copy of the stored edge

        Raises:
            GraphNotFoundError: If graph doesn't exist
            EdgeEndpointError: If either endpoint is not a node of the graph
            DuplicateEdgeError: If the edge id is already in the graph
            GraphValidationError: If the edge fails type validation
        """
        graph = self._require_graph(graph_id)
        stored = self._validated(edge, "edge")

        if not stored.id:
            stored.id = generate_id()

        missing = self._missing_endpoints(graph, stored)
        if missing:
            raise EdgeEndpointError(graph_id, stored.id, missing)
        if self._edge_index(graph, stored.id) >= 0:
            raise DuplicateEdgeError(graph_id, stored.id)

        now = now_utc()
        if not restore:
            stored.created_at = now
        stored.updated_at = now

        graph.edges.append(stored)
        self.logger.log_mutation(
            MutationType.EDGE_CREATED,
            graph_id=graph_id,
            edge_id=stored.id,
            source_id=stored.source_id,
            target_id=stored.target_id,
            edge_type=stored.type.value,
            graph_version=graph.version + 1,
        )
        self._commit(graph)
        return clone(stored)

    def update_edge(self, graph_id: str, edge_id: str, **updates: Any) -> GraphEdge:
        """
        Merge field updates into an edge.

        Changing source_id/target_id re-checks both endpoints; the edge is
        left untouched if either is missing.

        Returns:
            Copy of the updated edge

        Raises:
            GraphNotFoundError: If graph doesn't exist
            EdgeNotFoundError: If edge doesn't exist
            EdgeEndpointError: If a new endpoint is not a node of the graph
            GraphValidationError: On unknown fields or ill-typed values
        """
        graph = self._require_graph(graph_id)
        idx = self._edge_index(graph, edge_id)
        if idx < 0:
            raise EdgeNotFoundError(graph_id, edge_id)

        current = graph.edges[idx]
        merged = self._merge(current, updates, f"edge {edge_id}")

        if "source_id" in updates or "target_id" in updates:
            missing = self._missing_endpoints(graph, merged)
            if missing:
                raise EdgeEndpointError(graph_id, edge_id, missing)

        graph.edges[idx] = merged
        self.logger.log_mutation(
            MutationType.EDGE_UPDATED,
            graph_id=graph_id,
            edge_id=edge_id,
            source_id=merged.source_id,
            target_id=merged.target_id,
            edge_type=merged.type.value,
            old_state=current.state,
            new_state=merged.state,
            graph_version=graph.version + 1,
        )
        self._commit(graph)
        return clone(merged)

    def remove_edge(self, graph_id: str, edge_id: str) -> bool:
        """
        Remove an edge.

        Returns:
            False (with a warning) if the graph or edge doesn't exist
        """
        graph = self._graphs.get(graph_id)
        if graph is None:
            self.logger.warning("Cannot remove edge: graph not found", graph_id=graph_id, edge_id=edge_id)
            return False

        idx = self._edge_index(graph, edge_id)
        if idx < 0:
            self.logger.warning("Cannot remove edge: edge not found", graph_id=graph_id, edge_id=edge_id)
            return False

        removed = graph.edges.pop(idx)
        self.logger.log_mutation(
            MutationType.EDGE_DELETED,
            graph_id=graph_id,
            edge_id=edge_id,
            source_id=removed.source_id,
            target_id=removed.target_id,
            edge_type=removed.type.value,
            graph_version=graph.version + 1,
        )
        self._commit(graph)
        return True

    # =========================================================================
    # LAYOUTS
    # =========================================================================

    def register_layout(self, name: str, fn: LayoutFunction) -> None:
        """
        Register a layout strategy under a name.

        The function receives (nodes, edges) copies and writes
        node.position in place.
        """
        self._layouts.register(name, fn)

    @property
    def layout_names(self) -> List[str]:
        return self._layouts.names

    def apply_layout(self, graph_id: str, layout_type: str) -> bool:
        """
        Position every node of a graph with a registered layout.

        Counts as a mutation: version +1 and subscribers are notified.

        Returns:
            False (with a warning) for an unknown graph or layout
        """
        if isinstance(layout_type, LayoutType):
            layout_type = layout_type.value

        graph = self._graphs.get(graph_id)
        if graph is None:
            self.logger.warning("Cannot apply layout: graph not found", graph_id=graph_id, layout=layout_type)
            return False
        if not self._layouts.has(layout_type):
            self.logger.warning("Unknown layout type", graph_id=graph_id, layout=layout_type)
            return False

        # Lay out copies so a failing strategy leaves the live graph alone
        nodes = clone_list(graph.nodes, GraphNode)
        edges = clone_list(graph.edges, GraphEdge)
        self._layouts.apply(layout_type, nodes, edges)

        graph.nodes = nodes
        graph.layout = layout_type
        self.logger.log_mutation(
            MutationType.LAYOUT_APPLIED,
            graph_id=graph_id,
            graph_version=graph.version + 1,
            detail=layout_type,
        )
        self._commit(graph)
        return True

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def subscribe_to_graph_updates(self, graph_id: str, callback: GraphCallback) -> Unsubscribe:
        """
        Observe a graph.

        The callback runs once immediately with the current state, then
        after every mutation. Each call receives its own copy of the graph.
        Coroutine functions are scheduled on the running event loop.

        Returns:
            Idempotent unsubscribe function

        Raises:
            GraphNotFoundError: If graph doesn't exist
        """
        graph = self._require_graph(graph_id)
        unsubscribe = self._bus.subscribe(graph_id, callback)
        self._bus.deliver(graph_id, callback, graph, clone=clone)
        return unsubscribe
