"""
AGENTVIZ PATH HIGHLIGHTING - Transient overlay on live graphs

Marks nodes and edges as highlighted and remembers why (a free-form
highlight type such as "default", "critical-path" or "active-execution").
All state changes go through GraphStore.update_node/update_edge, so
highlights are versioned, journaled and broadcast like any other mutation.

The overlay itself (which ids are highlighted, with which type) is kept
here, not in the store, and is not part of history.
"""
from typing import Any, Callable, Dict, List, Optional

from core.graph_store import GraphStore, GraphError
from core.ontology import NodeState, EDGE_STATE_HIGHLIGHTED, HIGHLIGHT_ACTIVE_EXECUTION
from core.schemas import HighlightSet, clone
from infrastructure.event_bus import EventBus
from infrastructure.logger import MutationLogger


HighlightCallback = Callable[[HighlightSet], Any]
DEFAULT_HIGHLIGHT = "default"


class PathHighlighter:
    """
    Highlight overlay for graphs held by a GraphStore.

    Usage:
        highlighter = PathHighlighter(store)
        highlighter.highlight_path("g1", ["a", "b"], ["e1"], "critical-path")
        highlighter.get_elements_by_highlight_type("g1", "critical-path")
        highlighter.clear_highlights("g1")
    """

    def __init__(self, graph_store: GraphStore, logger: Optional[MutationLogger] = None):
        self.graph_store = graph_store
        self.logger = logger or MutationLogger(name="highlighting")

        self._highlighted: Dict[str, HighlightSet] = {}
        self._node_types: Dict[str, Dict[str, str]] = {}
        self._edge_types: Dict[str, Dict[str, str]] = {}
        self._active_executions: Dict[str, List[str]] = {}
        self._bus = EventBus(name="highlighting")

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _record(self, graph_id: str, kind: str, element_id: str, highlight_type: str) -> None:
        highlights = self._highlighted.setdefault(graph_id, HighlightSet())
        if kind == "node":
            ids, types = highlights.node_ids, self._node_types.setdefault(graph_id, {})
        else:
            ids, types = highlights.edge_ids, self._edge_types.setdefault(graph_id, {})
        if element_id not in ids:
            ids.append(element_id)
        types[element_id] = highlight_type

    def _notify(self, graph_id: str) -> None:
        self._bus.publish(graph_id, self.get_highlighted_elements(graph_id), clone=clone)

    # =========================================================================
    # HIGHLIGHTING
    # =========================================================================

    def highlight_node(self, graph_id: str, node_id: str, highlight_type: str = DEFAULT_HIGHLIGHT) -> bool:
        """Set a node's state to highlighted. False if the graph or node is missing."""
        try:
            self.graph_store.update_node(graph_id, node_id, state=NodeState.HIGHLIGHTED)
        except GraphError as e:
            self.logger.warning(f"Cannot highlight node: {e}", graph_id=graph_id, node_id=node_id)
            return False

        self._record(graph_id, "node", node_id, highlight_type)
        self.logger.debug("Highlighted node", graph_id=graph_id, node_id=node_id, type=highlight_type)
        self._notify(graph_id)
        return True

    def highlight_edge(self, graph_id: str, edge_id: str, highlight_type: str = DEFAULT_HIGHLIGHT) -> bool:
        """Mark an edge highlighted and animated. False if the graph or edge is missing."""
        try:
            self.graph_store.update_edge(graph_id, edge_id, state=EDGE_STATE_HIGHLIGHTED, animated=True)
        except GraphError as e:
            self.logger.warning(f"Cannot highlight edge: {e}", graph_id=graph_id, edge_id=edge_id)
            return False

        self._record(graph_id, "edge", edge_id, highlight_type)
        self.logger.debug("Highlighted edge", graph_id=graph_id, edge_id=edge_id, type=highlight_type)
        self._notify(graph_id)
        return True

    def highlight_path(
        self,
        graph_id: str,
        node_ids: List[str],
        edge_ids: List[str],
        highlight_type: str = DEFAULT_HIGHLIGHT,
    ) -> bool:
        """
        Highlight every listed node and edge.

        Elements that fail are skipped; the rest stay highlighted.

        Returns:
            False if any element could not be highlighted
        """
        success = True
        for node_id in node_ids:
            if not self.highlight_node(graph_id, node_id, highlight_type):
                success = False
        for edge_id in edge_ids:
            if not self.highlight_edge(graph_id, edge_id, highlight_type):
                success = False

        if success:
            self.logger.info(
                "Highlighted path",
                graph_id=graph_id,
                nodes=len(node_ids),
                edges=len(edge_ids),
                type=highlight_type,
            )
        else:
            self.logger.warning("Partially highlighted path", graph_id=graph_id, type=highlight_type)

        self._notify(graph_id)
        return success

    def clear_highlights(self, graph_id: str) -> bool:
        """
        Reset every highlighted element and forget the overlay.

        Nodes go back to ACTIVE; edges lose their state and animation.
        Elements removed from the graph since they were highlighted are
        skipped.
        """
        highlights = self._highlighted.get(graph_id)
        if highlights is None:
            return True

        for node_id in highlights.node_ids:
            try:
                self.graph_store.update_node(graph_id, node_id, state=NodeState.ACTIVE)
            except GraphError:
                self.logger.debug("Skipped missing node while clearing", graph_id=graph_id, node_id=node_id)

        for edge_id in highlights.edge_ids:
            try:
                self.graph_store.update_edge(graph_id, edge_id, state=None, animated=False)
            except GraphError:
                self.logger.debug("Skipped missing edge while clearing", graph_id=graph_id, edge_id=edge_id)

        self._highlighted[graph_id] = HighlightSet()
        self._node_types.pop(graph_id, None)
        self._edge_types.pop(graph_id, None)
        self._active_executions.pop(graph_id, None)

        self.logger.info("Cleared highlights", graph_id=graph_id)
        self._notify(graph_id)
        return True

    def highlight_active_execution(self, graph_id: str, task_id: str) -> bool:
        """
        Highlight a task node, its incident edges and their other endpoints.

        Uses the "active-execution" highlight type and records the task as
        an active execution.
        """
        try:
            graph = self.graph_store.get_graph(graph_id)
        except GraphError as e:
            self.logger.warning(f"Cannot highlight execution: {e}", graph_id=graph_id, task_id=task_id)
            return False

        if graph.get_node(task_id) is None:
            self.logger.warning("Task node not found", graph_id=graph_id, task_id=task_id)
            return False

        node_ids = [task_id]
        edge_ids = []
        for edge in graph.edges:
            if edge.source_id == task_id or edge.target_id == task_id:
                edge_ids.append(edge.id)
                other = edge.target_id if edge.source_id == task_id else edge.source_id
                if other not in node_ids:
                    node_ids.append(other)

        executions = self._active_executions.setdefault(graph_id, [])
        if task_id not in executions:
            executions.append(task_id)

        success = self.highlight_path(graph_id, node_ids, edge_ids, HIGHLIGHT_ACTIVE_EXECUTION)
        if success:
            self.logger.info("Highlighted active execution", graph_id=graph_id, task_id=task_id)
        return success

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_highlighted_elements(self, graph_id: str) -> HighlightSet:
        """Copy of the highlighted node and edge ids of a graph."""
        highlights = self._highlighted.get(graph_id)
        if highlights is None:
            return HighlightSet()
        return clone(highlights)

    def get_highlight_type(self, graph_id: str, element_id: str) -> Optional[str]:
        """Highlight type of a node or edge id, or None."""
        node_type = self._node_types.get(graph_id, {}).get(element_id)
        if node_type is not None:
            return node_type
        return self._edge_types.get(graph_id, {}).get(element_id)

    def get_elements_by_highlight_type(self, graph_id: str, highlight_type: str) -> HighlightSet:
        """Highlighted ids carrying a given highlight type."""
        return HighlightSet(
            node_ids=[nid for nid, t in self._node_types.get(graph_id, {}).items() if t == highlight_type],
            edge_ids=[eid for eid, t in self._edge_types.get(graph_id, {}).items() if t == highlight_type],
        )

    def get_active_executions(self, graph_id: str) -> List[str]:
        """Task ids highlighted as active executions."""
        return list(self._active_executions.get(graph_id, []))

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def subscribe_to_highlight_updates(self, graph_id: str, callback: HighlightCallback) -> Callable[[], None]:
        """
        Observe the overlay of a graph.

        The callback runs once immediately, then after every change.

        Returns:
            Idempotent unsubscribe function
        """
        unsubscribe = self._bus.subscribe(graph_id, callback)
        self._bus.deliver(graph_id, callback, self.get_highlighted_elements(graph_id), clone=clone)
        return unsubscribe
