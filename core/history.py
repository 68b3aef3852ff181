"""
AGENTVIZ HISTORY ENGINE - The Time Machine

Delta-based, linear history per graph. Each HistorySnapshot stores only
what changed since the previous snapshot of the same graph; any past
state is rebuilt by replaying the chain.

Architecture:
  GraphStore (live graphs)
      | get_graph() copies
      v
  GraphHistory (This File)
  - _snapshots: Dict[str, HistorySnapshot]   (snapshot id -> snapshot)
  - _chains: Dict[str, List[str]]            (graph id -> ordered snapshot ids)
  - _baselines: Dict[str, ReplayState]       (folded state of evicted snapshots)
  - _tips: Dict[str, ReplayState]            (state at the newest snapshot)

Replay (cumulative, never reads live state):
  state = baseline
  for snapshot in chain up to target:
      state[added + updated] = ...   # insert or overwrite by id
      del state[removed ids]

Retention:
  At most max_snapshots_per_graph snapshots are kept per chain. Evicted
  snapshots are folded into the baseline so later snapshots still
  rebuild correctly.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from core.graph_store import GraphStore, GraphError
from core.schemas import (
    Graph, GraphNode, GraphEdge, HistorySnapshot,
    NodeChange, EdgeChange, SnapshotComparison,
    clone, as_utc, generate_id, now_utc,
)
from infrastructure.config import HistoryConfig
from infrastructure.logger import MutationLogger
from viz.core import MutationType


# Smallest step between two snapshots of the same chain
TIMESTAMP_STEP = timedelta(microseconds=1)


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================

class SnapshotNotFoundError(GraphError):
    """Raised when a snapshot id is unknown, or no snapshot matches a time."""
    def __init__(self, snapshot_id: Optional[str] = None, message: Optional[str] = None):
        self.snapshot_id = snapshot_id
        super().__init__(message or f"Snapshot not found: {snapshot_id}")


# =============================================================================
# REPLAY STATE
# =============================================================================

@dataclass
class ReplayState:
    """Node and edge maps keyed by id, built by replaying snapshots."""
    nodes: Dict[str, GraphNode] = field(default_factory=dict)
    edges: Dict[str, GraphEdge] = field(default_factory=dict)

    def apply(self, snapshot: HistorySnapshot) -> None:
        """Apply one delta: upsert added and updated, then delete removed."""
        for node in snapshot.added_nodes:
            self.nodes[node.id] = node
        for node in snapshot.updated_nodes:
            self.nodes[node.id] = node
        for node_id in snapshot.removed_node_ids:
            self.nodes.pop(node_id, None)

        for edge in snapshot.added_edges:
            self.edges[edge.id] = edge
        for edge in snapshot.updated_edges:
            self.edges[edge.id] = edge
        for edge_id in snapshot.removed_edge_ids:
            self.edges.pop(edge_id, None)

    def copy(self) -> "ReplayState":
        # Records are never mutated once stored, so sharing them is safe
        return ReplayState(nodes=dict(self.nodes), edges=dict(self.edges))


# =============================================================================
# GRAPH HISTORY (The Snapshot Chain)
# =============================================================================

class GraphHistory:
    """
    Snapshot chain, point-in-time reconstruction, diff and revert.

    Usage:
        history = GraphHistory(store)

        s1 = history.record_snapshot("g1", "Initial")
        store.remove_node("g1", "a")
        s2 = history.record_snapshot("g1", "Removed a")

        diff = history.compare_snapshots(s1, s2)
        past = history.get_graph_state_at_time("g1", some_datetime)
        history.revert_to_snapshot("g1", s1)

    Thread Safety:
        NOT thread-safe. Trimming runs inline inside record_snapshot.
    """

    def __init__(
        self,
        graph_store: GraphStore,
        logger: Optional[MutationLogger] = None,
        config: Optional[HistoryConfig] = None,
        max_snapshots_per_graph: Optional[int] = None,
    ):
        """
        Args:
            graph_store: Store to read live graphs from (and revert into)
            logger: Logger sink and mutation journal (a fresh one if None)
            config: [history] settings
            max_snapshots_per_graph: Overrides config.max_snapshots_per_graph

        Raises:
            ValueError: If the retention cap is below 1
        """
        if max_snapshots_per_graph is not None:
            config = HistoryConfig(max_snapshots_per_graph=max_snapshots_per_graph)

        self.graph_store = graph_store
        self.logger = logger or MutationLogger(name="history")
        self.config = config or HistoryConfig()

        self._snapshots: Dict[str, HistorySnapshot] = {}
        self._chains: Dict[str, List[str]] = {}
        self._baselines: Dict[str, ReplayState] = {}
        self._tips: Dict[str, ReplayState] = {}

    @property
    def max_snapshots_per_graph(self) -> int:
        return self.config.max_snapshots_per_graph

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _require_snapshot(self, snapshot_id: str) -> HistorySnapshot:
        snapshot = self._snapshots.get(snapshot_id)
        if snapshot is None:
            raise SnapshotNotFoundError(snapshot_id)
        return snapshot

    def _chain(self, graph_id: str) -> List[HistorySnapshot]:
        return [self._snapshots[sid] for sid in self._chains.get(graph_id, ())]

    def _next_timestamp(self, graph_id: str) -> datetime:
        """now, or one step after the chain's newest snapshot if the clock hasn't moved."""
        timestamp = now_utc()
        chain = self._chains.get(graph_id)
        if chain:
            previous = self._snapshots[chain[-1]].timestamp
            if timestamp <= previous:
                timestamp = previous + TIMESTAMP_STEP
        return timestamp

    def _replay(self, snapshot: HistorySnapshot) -> ReplayState:
        """State of the chain right after `snapshot`."""
        graph_id = snapshot.graph_id
        state = self._baselines.get(graph_id, ReplayState()).copy()
        for sid in self._chains.get(graph_id, ()):
            state.apply(self._snapshots[sid])
            if sid == snapshot.id:
                break
        return state

    def _reconstruct(self, snapshot: HistorySnapshot) -> Graph:
        state = self._replay(snapshot)
        meta = snapshot.metadata
        return clone(Graph(
            id=snapshot.graph_id,
            name=meta.get("graph_name", ""),
            nodes=list(state.nodes.values()),
            edges=list(state.edges.values()),
            layout=meta.get("layout", "force-directed"),
            timestamp=snapshot.timestamp,
            version=meta.get("graph_version", 1),
        ))

    def _trim(self, graph_id: str) -> None:
        """Evict the oldest snapshots past the cap, folding them into the baseline."""
        chain = self._chains[graph_id]
        if len(chain) <= self.max_snapshots_per_graph:
            return

        baseline = self._baselines.setdefault(graph_id, ReplayState())
        evicted = 0
        while len(chain) > self.max_snapshots_per_graph:
            baseline.apply(self._snapshots.pop(chain.pop(0)))
            evicted += 1

        self.logger.debug("Trimmed snapshot chain", graph_id=graph_id, evicted=evicted)

    # =========================================================================
    # RECORDING
    # =========================================================================

    def record_snapshot(self, graph_id: str, event: Optional[str] = None) -> str:
        """
        Record the live graph as a delta against the chain's current state.

        Nodes and edges are compared field by field. The first snapshot of
        a graph lists everything as added.

        Args:
            graph_id: Graph to capture
            event: Free-form description of what happened

        Returns:
            The new snapshot id

        Raises:
            GraphNotFoundError: If graph doesn't exist
        """
        graph = self.graph_store.get_graph(graph_id)
        tip = self._tips.setdefault(graph_id, ReplayState())

        added_nodes: List[GraphNode] = []
        updated_nodes: List[GraphNode] = []
        for node in graph.nodes:
            previous = tip.nodes.get(node.id)
            if previous is None:
                added_nodes.append(node)
            elif previous != node:
                updated_nodes.append(node)
        live_node_ids = {node.id for node in graph.nodes}
        removed_node_ids = [nid for nid in tip.nodes if nid not in live_node_ids]

        added_edges: List[GraphEdge] = []
        updated_edges: List[GraphEdge] = []
        for edge in graph.edges:
            previous = tip.edges.get(edge.id)
            if previous is None:
                added_edges.append(edge)
            elif previous != edge:
                updated_edges.append(edge)
        live_edge_ids = {edge.id for edge in graph.edges}
        removed_edge_ids = [eid for eid in tip.edges if eid not in live_edge_ids]

        snapshot = HistorySnapshot(
            id=generate_id(),
            graph_id=graph_id,
            timestamp=self._next_timestamp(graph_id),
            added_nodes=added_nodes,
            removed_node_ids=removed_node_ids,
            updated_nodes=updated_nodes,
            added_edges=added_edges,
            removed_edge_ids=removed_edge_ids,
            updated_edges=updated_edges,
            event=event,
            metadata={
                "graph_version": graph.version,
                "node_count": len(graph.nodes),
                "edge_count": len(graph.edges),
                "graph_name": graph.name,
                "layout": graph.layout,
            },
        )

        self._snapshots[snapshot.id] = snapshot
        self._chains.setdefault(graph_id, []).append(snapshot.id)
        tip.apply(snapshot)
        self._trim(graph_id)

        self.logger.info(
            "Snapshot recorded",
            graph_id=graph_id,
            snapshot_id=snapshot.id,
            version=graph.version,
            added=len(added_nodes) + len(added_edges),
            updated=len(updated_nodes) + len(updated_edges),
            removed=len(removed_node_ids) + len(removed_edge_ids),
        )
        self.logger.log_mutation(
            MutationType.SNAPSHOT_RECORDED,
            graph_id=graph_id,
            snapshot_id=snapshot.id,
            graph_version=graph.version,
            detail=event,
        )
        return snapshot.id

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_snapshot(self, snapshot_id: str) -> HistorySnapshot:
        """
        Copy of a snapshot.

        Raises:
            SnapshotNotFoundError: If the id is unknown (or was trimmed)
        """
        return clone(self._require_snapshot(snapshot_id))

    def get_latest_snapshot(self, graph_id: str) -> Optional[HistorySnapshot]:
        """Copy of the newest snapshot of a graph, or None."""
        chain = self._chains.get(graph_id)
        if not chain:
            return None
        return clone(self._snapshots[chain[-1]])

    def get_snapshots_by_graph(
        self,
        graph_id: str,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[HistorySnapshot]:
        """
        Snapshots of a graph within [start_time, end_time], oldest first.

        Either bound may be None. Naive datetimes are taken as UTC.
        An unknown graph yields [].
        """
        start = as_utc(start_time) if start_time is not None else None
        end = as_utc(end_time) if end_time is not None else None

        selected = [
            snapshot for snapshot in self._chain(graph_id)
            if (start is None or snapshot.timestamp >= start)
            and (end is None or snapshot.timestamp <= end)
        ]
        selected.sort(key=lambda s: s.timestamp)
        return [clone(snapshot) for snapshot in selected]

    def get_graph_evolution(
        self,
        graph_id: str,
        start_time: datetime,
        end_time: datetime,
    ) -> List[HistorySnapshot]:
        """Snapshots of a graph between two required bounds (inclusive)."""
        return self.get_snapshots_by_graph(graph_id, start_time, end_time)

    # =========================================================================
    # RECONSTRUCTION
    # =========================================================================

    def reconstruct_snapshot(self, snapshot_id: str) -> Graph:
        """
        Rebuild the graph as it was when a snapshot was recorded.

        Raises:
            SnapshotNotFoundError: If the id is unknown (or was trimmed)
        """
        return self._reconstruct(self._require_snapshot(snapshot_id))

    def get_graph_state_at_time(self, graph_id: str, timestamp: datetime) -> Graph:
        """
        Rebuild the graph as of a point in time.

        Uses the latest snapshot recorded at or before `timestamp`.

        Raises:
            SnapshotNotFoundError: If no snapshot of the graph is that old
        """
        target = as_utc(timestamp)

        chosen: Optional[HistorySnapshot] = None
        for snapshot in self._chain(graph_id):
            if snapshot.timestamp > target:
                break
            chosen = snapshot

        if chosen is None:
            raise SnapshotNotFoundError(
                message=f"No snapshot of graph {graph_id} at or before {target.isoformat()}"
            )
        return self._reconstruct(chosen)

    # =========================================================================
    # DIFF AND REVERT
    # =========================================================================

    def compare_snapshots(self, snapshot1_id: str, snapshot2_id: str) -> SnapshotComparison:
        """
        Diff the states rebuilt from two snapshots.

        "added" means present in the second state only, "removed" in the
        first only, "changed" in both with different contents.

        Raises:
            SnapshotNotFoundError: If either id is unknown
        """
        first = self._replay(self._require_snapshot(snapshot1_id))
        second = self._replay(self._require_snapshot(snapshot2_id))

        comparison = SnapshotComparison(
            added_nodes=[n for nid, n in second.nodes.items() if nid not in first.nodes],
            removed_nodes=[n for nid, n in first.nodes.items() if nid not in second.nodes],
            changed_nodes=[
                NodeChange(before=first.nodes[nid], after=n)
                for nid, n in second.nodes.items()
                if nid in first.nodes and first.nodes[nid] != n
            ],
            added_edges=[e for eid, e in second.edges.items() if eid not in first.edges],
            removed_edges=[e for eid, e in first.edges.items() if eid not in second.edges],
            changed_edges=[
                EdgeChange(before=first.edges[eid], after=e)
                for eid, e in second.edges.items()
                if eid in first.edges and first.edges[eid] != e
            ],
        )
        return clone(comparison)

    def revert_to_snapshot(self, graph_id: str, snapshot_id: str) -> bool:
        """
        Make the live graph match a snapshot's rebuilt state.

        Clears every live edge and node, re-adds the rebuilt nodes and then
        the rebuilt edges (keeping their creation times), and records a new
        snapshot for the revert.

        The revert is not atomic: if a store call fails partway through,
        the live graph is left as far as the revert got (possibly cleared)
        and no revert snapshot is recorded.

        Returns:
            False (logged) for an unknown snapshot, a snapshot of another
            graph, or a store failure
        """
        snapshot = self._snapshots.get(snapshot_id)
        if snapshot is None:
            self.logger.warning("Cannot revert: snapshot not found", graph_id=graph_id, snapshot_id=snapshot_id)
            return False
        if snapshot.graph_id != graph_id:
            self.logger.warning(
                "Cannot revert: snapshot belongs to another graph",
                graph_id=graph_id,
                snapshot_id=snapshot_id,
                snapshot_graph_id=snapshot.graph_id,
            )
            return False

        try:
            target = self._reconstruct(snapshot)
            live = self.graph_store.get_graph(graph_id)

            for edge in live.edges:
                self.graph_store.remove_edge(graph_id, edge.id)
            for node in live.nodes:
                self.graph_store.remove_node(graph_id, node.id)

            for node in target.nodes:
                self.graph_store.add_node(graph_id, node, restore=True)
            for edge in target.edges:
                self.graph_store.add_edge(graph_id, edge, restore=True)

            self.record_snapshot(graph_id, f"Reverted to snapshot {snapshot_id}")
        except GraphError as e:
            self.logger.error(
                f"Revert failed: {e}",
                exc_info=True,
                graph_id=graph_id,
                snapshot_id=snapshot_id,
            )
            return False

        self.logger.log_mutation(
            MutationType.SNAPSHOT_REVERTED,
            graph_id=graph_id,
            snapshot_id=snapshot_id,
        )
        return True
