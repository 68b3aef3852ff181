"""
AGENTVIZ LAYOUTS - Placeholder position assignment

Layouts are plain callables registered by name:

    fn(nodes: List[GraphNode], edges: List[GraphEdge]) -> None

They write `node.position` in place. The GraphStore owns the lists and
calls the layout from apply_layout(); nothing else should hand its own
internal lists to a layout.

Built-ins:
- force-directed: random initial placement plus jitter (no physics)
- hierarchical:   longest-path levels from the roots, rows per level
- circular:       evenly spaced on a circle
- grid:           row-major square grid

The hierarchical layout builds a rustworkx PyDiGraph over the node ids
(an id <-> index bridge) for in-degree and cycle checks; the level
relaxation itself runs over the edge list so the result matches edge
order exactly.
"""
import logging
import math
import random
from typing import Callable, Dict, List, Optional

import rustworkx as rx

from core.ontology import LayoutType
from core.schemas import GraphNode, GraphEdge, Position
from infrastructure.config import LayoutConfig


logger = logging.getLogger("agentviz.layouts")

LayoutFunction = Callable[[List[GraphNode], List[GraphEdge]], None]


# =============================================================================
# LEVEL COMPUTATION
# =============================================================================

def _build_digraph(nodes: List[GraphNode], edges: List[GraphEdge]):
    """PyDiGraph over node ids; edges with unknown endpoints are skipped."""
    graph = rx.PyDiGraph(multigraph=True)
    index: Dict[str, int] = {}
    for node in nodes:
        index[node.id] = graph.add_node(node.id)
    for edge in edges:
        if edge.source_id in index and edge.target_id in index:
            graph.add_edge(index[edge.source_id], index[edge.target_id], edge.id)
    return graph, index


def compute_levels(nodes: List[GraphNode], edges: List[GraphEdge]) -> Dict[str, int]:
    """
    Assign hierarchy levels to nodes.

    Roots (in-degree 0) get level 0; if there are none the first node
    is used as a synthetic root. Each edge then relaxes
    level[target] = max(level[target], level[source] + 1) until a fixed
    point. Nodes never reached are absent from the result.

    Insertion order of the returned dict is the order in which nodes
    first received a level (roots in node order, then discovery order).

    On a cyclic graph the relaxation is capped at len(nodes) passes,
    which is enough for every acyclic path to settle.
    """
    if not nodes:
        return {}

    graph, index = _build_digraph(nodes, edges)

    roots = [node.id for node in nodes if graph.in_degree(index[node.id]) == 0]
    if not roots:
        roots = [nodes[0].id]

    levels: Dict[str, int] = {root: 0 for root in roots}

    acyclic = rx.is_directed_acyclic_graph(graph)
    if not acyclic:
        logger.warning(
            f"Cycle detected while computing levels for {len(nodes)} nodes; "
            f"relaxation capped at {len(nodes)} passes"
        )
    max_passes = len(nodes) if not acyclic else None

    passes = 0
    changed = True
    while changed:
        if max_passes is not None and passes >= max_passes:
            break
        changed = False
        passes += 1
        for edge in edges:
            source_level = levels.get(edge.source_id)
            if source_level is None:
                continue
            new_level = source_level + 1
            target_level = levels.get(edge.target_id)
            if target_level is None or target_level < new_level:
                levels[edge.target_id] = new_level
                changed = True

    return levels


# =============================================================================
# LAYOUT ENGINE (Registered-by-name strategies)
# =============================================================================

class LayoutEngine:
    """
    Registry of layout strategies keyed by name.

    New layouts register under new names; the dispatcher never changes.

    Usage:
        engine = LayoutEngine(LayoutConfig(), rng=random.Random(7))
        engine.apply("grid", nodes, edges)
        engine.register("spiral", my_spiral_layout)
    """

    def __init__(
        self,
        config: Optional[LayoutConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or LayoutConfig()
        self._rng = rng or random.Random()
        self._layouts: Dict[str, LayoutFunction] = {}
        self._register_defaults()

    def _register_defaults(self) -> None:
        self.register(LayoutType.FORCE_DIRECTED.value, self.force_directed)
        self.register(LayoutType.HIERARCHICAL.value, self.hierarchical)
        self.register(LayoutType.CIRCULAR.value, self.circular)
        self.register(LayoutType.GRID.value, self.grid)

    # =========================================================================
    # REGISTRY
    # =========================================================================

    def register(self, name: str, fn: LayoutFunction) -> None:
        """Register (or replace) a layout under a name."""
        self._layouts[name] = fn
        logger.debug(f"Registered layout '{name}'")

    def get(self, name: str) -> Optional[LayoutFunction]:
        """Layout registered under a name, or None."""
        return self._layouts.get(name)

    def has(self, name: str) -> bool:
        return name in self._layouts

    @property
    def names(self) -> List[str]:
        return list(self._layouts)

    def apply(self, name: str, nodes: List[GraphNode], edges: List[GraphEdge]) -> bool:
        """
        Run a registered layout over the given lists.

        Returns:
            False if no layout is registered under that name
        """
        fn = self._layouts.get(name)
        if fn is None:
            return False
        fn(nodes, edges)
        return True

    # =========================================================================
    # BUILT-INS
    # =========================================================================

    def force_directed(self, nodes: List[GraphNode], edges: List[GraphEdge]) -> None:
        """Random placement for new nodes, then jitter everything."""
        if not nodes:
            return

        cfg = self.config
        for node in nodes:
            if node.position is None:
                node.position = Position(
                    x=self._rng.random() * cfg.canvas_size,
                    y=self._rng.random() * cfg.canvas_size,
                )

        for node in nodes:
            node.position = Position(
                x=node.position.x + (self._rng.random() - 0.5) * cfg.jitter,
                y=node.position.y + (self._rng.random() - 0.5) * cfg.jitter,
            )

    def hierarchical(self, nodes: List[GraphNode], edges: List[GraphEdge]) -> None:
        """Rows by level, evenly spaced within each row."""
        if not nodes:
            return

        cfg = self.config
        levels = compute_levels(nodes, edges)

        by_level: Dict[int, List[str]] = {}
        for node_id, level in levels.items():
            by_level.setdefault(level, []).append(node_id)

        by_id = {node.id: node for node in nodes}
        for level, node_ids in by_level.items():
            spacing = cfg.level_width / (len(node_ids) + 1)
            for i, node_id in enumerate(node_ids):
                by_id[node_id].position = Position(
                    x=spacing * (i + 1),
                    y=float(level * cfg.level_height),
                )

        # Unreached nodes go one row below the deepest level
        max_level = max(levels.values())
        for node in nodes:
            if node.id not in levels:
                node.position = Position(
                    x=self._rng.random() * cfg.level_width,
                    y=float((max_level + 1) * cfg.level_height),
                )

    def circular(self, nodes: List[GraphNode], edges: List[GraphEdge]) -> None:
        """Evenly spaced around a circle."""
        if not nodes:
            return

        cfg = self.config
        count = len(nodes)
        radius = min(cfg.max_radius, count * cfg.radius_per_node)

        for i, node in enumerate(nodes):
            angle = (i / count) * 2 * math.pi
            node.position = Position(
                x=cfg.center_x + radius * math.cos(angle),
                y=cfg.center_y + radius * math.sin(angle),
            )

    def grid(self, nodes: List[GraphNode], edges: List[GraphEdge]) -> None:
        """Row-major square grid."""
        if not nodes:
            return

        cfg = self.config
        columns = math.ceil(math.sqrt(len(nodes)))

        for i, node in enumerate(nodes):
            row, col = divmod(i, columns)
            node.position = Position(
                x=col * cfg.cell_size + cfg.cell_offset,
                y=row * cfg.cell_size + cfg.cell_offset,
            )
