"""
AGENTVIZ VISUALIZATION - Render-ready projections

This package turns graph store and history records into what the
front end draws:
- core: VizNode/VizEdge projections, full snapshots, streaming deltas,
  Arrow IPC export and the mutation journal record
"""

from viz.core import (
    VizNode,
    VizEdge,
    VizSnapshot,
    GraphDelta,
    MutationEvent,
    MutationType,
    create_viz_snapshot,
    serialize_to_arrow,
)

__all__ = [
    "VizNode",
    "VizEdge",
    "VizSnapshot",
    "GraphDelta",
    "MutationEvent",
    "MutationType",
    "create_viz_snapshot",
    "serialize_to_arrow",
]
