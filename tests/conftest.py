"""
Pytest configuration and shared fixtures for the AgentViz test suite.
"""
import random
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture
def rng():
    """Seeded random source so randomized layouts are reproducible."""
    return random.Random(1234)


@pytest.fixture
def mutation_logger():
    """Provide a fresh in-memory MutationLogger (no file journal)."""
    from infrastructure.logger import MutationLogger, LoggerConfig
    return MutationLogger(LoggerConfig(enable_file_log=False), name="test")


@pytest.fixture
def store(mutation_logger, rng):
    """Provide a fresh GraphStore."""
    from core.graph_store import GraphStore
    return GraphStore(logger=mutation_logger, rng=rng)


@pytest.fixture
def history(store, mutation_logger):
    """Provide a GraphHistory bound to the store fixture."""
    from core.history import GraphHistory
    return GraphHistory(store, logger=mutation_logger)


@pytest.fixture
def highlighter(store, mutation_logger):
    """Provide a PathHighlighter bound to the store fixture."""
    from core.highlighting import PathHighlighter
    return PathHighlighter(store, logger=mutation_logger)


@pytest.fixture
def g1(store):
    """
    Provide the basic lifecycle graph:

        g1: a (TASK) --e1 (ASSIGNMENT)--> b (AGENT)
    """
    from core.schemas import GraphNode, GraphEdge
    from core.ontology import NodeType, EdgeType

    store.initialize_graph("g1", "Lifecycle")
    store.add_node("g1", GraphNode(id="a", type=NodeType.TASK, label="Task A"))
    store.add_node("g1", GraphNode(id="b", type=NodeType.AGENT, label="Agent B"))
    store.add_edge("g1", GraphEdge(
        id="e1", type=EdgeType.ASSIGNMENT, source_id="a", target_id="b",
    ))
    return "g1"
