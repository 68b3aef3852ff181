"""
AGENTVIZ ONTOLOGY - The Dictionary of the Workflow Graph

If schemas.py is the Grammar (how records are structured),
ontology.py is the Dictionary (the words a graph may use).

This module defines the closed vocabularies shared by every component:
- NodeType: What a node represents in a multi-agent workflow
- EdgeType: How two nodes relate
- NodeState: The render state of a node
- LayoutType: Names of the built-in layout strategies

Properties and metadata maps stay open on purpose; only these
categorical fields are closed.
"""
from enum import Enum


# =============================================================================
# ENUMS (The Vocabulary)
# =============================================================================

class NodeType(str, Enum):
    """Types of nodes in a workflow graph."""
    TASK = "task"                        # Unit of work handed to an agent
    AGENT = "agent"                      # An agent participating in the workflow
    RESOURCE = "resource"                # Tool, dataset or service consumed
    DECISION_POINT = "decision_point"    # Branch where an agent chose an option
    DATA = "data"                        # Produced or consumed artifact
    BARRIER = "barrier"                  # Synchronization point
    EVENT = "event"                      # External or lifecycle event
    INTERACTION = "interaction"          # Human or agent interaction


class EdgeType(str, Enum):
    """Types of edges between nodes."""
    DEPENDENCY = "dependency"            # Target waits for source
    EXECUTION_FLOW = "execution_flow"    # Control passes from source to target
    DATA_FLOW = "data_flow"              # Data moves from source to target
    COMMUNICATION = "communication"      # Message between agents
    ASSIGNMENT = "assignment"            # Task assigned to agent
    INTERACTION = "interaction"          # Interaction link
    CONTRIBUTION = "contribution"        # Agent contributed to a result


class NodeState(str, Enum):
    """Render state of a node."""
    INACTIVE = "inactive"
    ACTIVE = "active"
    COMPLETED = "completed"
    ERROR = "error"
    WARNING = "warning"
    SELECTED = "selected"
    HIGHLIGHTED = "highlighted"


class LayoutType(str, Enum):
    """Names under which the built-in layouts are registered."""
    FORCE_DIRECTED = "force-directed"
    HIERARCHICAL = "hierarchical"
    CIRCULAR = "circular"
    GRID = "grid"


# Edge state written by the path highlighter (edge state is a free string)
EDGE_STATE_HIGHLIGHTED = "highlighted"

# Highlight type used for active execution overlays
HIGHLIGHT_ACTIVE_EXECUTION = "active-execution"
