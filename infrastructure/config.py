"""
AGENTVIZ CONFIG - TOML-backed settings for the graph layer

Configuration is read once from config/agentviz.toml and turned into
small dataclasses that services take in their constructors. Nothing
reads the file behind a service's back.

Usage:
    from infrastructure.config import load_config
    from infrastructure.logger import configure_logger

    config = load_config()
    logger = configure_logger(config.logging)
    store = GraphStore(logger=logger, config=config.graph, layout_config=config.layout)
    history = GraphHistory(store, logger=logger, config=config.history)

Environment overrides:
    AGENTVIZ_MAX_SNAPSHOTS - retention cap per graph
"""
from dataclasses import dataclass, field, fields
from typing import Optional, Dict, Any
from pathlib import Path
import os
import warnings


DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "agentviz.toml"

ENV_MAX_SNAPSHOTS = "AGENTVIZ_MAX_SNAPSHOTS"


# =============================================================================
# TOML LOADING
# =============================================================================

def load_toml_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from agentviz.toml.

    Returns:
        Dict with all configuration sections ({} if the file is absent
        or unreadable)
    """
    import tomllib

    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not config_path.exists():
        return {}

    try:
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        warnings.warn(f"Failed to load config from {config_path}: {e}")
        return {}


def _pick(cls, section: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only the keys a dataclass knows about."""
    known = {f.name for f in fields(cls)}
    return {k: v for k, v in section.items() if k in known}


# =============================================================================
# SECTIONS
# =============================================================================

@dataclass
class GraphStoreConfig:
    """[graph] section."""
    default_layout: str = "force-directed"


@dataclass
class HistoryConfig:
    """[history] section."""
    max_snapshots_per_graph: int = 50

    def __post_init__(self):
        if self.max_snapshots_per_graph < 1:
            raise ValueError(
                f"max_snapshots_per_graph must be >= 1, got {self.max_snapshots_per_graph}"
            )


@dataclass
class LayoutConfig:
    """[layout] section - constants used by the built-in layouts."""
    canvas_size: float = 1000.0         # Force-directed initial placement range
    jitter: float = 50.0                # Force-directed jitter span
    level_height: float = 150.0         # Hierarchical vertical spacing
    level_width: float = 1000.0         # Hierarchical width budget per level
    cell_size: float = 150.0            # Grid cell size
    cell_offset: float = 50.0           # Grid margin
    center_x: float = 500.0             # Circular center
    center_y: float = 500.0
    max_radius: float = 500.0           # Circular radius cap
    radius_per_node: float = 50.0       # Circular radius growth


def _logger_config(section: Optional[Dict[str, Any]] = None):
    """[logging] section as a LoggerConfig."""
    # Imported here: infrastructure.logger depends on core.layouts, which imports this module
    from infrastructure.logger import LoggerConfig
    return LoggerConfig.from_dict(section or {})


@dataclass
class AgentVizConfig:
    """All sections together."""
    graph: GraphStoreConfig = field(default_factory=GraphStoreConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    logging: "LoggerConfig" = field(default_factory=_logger_config)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentVizConfig":
        """Build from a parsed TOML dict, ignoring unknown keys."""
        return cls(
            graph=GraphStoreConfig(**_pick(GraphStoreConfig, data.get("graph", {}))),
            history=HistoryConfig(**_pick(HistoryConfig, data.get("history", {}))),
            layout=LayoutConfig(**_pick(LayoutConfig, data.get("layout", {}))),
            logging=_logger_config(data.get("logging", {})),
        )


def load_config(path: Optional[Path] = None) -> AgentVizConfig:
    """
    Load the full configuration, applying environment overrides.

    Args:
        path: TOML file to read (defaults to config/agentviz.toml)

    Raises:
        ValueError: If an override or file value is out of range
    """
    data = load_toml_config(path)

    override = os.getenv(ENV_MAX_SNAPSHOTS)
    if override:
        data.setdefault("history", {})["max_snapshots_per_graph"] = int(override)

    return AgentVizConfig.from_dict(data)
