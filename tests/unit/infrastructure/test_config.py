"""
Unit tests for infrastructure/config.py - TOML configuration
"""
import pytest

from infrastructure.config import (
    AgentVizConfig,
    HistoryConfig,
    LayoutConfig,
    DEFAULT_CONFIG_PATH,
    ENV_MAX_SNAPSHOTS,
    load_config,
    load_toml_config,
)
from infrastructure.logger import LoggerConfig


def test_bundled_config_loads():
    """
    Validate that config/agentviz.toml parses and matches the defaults.
    """
    assert DEFAULT_CONFIG_PATH.exists()

    config = load_config()

    assert config.history.max_snapshots_per_graph == 50
    assert config.graph.default_layout == "force-directed"
    assert config.layout == LayoutConfig()
    assert isinstance(config.logging, LoggerConfig)
    assert config.logging.enable_file_log is False
    assert config.logging.buffer_size == 10000


def test_missing_file_gives_defaults(tmp_path):
    """
    Validate that a missing config file yields the dataclass defaults.
    """
    assert load_toml_config(tmp_path / "absent.toml") == {}

    config = load_config(tmp_path / "absent.toml")

    assert config == AgentVizConfig()


def test_invalid_toml_warns_and_falls_back(tmp_path):
    """
    Validate that an unparsable file warns and yields {}.
    """
    broken = tmp_path / "broken.toml"
    broken.write_text("[history\nmax = ")

    with pytest.warns(UserWarning):
        assert load_toml_config(broken) == {}


def test_sections_ignore_unknown_keys(tmp_path):
    """
    Validate that unknown keys are dropped and known ones applied.
    """
    path = tmp_path / "agentviz.toml"
    path.write_text(
        "[history]\nmax_snapshots_per_graph = 7\nunknown = 1\n"
        "[layout]\ncell_size = 10.0\n"
    )

    config = load_config(path)

    assert config.history.max_snapshots_per_graph == 7
    assert config.layout.cell_size == 10.0
    assert config.layout.cell_offset == 50.0


def test_logging_section_builds_logger_config(tmp_path):
    """
    Validate that [logging] becomes a LoggerConfig a MutationLogger accepts.

    Verifies:
    - enable_file_log, log_path and buffer_size are applied
    - The resulting logger journals to the configured directory
    """
    from infrastructure.logger import MutationLogger
    from viz.core import MutationType

    log_dir = tmp_path / "logs"
    path = tmp_path / "agentviz.toml"
    path.write_text(
        f"[logging]\nenable_file_log = true\nlog_path = \"{log_dir.as_posix()}\"\nbuffer_size = 3\n"
    )

    config = load_config(path)

    assert config.logging == LoggerConfig(enable_file_log=True, log_path=log_dir, buffer_size=3)

    with MutationLogger(config.logging) as logger:
        logger.log_mutation(MutationType.GRAPH_INITIALIZED, graph_id="g1")

    assert len(list(log_dir.glob("mutations_*.jsonl"))) == 1


def test_env_override(tmp_path, monkeypatch):
    """
    Validate that AGENTVIZ_MAX_SNAPSHOTS overrides the retention cap.
    """
    monkeypatch.setenv(ENV_MAX_SNAPSHOTS, "12")

    config = load_config(tmp_path / "absent.toml")

    assert config.history.max_snapshots_per_graph == 12


def test_retention_cap_must_be_positive():
    """
    Validate that a cap below 1 raises ValueError.
    """
    with pytest.raises(ValueError):
        HistoryConfig(max_snapshots_per_graph=0)
