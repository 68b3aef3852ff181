"""
AGENTVIZ MUTATION LOGGER - The Graph Journal

Two jobs in one injectable object:
- Diagnostic logging: debug/info/warning/error with structured fields,
  routed to the stdlib `logging` tree under "agentviz.<name>"
- Mutation journal: every store mutation and history event as a
  MutationEvent, kept in a ring buffer and optionally in JSONL files

Architecture:
- MutationLogger: Core logging interface
- FileLogger: JSON-lines journal with daily rotation
- EventBuffer: In-memory ring buffer for recent events

Usage:
    logger = MutationLogger(name="graph_store")
    logger.warning("Node not found", graph_id="g1", node_id="ghost")
    logger.log_mutation(MutationType.NODE_CREATED, graph_id="g1", node_id="a")

    # Playback
    for event in logger.get_events_for_graph("g1"):
        print(f"{event.timestamp}: {event.mutation_type}")

Design:
- Never raises: a broken sink must not break a graph mutation
- Configurable: Enable/disable the file journal
"""
import msgspec
from typing import Optional, Dict, List, Any, Callable, Union
from datetime import datetime, timezone
from dataclasses import dataclass
from pathlib import Path
from collections import deque
import threading
import logging
import io

from viz.core import MutationType, MutationEvent


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class LoggerConfig:
    """Configuration for the mutation logger."""
    enable_file_log: bool = False       # Enable file-based journal
    log_path: Optional[Path] = None     # Path for log files
    buffer_size: int = 10000            # In-memory buffer size

    def __post_init__(self):
        if self.log_path is None:
            self.log_path = Path("./workspace/logs")
        else:
            self.log_path = Path(self.log_path)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggerConfig":
        """Build from the [logging] section of agentviz.toml."""
        return cls(
            enable_file_log=bool(data.get("enable_file_log", False)),
            log_path=data.get("log_path"),
            buffer_size=int(data.get("buffer_size", 10000)),
        )


# =============================================================================
# EVENT BUFFER
# =============================================================================

class EventBuffer:
    """
    Thread-safe ring buffer for recent mutation events.

    Provides O(1) append and O(n) query filtering.
    """

    def __init__(self, max_size: int = 10000):
        self._buffer: deque[MutationEvent] = deque(maxlen=max_size)
        self._lock = threading.RLock()
        self._sequence = 0

    def append(self, event: MutationEvent) -> None:
        """Add an event to the buffer."""
        with self._lock:
            self._buffer.append(event)

    def get_last(self, n: int) -> List[MutationEvent]:
        """Get the last n events."""
        with self._lock:
            items = list(self._buffer)
            return items[-n:] if n > 0 else []

    def get_by_graph(self, graph_id: str) -> List[MutationEvent]:
        """Get all events for a specific graph."""
        with self._lock:
            return [e for e in self._buffer if e.graph_id == graph_id]

    def get_by_node(self, node_id: str) -> List[MutationEvent]:
        """Get all events for a specific node."""
        with self._lock:
            return [e for e in self._buffer if e.node_id == node_id]

    def get_by_type(self, mutation_type: str) -> List[MutationEvent]:
        """Get all events of a specific type."""
        with self._lock:
            return [e for e in self._buffer if e.mutation_type == mutation_type]

    def next_sequence(self) -> int:
        """Get next sequence number."""
        with self._lock:
            self._sequence += 1
            return self._sequence

    def clear(self) -> None:
        """Clear the buffer."""
        with self._lock:
            self._buffer.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)


# =============================================================================
# FILE LOGGER
# =============================================================================

class FileLogger:
    """
    File-based event journal.

    Writes events as newline-delimited JSON for easy parsing.
    Rotates logs daily.
    """

    def __init__(self, log_path: Path):
        self._log_path = log_path
        self._current_file: Optional[io.TextIOWrapper] = None
        self._current_date: Optional[str] = None
        self._lock = threading.Lock()
        self._encoder = msgspec.json.Encoder()

        # Ensure log directory exists
        log_path.mkdir(parents=True, exist_ok=True)

    def write(self, event: MutationEvent) -> None:
        """Write an event to the log file."""
        with self._lock:
            self._ensure_file()
            line = self._encoder.encode(event).decode("utf-8") + "\n"
            if self._current_file:
                self._current_file.write(line)
                self._current_file.flush()

    def _ensure_file(self) -> None:
        """Ensure we have a valid file handle for today."""
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")

        if self._current_date != today:
            # Close old file
            if self._current_file:
                self._current_file.close()

            # Open new file
            filepath = self._log_path / f"mutations_{today}.jsonl"
            self._current_file = open(filepath, "a", encoding="utf-8")
            self._current_date = today

    def close(self) -> None:
        """Close the file handle."""
        with self._lock:
            if self._current_file:
                self._current_file.close()
                self._current_file = None
                self._current_date = None

    def read_log(self, date: str) -> List[MutationEvent]:
        """Read events from a specific date's log, skipping corrupt lines."""
        filepath = self._log_path / f"mutations_{date}.jsonl"

        if not filepath.exists():
            return []

        events = []
        decoder = msgspec.json.Decoder(type=MutationEvent)

        with open(filepath, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    events.append(decoder.decode(line.encode()))
                except msgspec.DecodeError:
                    continue

        return events


# =============================================================================
# MUTATION LOGGER (Main Interface)
# =============================================================================

class MutationLogger:
    """
    Main logging interface for the graph layer.

    Provides a unified API for:
    - Diagnostic messages (stdlib logging, structured key=value fields)
    - Mutation events to the in-memory buffer (always)
    - Mutation events to file-based logs (configurable)

    Thread-safe for concurrent logging.

    Usage:
        logger = MutationLogger(name="history")

        logger.info("Snapshot recorded", graph_id="g1", snapshot_id="...")
        logger.log_mutation(MutationType.SNAPSHOT_RECORDED, graph_id="g1")

        events = logger.get_events_for_node("node_123")
        recent = logger.get_recent_events(100)
    """

    def __init__(self, config: Optional[LoggerConfig] = None, name: str = "graph"):
        self.config = config or LoggerConfig()
        self.name = name
        self._log = logging.getLogger(f"agentviz.{name}")

        # Core components
        self._buffer = EventBuffer(self.config.buffer_size)
        self._file_logger: Optional[FileLogger] = None

        # Initialize file logger
        if self.config.enable_file_log and self.config.log_path:
            try:
                self._file_logger = FileLogger(self.config.log_path)
            except OSError as e:
                self._log.error(f"FileLogger disabled, journaling to buffer only: {e}")

        # Event subscribers
        self._subscribers: List[Callable[[MutationEvent], None]] = []

    def _now(self) -> str:
        """Get current UTC timestamp."""
        return datetime.now(timezone.utc).isoformat()

    # =========================================================================
    # DIAGNOSTIC MESSAGES
    # =========================================================================

    def _write(self, level: int, message: str, fields: Dict[str, Any], exc_info: bool = False) -> None:
        try:
            if fields:
                extra = " ".join(f"{key}={value}" for key, value in fields.items())
                message = f"{message} [{extra}]"
            self._log.log(level, message, exc_info=exc_info)
        except Exception:
            # The logging sink is best-effort
            return

    def debug(self, message: str, **fields: Any) -> None:
        self._write(logging.DEBUG, message, fields)

    def info(self, message: str, **fields: Any) -> None:
        self._write(logging.INFO, message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._write(logging.WARNING, message, fields)

    def error(self, message: str, exc_info: bool = False, **fields: Any) -> None:
        self._write(logging.ERROR, message, fields, exc_info=exc_info)

    # =========================================================================
    # MUTATION JOURNAL
    # =========================================================================

    def _emit(self, event: MutationEvent) -> None:
        """Emit an event to all destinations."""
        # Buffer (always)
        self._buffer.append(event)

        # File logger
        if self._file_logger:
            try:
                self._file_logger.write(event)
            except (OSError, TypeError, msgspec.EncodeError) as e:
                self._log.error(f"FileLogger error: {e}")

        # Subscribers
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception as e:
                self._log.error(f"Journal subscriber error: {e}", exc_info=True)

    def log_mutation(
        self,
        mutation_type: Union[MutationType, str],
        **fields: Any,
    ) -> Optional[MutationEvent]:
        """
        Record a mutation event.

        Args:
            mutation_type: MutationType (or its value)
            **fields: Any MutationEvent field (graph_id, node_id, ...)

        Returns:
            The recorded event, or None if it could not be built
        """
        if isinstance(mutation_type, MutationType):
            mutation_type = mutation_type.value
        try:
            event = MutationEvent(
                timestamp=self._now(),
                sequence=self._buffer.next_sequence(),
                mutation_type=mutation_type,
                **fields,
            )
        except TypeError as e:
            self._log.error(f"Invalid mutation event {mutation_type}: {e}")
            return None
        self._emit(event)
        return event

    # =========================================================================
    # QUERY METHODS
    # =========================================================================

    def get_recent_events(self, n: int = 100) -> List[MutationEvent]:
        """Get the n most recent events."""
        return self._buffer.get_last(n)

    def get_events_for_graph(self, graph_id: str) -> List[MutationEvent]:
        """Get all events for a specific graph."""
        return self._buffer.get_by_graph(graph_id)

    def get_events_for_node(self, node_id: str) -> List[MutationEvent]:
        """Get all events for a specific node."""
        return self._buffer.get_by_node(node_id)

    def get_events_by_type(self, mutation_type: Union[MutationType, str]) -> List[MutationEvent]:
        """Get all events of a specific type."""
        if isinstance(mutation_type, MutationType):
            mutation_type = mutation_type.value
        return self._buffer.get_by_type(mutation_type)

    def get_node_timeline(self, node_id: str) -> List[Dict[str, Any]]:
        """
        Get a timeline of mutations for a node.

        Returns a simplified list of mutations for debugging.
        """
        return [
            {
                "time": e.timestamp,
                "type": e.mutation_type,
                "graph_id": e.graph_id,
                "old_state": e.old_state,
                "new_state": e.new_state,
            }
            for e in self.get_events_for_node(node_id)
        ]

    # =========================================================================
    # SUBSCRIPTION
    # =========================================================================

    def subscribe(self, callback: Callable[[MutationEvent], None]) -> None:
        """Subscribe to mutation events."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[MutationEvent], None]) -> None:
        """Unsubscribe from mutation events."""
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def close(self) -> None:
        """Close all resources."""
        if self._file_logger:
            self._file_logger.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

# Global logger instance
_global_logger: Optional[MutationLogger] = None


def get_logger() -> MutationLogger:
    """Get or create the global logger instance."""
    global _global_logger
    if _global_logger is None:
        _global_logger = MutationLogger()
    return _global_logger


def configure_logger(config: LoggerConfig) -> MutationLogger:
    """Configure and return a new global logger."""
    global _global_logger
    if _global_logger:
        _global_logger.close()
    _global_logger = MutationLogger(config)
    return _global_logger
