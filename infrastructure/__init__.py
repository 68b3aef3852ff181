"""
AGENTVIZ INFRASTRUCTURE - System-Level Modules

This package contains infrastructure components:
- config: TOML-backed settings (config/agentviz.toml)
- event_bus: Topic-keyed observer fan-out with per-handler isolation
- logger: Structured logging and the mutation journal
"""
