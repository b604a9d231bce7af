"""
Automation backend — workflow automation engine.

Sub-packages:
    config        — dataclass-backed configuration with env defaults
    logging       — per-run execution logging
    workflow      — node registry, migration, scheduling, layout,
                    execution and run history
    triggers      — recurring polling trigger lifecycle
    integrations  — external signal-source clients (ZoomInfo)
"""
