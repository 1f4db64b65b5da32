"""
stakegov Configuration

Loads the [node] and [governance] sections of config.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    EngineConfig,
    GovernanceConfig,
    NodeSectionConfig,
    load_config,
)

__all__ = [
    "EngineConfig",
    "GovernanceConfig",
    "NodeSectionConfig",
    "load_config",
]
