"""
stakegov TOML Configuration Loader

Loads the [node] and [governance] sections of config.toml with environment
variable overrides (dataclass + from_dict + from_file).

Environment variable mapping:
    [node] log_level                   → STAKEGOV_LOG_LEVEL
    [governance] voting_delay          → STAKEGOV_VOTING_DELAY
    [governance] participation_ceiling → STAKEGOV_PARTICIPATION_CEILING
    ...

The [governance] values seed the settings store once, at bootstrap. After
that the live settings only change through executed motions.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import (
    BASIS_POINTS,
    GOVERNANCE_EXECUTION_DELAY,
    GOVERNANCE_MIN_MOTION_THRESHOLD,
    GOVERNANCE_MIN_VOTING_DURATION,
    GOVERNANCE_MOTION_DEPOSIT,
    GOVERNANCE_PARTICIPATION_CEILING,
    GOVERNANCE_QUORUM_BP,
    GOVERNANCE_SIMPLE_MAJORITY_BP,
    GOVERNANCE_SUPER_MAJORITY_BP,
    GOVERNANCE_VOTING_DELAY,
    GOVERNANCE_VOTING_DURATION,
    STAKEGOV_CONFIG,
    STAKEGOV_TREASURY_ACCOUNT,
)
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class NodeSectionConfig:
    """[node] section."""
    network_name: str = "stakegov-local"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeSectionConfig":
        return cls(
            network_name=data.get("network_name", "stakegov-local"),
            log_level=data.get("log_level", "INFO"),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("STAKEGOV_NETWORK_NAME"):
            self.network_name = v
        if v := os.environ.get("STAKEGOV_LOG_LEVEL"):
            self.log_level = v


# Integer fields of [governance] that may be overridden from the environment
_GOVERNANCE_ENV_INTS = {
    "voting_delay": "STAKEGOV_VOTING_DELAY",
    "voting_duration": "STAKEGOV_VOTING_DURATION",
    "execution_delay": "STAKEGOV_EXECUTION_DELAY",
    "min_motion_threshold": "STAKEGOV_MIN_MOTION_THRESHOLD",
    "quorum_bp": "STAKEGOV_QUORUM_BP",
    "simple_majority_bp": "STAKEGOV_SIMPLE_MAJORITY_BP",
    "super_majority_bp": "STAKEGOV_SUPER_MAJORITY_BP",
    "min_voting_duration": "STAKEGOV_MIN_VOTING_DURATION",
    "motion_deposit": "STAKEGOV_MOTION_DEPOSIT",
    "participation_ceiling": "STAKEGOV_PARTICIPATION_CEILING",
}


@dataclass
class GovernanceConfig:
    """
    [governance] section.

    The first seven fields are bootstrap values for the settings store;
    the rest are fixed engine parameters that no motion can change.
    """
    voting_delay: int = GOVERNANCE_VOTING_DELAY
    voting_duration: int = GOVERNANCE_VOTING_DURATION
    execution_delay: int = GOVERNANCE_EXECUTION_DELAY
    min_motion_threshold: int = GOVERNANCE_MIN_MOTION_THRESHOLD
    quorum_bp: int = GOVERNANCE_QUORUM_BP
    simple_majority_bp: int = GOVERNANCE_SIMPLE_MAJORITY_BP
    super_majority_bp: int = GOVERNANCE_SUPER_MAJORITY_BP

    min_voting_duration: int = GOVERNANCE_MIN_VOTING_DURATION
    motion_deposit: int = GOVERNANCE_MOTION_DEPOSIT
    participation_ceiling: int = GOVERNANCE_PARTICIPATION_CEILING
    treasury_account: str = field(default_factory=lambda: str(STAKEGOV_TREASURY_ACCOUNT))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceConfig":
        defaults = cls()
        return cls(
            voting_delay=data.get("voting_delay", defaults.voting_delay),
            voting_duration=data.get("voting_duration", defaults.voting_duration),
            execution_delay=data.get("execution_delay", defaults.execution_delay),
            min_motion_threshold=data.get("min_motion_threshold", defaults.min_motion_threshold),
            quorum_bp=data.get("quorum_bp", defaults.quorum_bp),
            simple_majority_bp=data.get("simple_majority_bp", defaults.simple_majority_bp),
            super_majority_bp=data.get("super_majority_bp", defaults.super_majority_bp),
            min_voting_duration=data.get("min_voting_duration", defaults.min_voting_duration),
            motion_deposit=data.get("motion_deposit", defaults.motion_deposit),
            participation_ceiling=data.get("participation_ceiling", defaults.participation_ceiling),
            treasury_account=data.get("treasury_account", defaults.treasury_account),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        for attr, env_name in _GOVERNANCE_ENV_INTS.items():
            if v := os.environ.get(env_name):
                try:
                    setattr(self, attr, int(v))
                except ValueError as exc:
                    raise ConfigurationError(
                        f"{env_name} must be an integer, got {v!r}"
                    ) from exc
        if v := os.environ.get("STAKEGOV_TREASURY_ACCOUNT"):
            self.treasury_account = v

    def validate(self) -> None:
        for attr in _GOVERNANCE_ENV_INTS:
            value = getattr(self, attr)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ConfigurationError(f"{attr} must be a non-negative integer, got {value!r}")
        for attr in ("quorum_bp", "simple_majority_bp", "super_majority_bp"):
            if getattr(self, attr) > BASIS_POINTS:
                raise ConfigurationError(f"{attr} must be <= {BASIS_POINTS}")
        if self.participation_ceiling < 1:
            raise ConfigurationError("participation_ceiling must be >= 1")
        if self.voting_duration < self.min_voting_duration:
            raise ConfigurationError(
                f"voting_duration {self.voting_duration} < "
                f"min_voting_duration {self.min_voting_duration}"
            )
        if not self.treasury_account:
            raise ConfigurationError("treasury_account must be set")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "voting_delay": self.voting_delay,
            "voting_duration": self.voting_duration,
            "execution_delay": self.execution_delay,
            "min_motion_threshold": self.min_motion_threshold,
            "quorum_bp": self.quorum_bp,
            "simple_majority_bp": self.simple_majority_bp,
            "super_majority_bp": self.super_majority_bp,
            "min_voting_duration": self.min_voting_duration,
            "motion_deposit": self.motion_deposit,
            "participation_ceiling": self.participation_ceiling,
            "treasury_account": self.treasury_account,
        }


# -----------------------------------------------------------------------
# Top-level unified config
# -----------------------------------------------------------------------

@dataclass
class EngineConfig:
    """
    Unified engine configuration.

    Loads every section of config.toml and applies environment variable
    overrides.
    """
    node: NodeSectionConfig = field(default_factory=NodeSectionConfig)
    governance: GovernanceConfig = field(default_factory=GovernanceConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Create EngineConfig from a parsed TOML dict."""
        return cls(
            node=NodeSectionConfig.from_dict(data.get("node", {})),
            governance=GovernanceConfig.from_dict(data.get("governance", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "EngineConfig":
        """
        Load configuration from a TOML file.

        Args:
            config_path: Path to config.toml

        Returns:
            EngineConfig instance
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            raw = tomli.load(f)

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.node.apply_env()
        self.governance.apply_env()

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Returns:
            True if all valid

        Raises:
            ConfigurationError: on invalid config
        """
        if self.node.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigurationError(f"Invalid log_level: {self.node.log_level}")
        self.governance.validate()
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "node": {
                "network_name": self.node.network_name,
                "log_level": self.node.log_level,
            },
            "governance": self.governance.to_dict(),
        }


def load_config(path: Optional[str] = None) -> EngineConfig:
    """
    Load engine configuration.

    Resolution order:
        1. Explicit *path* argument
        2. STAKEGOV_CONFIG env var
        3. STAKEGOV_CONFIG from .env (defaults to ./config.toml)
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("STAKEGOV_CONFIG", str(STAKEGOV_CONFIG))

    cfg = EngineConfig.from_file(path)
    cfg.validate()
    return cfg
