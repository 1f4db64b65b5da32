"""
Protocol Settings Store

Typed key → value registry. Every entry remembers the height it last
changed at. Reads are open; writes are only accepted from a CallContext
minted by the lifecycle controller while it executes a passed motion.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List

from ..constants import (
    BASIS_POINTS,
    GOVERNANCE_DEFAULT_SETTINGS,
    GOVERNANCE_MIN_VOTING_DURATION,
    SETTING_EXECUTION_DELAY,
    SETTING_MIN_MOTION_THRESHOLD,
    SETTING_QUORUM_BP,
    SETTING_SIMPLE_MAJORITY_BP,
    SETTING_SUPER_MAJORITY_BP,
    SETTING_VOTING_DELAY,
    SETTING_VOTING_DURATION,
)
from ..exceptions import InvalidInputError, NotFoundError, UnauthorizedError
from ..logger import get_logger
from .types import SettingValueType

if TYPE_CHECKING:
    from ..config import GovernanceConfig
    from .state import GovernanceState

logger = get_logger(__name__)

# Settings stored in basis points, capped at 100%
_BP_SETTINGS = frozenset({
    SETTING_QUORUM_BP,
    SETTING_SIMPLE_MAJORITY_BP,
    SETTING_SUPER_MAJORITY_BP,
})


@dataclass(frozen=True)
class CallContext:
    """
    Who is calling, and whether the call is part of executing a passed motion.

    External entry points always build ``CallContext(caller)``; only
    LifecycleController.execute creates one with the governance flag set.
    """
    caller: str
    in_governance_execution: bool = False

    def authorized_governance_caller(self) -> bool:
        return self.in_governance_execution


@dataclass
class ProtocolSetting:
    """A single governable parameter."""
    key: str
    value: Any
    value_type: SettingValueType
    last_updated: int
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "value": self.value,
            "valueType": self.value_type.value,
            "lastUpdated": self.last_updated,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProtocolSetting":
        value_type = SettingValueType.parse(data["valueType"])
        return cls(
            key=data["key"],
            value=value_type.coerce(data["value"]),
            value_type=value_type,
            last_updated=data["lastUpdated"],
            description=data.get("description", ""),
        )


def _config_values(config: "GovernanceConfig") -> Dict[str, int]:
    return {
        SETTING_VOTING_DELAY: config.voting_delay,
        SETTING_VOTING_DURATION: config.voting_duration,
        SETTING_EXECUTION_DELAY: config.execution_delay,
        SETTING_MIN_MOTION_THRESHOLD: config.min_motion_threshold,
        SETTING_QUORUM_BP: config.quorum_bp,
        SETTING_SIMPLE_MAJORITY_BP: config.simple_majority_bp,
        SETTING_SUPER_MAJORITY_BP: config.super_majority_bp,
    }


class SettingsStore:
    """Access layer over the ``settings`` collection of a GovernanceState."""

    def __init__(
        self,
        state: "GovernanceState",
        clock: Callable[[], int],
        min_voting_duration: int = GOVERNANCE_MIN_VOTING_DURATION,
    ):
        self._state = state
        self._clock = clock
        self.min_voting_duration = min_voting_duration

    def bootstrap(self, config: "GovernanceConfig") -> bool:
        """
        Install the default entries.

        Runs once: if any setting already exists the store is considered
        bootstrapped and nothing is touched. Returns True if entries were
        installed.
        """
        if self._state.settings:
            return False
        height = self._clock()
        values = _config_values(config)
        for key, (_, description) in GOVERNANCE_DEFAULT_SETTINGS.items():
            self._state.settings[key] = ProtocolSetting(
                key=key,
                value=SettingValueType.UINT.coerce(values[key]),
                value_type=SettingValueType.UINT,
                last_updated=height,
                description=description,
            )
        logger.info(f"Settings bootstrapped @{height}: {values}")
        return True

    def get(self, key: str) -> ProtocolSetting:
        setting = self._state.settings.get(key)
        if setting is None:
            raise NotFoundError(f"Setting '{key}' not found")
        return setting

    def get_value(self, key: str) -> Any:
        return self.get(key).value

    def keys(self) -> List[str]:
        return sorted(self._state.settings)

    def check_value(self, key: str, value: Any) -> Any:
        """
        Coerce *value* to the type of setting *key* and enforce its range.

        bp settings are capped at BASIS_POINTS; voting-duration may not drop
        below min_voting_duration.

        Raises:
            NotFoundError:     key is unknown
            InvalidInputError: wrong type or out of range
        """
        new_value = self.get(key).value_type.coerce(value)
        if key in _BP_SETTINGS and new_value > BASIS_POINTS:
            raise InvalidInputError(
                f"Setting '{key}' must be <= {BASIS_POINTS}bp, got {new_value}"
            )
        if key == SETTING_VOTING_DURATION and new_value < self.min_voting_duration:
            raise InvalidInputError(
                f"Setting '{key}' must be >= {self.min_voting_duration}, got {new_value}"
            )
        return new_value

    def set(self, key: str, value: Any, context: CallContext) -> ProtocolSetting:
        """
        Update a setting's value.

        Raises:
            UnauthorizedError: context is not a governance execution
            NotFoundError:     key is unknown
            InvalidInputError: wrong type or out of range
        """
        if not context.authorized_governance_caller():
            raise UnauthorizedError(
                f"{context.caller} may not change setting '{key}' directly"
            )
        setting = self.get(key)
        new_value = self.check_value(key, value)
        old = setting.value
        setting.value = new_value
        setting.last_updated = self._clock()
        logger.info(f"Setting '{key}' changed: {old} → {new_value} @{setting.last_updated}")
        return setting
