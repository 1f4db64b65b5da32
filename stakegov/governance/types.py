"""
Governance Types

Closed enumerations for every tag the engine stores. Records keep the enum
members themselves; strings only appear at the edges (caller input and
serialized state), where ``parse`` turns them back into members or rejects
them with InvalidInputError.
"""

import re
from enum import Enum
from typing import Any

from ..exceptions import InvalidInputError

# ASCII digits only
_UINT_RE = re.compile(r"[0-9]+")


class _TaggedEnum(Enum):
    """Enum whose members are addressed by a lowercase string tag."""

    @classmethod
    def parse(cls, value: Any):
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            tag = value.strip().lower()
            for member in cls:
                if member.value == tag:
                    return member
        raise InvalidInputError(f"Invalid {cls.__name__}: {value!r}")


class MotionCategory(_TaggedEnum):
    """What a motion is about."""
    PARAMETER = "parameter"   # Protocol setting changes
    UPGRADE = "upgrade"       # Protocol upgrade (super-majority)
    FUND = "fund"             # Treasury spend
    TEXT = "text"             # Non-binding signal


class MotionStatus(_TaggedEnum):
    """Lifecycle stage."""
    DRAFT = "draft"           # Created, actions may still be attached
    ACTIVE = "active"         # Accepting ballots inside the voting window
    PASSED = "passed"         # Quorum and majority met, awaiting execution
    REJECTED = "rejected"     # Finalized without meeting thresholds
    EXECUTED = "executed"     # All attached effects applied


class ActionKind(_TaggedEnum):
    """Effect attached to a motion."""
    SET_PARAMETER = "set-parameter"
    TRANSFER_FUNDS = "transfer-funds"


class BallotChoice(_TaggedEnum):
    """A voter's option."""
    YES = "yes"
    NO = "no"
    ABSTAIN = "abstain"


class SettingValueType(_TaggedEnum):
    """Declared type of a protocol setting value."""
    UINT = "uint"
    BOOL = "bool"
    STRING = "string"

    def coerce(self, value: Any) -> Any:
        """
        Return *value* as this type, or raise InvalidInputError.

        Strings are accepted for every type so values can round-trip through
        text encodings.
        """
        if self is SettingValueType.UINT:
            if isinstance(value, bool):
                raise InvalidInputError(f"Expected uint, got {value!r}")
            if isinstance(value, str) and _UINT_RE.fullmatch(value.strip()):
                return int(value.strip())
            if isinstance(value, int) and value >= 0:
                return value
            raise InvalidInputError(f"Expected uint, got {value!r}")

        if self is SettingValueType.BOOL:
            if isinstance(value, bool):
                return value
            if isinstance(value, str) and value.strip().casefold() in {"true", "false"}:
                return value.strip().casefold() == "true"
            raise InvalidInputError(f"Expected bool, got {value!r}")

        if not isinstance(value, str):
            raise InvalidInputError(f"Expected string, got {value!r}")
        return value
