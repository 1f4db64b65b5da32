"""
stakegov Exceptions

Every rejected precondition surfaces as a distinct subclass of
GovernanceError. Callers that need a machine-checkable code read the
``kind`` attribute instead of matching on messages.
"""

from enum import Enum


class ErrorKind(Enum):
    """Machine-checkable error categories."""
    NOT_FOUND = "not-found"
    UNAUTHORIZED = "unauthorized"
    INVALID_INPUT = "invalid-input"
    INVALID_STATUS = "invalid-status"
    TOO_EARLY = "too-early"
    DEADLINE_PASSED = "deadline-passed"
    NO_VOTING_POWER = "no-voting-power"
    ALREADY_EXISTS = "already-exists"
    TRANSFER_FAILED = "transfer-failed"
    BALANCE_QUERY_FAILED = "balance-query-failed"
    EFFECT_FAILED = "effect-failed"


class GovernanceError(Exception):
    """Base exception for the governance engine."""
    kind: ErrorKind = ErrorKind.INVALID_INPUT


class NotFoundError(GovernanceError):
    """Unknown motion id, setting key, ballot or action."""
    kind = ErrorKind.NOT_FOUND


class UnauthorizedError(GovernanceError):
    """Wrong caller for a privileged action."""
    kind = ErrorKind.UNAUTHORIZED


class InsufficientStakeError(UnauthorizedError):
    """Raised when a proposer's balance is below the motion threshold."""
    def __init__(self, required: int, actual: int):
        self.required = required
        self.actual = actual
        super().__init__(
            f"Insufficient stake: {actual} (required: {required})"
        )


class InvalidInputError(GovernanceError):
    """Malformed category, choice, action kind, duration or value."""
    kind = ErrorKind.INVALID_INPUT


class InvalidStatusError(GovernanceError):
    """Operation attempted against a motion in the wrong lifecycle state."""
    kind = ErrorKind.INVALID_STATUS


class TooEarlyError(GovernanceError):
    """A temporal gate has not opened yet."""
    kind = ErrorKind.TOO_EARLY


class VotingNotOpenError(TooEarlyError):
    """Ballot cast before the voting window starts."""


class DeadlinePassedError(GovernanceError):
    """A temporal gate has already closed."""
    kind = ErrorKind.DEADLINE_PASSED


class VotingClosedError(DeadlinePassedError):
    """Ballot cast at or after the end of the voting window."""


class NoVotingPowerError(GovernanceError):
    """Voter balance is zero."""
    kind = ErrorKind.NO_VOTING_POWER


class AlreadyExistsError(GovernanceError):
    """Reserved for duplicate keys; no current operation raises it."""
    kind = ErrorKind.ALREADY_EXISTS


class TransferFailedError(GovernanceError):
    """The token ledger refused or failed a transfer."""
    kind = ErrorKind.TRANSFER_FAILED


class BalanceQueryFailedError(GovernanceError):
    """The token ledger could not report a balance."""
    kind = ErrorKind.BALANCE_QUERY_FAILED


class EffectFailedError(GovernanceError):
    """An attached action's effect failed during execution."""
    kind = ErrorKind.EFFECT_FAILED


class ConfigurationError(GovernanceError, ValueError):
    """Configuration error."""
    kind = ErrorKind.INVALID_INPUT
