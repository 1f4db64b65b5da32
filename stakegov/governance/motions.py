"""
Governance Motions

Defines the Motion record, its one-directional lifecycle, and the
MotionRegistry that validates and creates motions.

A motion snapshots everything that decides its fate when it is created:
the voting window, the approval and participation thresholds and the
execution delay. Settings changed later never reach an in-flight motion.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, FrozenSet, List, Optional

from ..constants import (
    GOVERNANCE_MAX_BODY_LENGTH,
    GOVERNANCE_MAX_TITLE_LENGTH,
    SETTING_EXECUTION_DELAY,
    SETTING_MIN_MOTION_THRESHOLD,
    SETTING_QUORUM_BP,
    SETTING_SIMPLE_MAJORITY_BP,
    SETTING_SUPER_MAJORITY_BP,
    SETTING_VOTING_DELAY,
    SETTING_VOTING_DURATION,
)
from ..exceptions import (
    InsufficientStakeError,
    InvalidInputError,
    InvalidStatusError,
    NotFoundError,
)
from ..logger import get_logger
from .ledger import TokenLedger, move_funds, query_balance
from .types import BallotChoice, MotionCategory, MotionStatus

if TYPE_CHECKING:
    from ..config import GovernanceConfig
    from .settings import SettingsStore
    from .state import GovernanceState

logger = get_logger(__name__)


# Valid forward transitions
_VALID_TRANSITIONS: Dict[MotionStatus, FrozenSet[MotionStatus]] = {
    MotionStatus.DRAFT:    frozenset({MotionStatus.ACTIVE}),
    MotionStatus.ACTIVE:   frozenset({MotionStatus.PASSED, MotionStatus.REJECTED}),
    MotionStatus.PASSED:   frozenset({MotionStatus.EXECUTED}),
    # Terminal states, no further transitions
    MotionStatus.REJECTED: frozenset(),
    MotionStatus.EXECUTED: frozenset(),
}


# ══════════════════════════════════════════════════════════════════════
#  MOTION
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Motion:
    """
    On-chain governance motion.

    Fields:
        id:                    Unique monotonic identifier
        title / body:          Short title and full text
        proposer:              Account that created the motion
        created_at:            Block height of creation
        voting_starts:         First height at which ballots are accepted
        voting_ends:           First height at which ballots are refused
        status:                Lifecycle stage
        category:              MotionCategory
        required_majority_bp:  Approval needed, snapshotted at creation
        min_participation_bp:  Quorum needed, snapshotted at creation
        execution_delay:       Blocks after voting_ends before execution
        yes/no/abstain_weight: Live tallies
    """
    id: int
    title: str
    body: str
    proposer: str
    created_at: int
    voting_starts: int
    voting_ends: int
    category: MotionCategory
    required_majority_bp: int
    min_participation_bp: int
    execution_delay: int
    status: MotionStatus = MotionStatus.DRAFT
    yes_weight: int = 0
    no_weight: int = 0
    abstain_weight: int = 0
    _history: List[Dict[str, Any]] = field(default_factory=list, repr=False)

    # ── Properties ────────────────────────────────────────────────────

    @property
    def total_weight(self) -> int:
        return self.yes_weight + self.no_weight + self.abstain_weight

    @property
    def executable_at(self) -> int:
        return self.voting_ends + self.execution_delay

    @property
    def is_terminal(self) -> bool:
        return not _VALID_TRANSITIONS[self.status]

    @property
    def history(self) -> List[Dict[str, Any]]:
        return list(self._history)

    # ── Tallies ───────────────────────────────────────────────────────

    def weight_for(self, choice: BallotChoice) -> int:
        if choice is BallotChoice.YES:
            return self.yes_weight
        if choice is BallotChoice.NO:
            return self.no_weight
        return self.abstain_weight

    def adjust_tally(self, choice: BallotChoice, delta: int):
        """Add *delta* (possibly negative) to the bucket for *choice*."""
        if self.weight_for(choice) + delta < 0:
            raise ValueError(
                f"Tally for {choice.name} on motion #{self.id} would go negative"
            )
        if choice is BallotChoice.YES:
            self.yes_weight += delta
        elif choice is BallotChoice.NO:
            self.no_weight += delta
        else:
            self.abstain_weight += delta

    # ── State transitions ─────────────────────────────────────────────

    def _record_transition(self, new_status: MotionStatus, height: int, reason: str):
        self._history.append({
            "from": self.status.name if self._history else "INIT",
            "to": new_status.name,
            "reason": reason,
            "height": height,
        })

    def transition_to(self, new_status: MotionStatus, height: int, reason: str = ""):
        """
        Advance the motion to *new_status*.

        Raises InvalidStatusError on any transition not in the table.
        """
        allowed = _VALID_TRANSITIONS[self.status]
        if new_status not in allowed:
            raise InvalidStatusError(
                f"Motion #{self.id} cannot move {self.status.name} → {new_status.name}. "
                f"Allowed: {sorted(s.name for s in allowed)}"
            )
        old = self.status
        self._record_transition(new_status, height, reason)
        self.status = new_status
        logger.info(
            f"Motion #{self.id} ({self.title}): "
            f"{old.name} → {new_status.name} @{height} | {reason}"
        )

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "proposer": self.proposer,
            "createdAt": self.created_at,
            "votingStarts": self.voting_starts,
            "votingEnds": self.voting_ends,
            "status": self.status.value,
            "category": self.category.value,
            "requiredMajorityBp": self.required_majority_bp,
            "minParticipationBp": self.min_participation_bp,
            "executionDelay": self.execution_delay,
            "yesWeight": self.yes_weight,
            "noWeight": self.no_weight,
            "abstainWeight": self.abstain_weight,
            "history": self.history,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Motion":
        return cls(
            id=data["id"],
            title=data["title"],
            body=data["body"],
            proposer=data["proposer"],
            created_at=data["createdAt"],
            voting_starts=data["votingStarts"],
            voting_ends=data["votingEnds"],
            status=MotionStatus.parse(data["status"]),
            category=MotionCategory.parse(data["category"]),
            required_majority_bp=data["requiredMajorityBp"],
            min_participation_bp=data["minParticipationBp"],
            execution_delay=data["executionDelay"],
            yes_weight=data.get("yesWeight", 0),
            no_weight=data.get("noWeight", 0),
            abstain_weight=data.get("abstainWeight", 0),
            _history=list(data.get("history", [])),
        )

    def __repr__(self) -> str:
        return (
            f"<Motion #{self.id} '{self.title}' "
            f"category={self.category.name} status={self.status.name}>"
        )


# ══════════════════════════════════════════════════════════════════════
#  REGISTRY
# ══════════════════════════════════════════════════════════════════════

class MotionRegistry:
    """
    Creates motions and looks them up.

    Creation checks, in order: proposer stake, category, duration floor,
    title/body, then moves the deposit. Nothing is written unless every
    step succeeds.
    """

    def __init__(
        self,
        state: "GovernanceState",
        settings: "SettingsStore",
        token_ledger: TokenLedger,
        clock: Callable[[], int],
        config: "GovernanceConfig",
    ):
        self._state = state
        self._settings = settings
        self._ledger = token_ledger
        self._clock = clock
        self._config = config

    def get(self, motion_id: int) -> Motion:
        motion = self._state.motions.get(motion_id)
        if motion is None:
            raise NotFoundError(f"Motion #{motion_id} not found")
        return motion

    def all(self) -> List[Motion]:
        return [self._state.motions[mid] for mid in sorted(self._state.motions)]

    def by_status(self, status: MotionStatus) -> List[Motion]:
        return [m for m in self.all() if m.status == status]

    @staticmethod
    def _validate_text(title: str, body: str):
        if not title or not title.strip():
            raise InvalidInputError("Motion title cannot be empty")
        if len(title) > GOVERNANCE_MAX_TITLE_LENGTH:
            raise InvalidInputError(f"Motion title exceeds {GOVERNANCE_MAX_TITLE_LENGTH} characters")
        if not body or not body.strip():
            raise InvalidInputError("Motion body cannot be empty")
        if len(body) > GOVERNANCE_MAX_BODY_LENGTH:
            raise InvalidInputError(f"Motion body exceeds {GOVERNANCE_MAX_BODY_LENGTH} characters")

    def create_motion(
        self,
        title: str,
        body: str,
        category: Any,
        proposer: str,
        duration: Optional[int] = None,
    ) -> int:
        """
        Create a DRAFT motion and return its id.

        Raises:
            InsufficientStakeError:   proposer balance below min-motion-threshold
            InvalidInputError:        bad category, duration, title or body
            BalanceQueryFailedError:  balance provider failed
            TransferFailedError:      deposit could not be moved
        """
        threshold = self._settings.get_value(SETTING_MIN_MOTION_THRESHOLD)
        balance = query_balance(self._ledger, proposer)
        if balance < threshold:
            raise InsufficientStakeError(required=threshold, actual=balance)

        category = MotionCategory.parse(category)

        if duration is None:
            duration = self._settings.get_value(SETTING_VOTING_DURATION)
        if isinstance(duration, bool) or not isinstance(duration, int):
            raise InvalidInputError(f"Voting duration must be an integer, got {duration!r}")
        if duration < self._config.min_voting_duration:
            raise InvalidInputError(
                f"Voting duration {duration} < minimum {self._config.min_voting_duration}"
            )

        self._validate_text(title, body)

        deposit = self._state.motion_deposit
        if deposit > 0:
            move_funds(self._ledger, deposit, proposer, self._config.treasury_account)

        now = self._clock()
        voting_starts = now + self._settings.get_value(SETTING_VOTING_DELAY)
        majority_key = (
            SETTING_SUPER_MAJORITY_BP
            if category is MotionCategory.UPGRADE
            else SETTING_SIMPLE_MAJORITY_BP
        )

        motion_id = self._state.next_motion_id
        motion = Motion(
            id=motion_id,
            title=title,
            body=body,
            proposer=proposer,
            created_at=now,
            voting_starts=voting_starts,
            voting_ends=voting_starts + duration,
            category=category,
            required_majority_bp=self._settings.get_value(majority_key),
            min_participation_bp=self._settings.get_value(SETTING_QUORUM_BP),
            execution_delay=self._settings.get_value(SETTING_EXECUTION_DELAY),
        )
        motion._record_transition(MotionStatus.DRAFT, now, "created")
        self._state.motions[motion_id] = motion
        self._state.next_motion_id = motion_id + 1

        logger.info(
            f"Motion #{motion_id} created by {proposer} @{now}: '{title}' "
            f"({category.name}, window {motion.voting_starts}..{motion.voting_ends}, "
            f"deposit={deposit})"
        )
        return motion_id
