"""
Stake-Weighted Ballot Ledger

Implements:
  - 1 token = 1 unit of weight, measured when the ballot is cast
  - Choices: Yes / No / Abstain (abstain counts toward participation)
  - At most one live ballot per (motion, voter)
  - Recasting: a voter may change choice before the deadline; the old weight
    leaves its old bucket and a freshly measured weight joins the new one
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List

from ..exceptions import (
    InvalidStatusError,
    NoVotingPowerError,
    NotFoundError,
    VotingClosedError,
    VotingNotOpenError,
)
from ..logger import get_logger
from .ledger import TokenLedger, query_balance
from .types import BallotChoice, MotionStatus

if TYPE_CHECKING:
    from .motions import MotionRegistry
    from .state import GovernanceState

logger = get_logger(__name__)


@dataclass(frozen=True)
class Ballot:
    """One voter's live choice and weight on one motion."""
    motion_id: int
    voter: str
    choice: BallotChoice
    weight: int
    cast_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "motionId": self.motion_id,
            "voter": self.voter,
            "choice": self.choice.value,
            "weight": self.weight,
            "castAt": self.cast_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Ballot":
        return cls(
            motion_id=data["motionId"],
            voter=data["voter"],
            choice=BallotChoice.parse(data["choice"]),
            weight=data["weight"],
            cast_at=data["castAt"],
        )


class BallotLedger:
    """
    Records ballots and keeps each motion's tallies equal to the sum of its
    live ballot weights.
    """

    def __init__(
        self,
        state: "GovernanceState",
        motions: "MotionRegistry",
        token_ledger: TokenLedger,
        clock: Callable[[], int],
    ):
        self._state = state
        self._motions = motions
        self._ledger = token_ledger
        self._clock = clock

    # ── Cast ──────────────────────────────────────────────────────────

    def cast_ballot(self, motion_id: int, voter: str, choice: Any) -> Ballot:
        """
        Cast or recast *voter*'s ballot on a motion.

        Raises:
            NotFoundError:           unknown motion
            InvalidInputError:       choice is not yes/no/abstain
            InvalidStatusError:      motion is not ACTIVE
            VotingNotOpenError:      height < voting_starts
            VotingClosedError:       height >= voting_ends
            BalanceQueryFailedError: balance provider failed
            NoVotingPowerError:      voter balance is zero
        """
        motion = self._motions.get(motion_id)
        choice = BallotChoice.parse(choice)

        if motion.status != MotionStatus.ACTIVE:
            raise InvalidStatusError(
                f"Motion #{motion_id} is not accepting ballots "
                f"(status={motion.status.name})"
            )

        now = self._clock()
        if now < motion.voting_starts:
            raise VotingNotOpenError(
                f"Voting on motion #{motion_id} opens @{motion.voting_starts} (now @{now})"
            )
        if now >= motion.voting_ends:
            raise VotingClosedError(
                f"Voting on motion #{motion_id} closed @{motion.voting_ends} (now @{now})"
            )

        # Measure before touching tallies so a failed query leaves them intact
        weight = query_balance(self._ledger, voter)
        if weight <= 0:
            raise NoVotingPowerError(f"{voter} has no voting power on motion #{motion_id}")

        key = (motion_id, voter)
        previous = self._state.ballots.get(key)
        if previous is not None:
            motion.adjust_tally(previous.choice, -previous.weight)
        motion.adjust_tally(choice, weight)

        ballot = Ballot(
            motion_id=motion_id,
            voter=voter,
            choice=choice,
            weight=weight,
            cast_at=now,
        )
        self._state.ballots[key] = ballot

        if previous is None:
            logger.info(
                f"Ballot: {voter} → {choice.name} on motion #{motion_id} "
                f"(weight={weight}) @{now}"
            )
        else:
            logger.info(
                f"Recast: {voter} {previous.choice.name}({previous.weight}) → "
                f"{choice.name}({weight}) on motion #{motion_id} @{now}"
            )
        return ballot

    # ── Queries ───────────────────────────────────────────────────────

    def get_ballot(self, motion_id: int, voter: str) -> Ballot:
        ballot = self._state.ballots.get((motion_id, voter))
        if ballot is None:
            raise NotFoundError(f"No ballot from {voter} on motion #{motion_id}")
        return ballot

    def has_voted(self, motion_id: int, voter: str) -> bool:
        return (motion_id, voter) in self._state.ballots

    def ballots_for(self, motion_id: int) -> List[Ballot]:
        return self._state.ballots_for(motion_id)

    def voter_count(self, motion_id: int) -> int:
        return len(self.ballots_for(motion_id))

    def live_weight(self, motion_id: int) -> int:
        """Sum of live ballot weights; always equals the motion's total tally."""
        return sum(b.weight for b in self.ballots_for(motion_id))
