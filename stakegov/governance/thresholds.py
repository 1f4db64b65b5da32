"""
Threshold Evaluation

Pure integer arithmetic over a motion's tallies:

    total          = yes + no + abstain
    approval_bp    = yes * 10000 // total            (0 when total == 0)
    participation  = total * 10000 // ceiling

Participation is measured against a fixed configured ceiling, the maximum
voting power the system is sized for, not against live circulating supply.
A motion passes when both figures reach their snapshotted thresholds;
landing exactly on a threshold passes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict

from ..constants import BASIS_POINTS

if TYPE_CHECKING:
    from .motions import Motion


def approval_bp(yes_weight: int, total_weight: int) -> int:
    if total_weight <= 0:
        return 0
    return yes_weight * BASIS_POINTS // total_weight


def participation_bp(total_weight: int, participation_ceiling: int) -> int:
    if participation_ceiling <= 0:
        raise ValueError("participation_ceiling must be positive")
    return total_weight * BASIS_POINTS // participation_ceiling


@dataclass(frozen=True)
class TallyOutcome:
    """Every figure that went into a pass/fail decision."""
    motion_id: int
    yes_weight: int
    no_weight: int
    abstain_weight: int
    participation_ceiling: int
    min_participation_bp: int
    required_majority_bp: int

    @property
    def total_weight(self) -> int:
        return self.yes_weight + self.no_weight + self.abstain_weight

    @property
    def approval_bp(self) -> int:
        return approval_bp(self.yes_weight, self.total_weight)

    @property
    def participation_bp(self) -> int:
        return participation_bp(self.total_weight, self.participation_ceiling)

    @property
    def quorum_reached(self) -> bool:
        return self.participation_bp >= self.min_participation_bp

    @property
    def majority_reached(self) -> bool:
        return self.approval_bp >= self.required_majority_bp

    @property
    def passed(self) -> bool:
        return self.quorum_reached and self.majority_reached

    def to_dict(self) -> Dict[str, Any]:
        return {
            "motionId": self.motion_id,
            "yesWeight": self.yes_weight,
            "noWeight": self.no_weight,
            "abstainWeight": self.abstain_weight,
            "totalWeight": self.total_weight,
            "participationCeiling": self.participation_ceiling,
            "participationBp": self.participation_bp,
            "minParticipationBp": self.min_participation_bp,
            "approvalBp": self.approval_bp,
            "requiredMajorityBp": self.required_majority_bp,
            "quorumReached": self.quorum_reached,
            "majorityReached": self.majority_reached,
            "passed": self.passed,
        }


def evaluate(motion: "Motion", participation_ceiling: int) -> TallyOutcome:
    """Evaluate *motion*'s current tallies against its own thresholds."""
    return TallyOutcome(
        motion_id=motion.id,
        yes_weight=motion.yes_weight,
        no_weight=motion.no_weight,
        abstain_weight=motion.abstain_weight,
        participation_ceiling=participation_ceiling,
        min_participation_bp=motion.min_participation_bp,
        required_majority_bp=motion.required_majority_bp,
    )
