"""
Governance State

The whole persisted layout of the engine: four keyed collections and two
scalar counters. Records reference each other by key (motion_id inside
actions and ballots), never by object.

Security:
  - Every public write runs inside ``transaction()``; a failure restores the
    snapshot taken on entry, so no partial write is ever observable
  - ``state_root()`` is blake2b over the canonical JSON encoding, identical
    on every replica that processed the same calls
"""

from __future__ import annotations

import copy
import hashlib
import json
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..constants import GOVERNANCE_MOTION_DEPOSIT
from ..logger import get_logger
from .actions import MotionAction
from .ledger import TokenLedger
from .motions import Motion
from .settings import ProtocolSetting
from .voting import Ballot

logger = get_logger(__name__)


@dataclass
class GovernanceState:
    settings: Dict[str, ProtocolSetting] = field(default_factory=dict)
    motions: Dict[int, Motion] = field(default_factory=dict)
    actions: Dict[Tuple[int, int], MotionAction] = field(default_factory=dict)
    ballots: Dict[Tuple[int, str], Ballot] = field(default_factory=dict)
    next_motion_id: int = 1
    motion_deposit: int = GOVERNANCE_MOTION_DEPOSIT
    _snapshots: List[Dict[str, Any]] = field(default_factory=list, repr=False)

    # ── Foreign-key lookups ───────────────────────────────────────────

    def actions_for(self, motion_id: int) -> List[MotionAction]:
        return sorted(
            (a for (mid, _), a in self.actions.items() if mid == motion_id),
            key=lambda a: a.action_id,
        )

    def ballots_for(self, motion_id: int) -> List[Ballot]:
        return sorted(
            (b for (mid, _), b in self.ballots.items() if mid == motion_id),
            key=lambda b: b.voter,
        )

    # ── Snapshots ─────────────────────────────────────────────────────

    def snapshot(self) -> int:
        """
        Create state snapshot for revert.

        Returns:
            Snapshot ID
        """
        self._snapshots.append({
            "settings": copy.deepcopy(self.settings),
            "motions": copy.deepcopy(self.motions),
            "actions": dict(self.actions),
            "ballots": dict(self.ballots),
            "next_motion_id": self.next_motion_id,
            "motion_deposit": self.motion_deposit,
        })
        return len(self._snapshots) - 1

    def revert(self, snapshot_id: int) -> None:
        """Restore the snapshot and discard it together with every newer one."""
        if snapshot_id < 0 or snapshot_id >= len(self._snapshots):
            raise ValueError(f"Invalid snapshot ID: {snapshot_id}")

        snapshot = self._snapshots[snapshot_id]
        self.settings = snapshot["settings"]
        self.motions = snapshot["motions"]
        self.actions = snapshot["actions"]
        self.ballots = snapshot["ballots"]
        self.next_motion_id = snapshot["next_motion_id"]
        self.motion_deposit = snapshot["motion_deposit"]

        self._snapshots = self._snapshots[:snapshot_id]

    def release(self, snapshot_id: int) -> None:
        """Keep current state; drop the snapshot and every newer one."""
        if snapshot_id < 0 or snapshot_id >= len(self._snapshots):
            raise ValueError(f"Invalid snapshot ID: {snapshot_id}")
        self._snapshots = self._snapshots[:snapshot_id]

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "settings": [self.settings[k].to_dict() for k in sorted(self.settings)],
            "motions": [self.motions[k].to_dict() for k in sorted(self.motions)],
            "actions": [self.actions[k].to_dict() for k in sorted(self.actions)],
            "ballots": [self.ballots[k].to_dict() for k in sorted(self.ballots)],
            "nextMotionId": self.next_motion_id,
            "motionDeposit": self.motion_deposit,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceState":
        settings = [ProtocolSetting.from_dict(s) for s in data.get("settings", [])]
        motions = [Motion.from_dict(m) for m in data.get("motions", [])]
        actions = [MotionAction.from_dict(a) for a in data.get("actions", [])]
        ballots = [Ballot.from_dict(b) for b in data.get("ballots", [])]
        return cls(
            settings={s.key: s for s in settings},
            motions={m.id: m for m in motions},
            actions={(a.motion_id, a.action_id): a for a in actions},
            ballots={(b.motion_id, b.voter): b for b in ballots},
            next_motion_id=data.get("nextMotionId", 1),
            motion_deposit=data.get("motionDeposit", GOVERNANCE_MOTION_DEPOSIT),
        )

    def state_root(self) -> str:
        """Deterministic hash of the full state."""
        payload = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return hashlib.blake2b(payload.encode(), digest_size=32).hexdigest()

    def __repr__(self) -> str:
        return (
            f"<GovernanceState settings={len(self.settings)} "
            f"motions={len(self.motions)} actions={len(self.actions)} "
            f"ballots={len(self.ballots)} next_id={self.next_motion_id}>"
        )


@contextmanager
def transaction(
    state: GovernanceState,
    token_ledger: Optional[TokenLedger] = None,
) -> Iterator[GovernanceState]:
    """
    All-or-nothing scope over *state* and, when given, *token_ledger*.

    Any exception raised inside the block reverts both and propagates.
    """
    state_snapshot = state.snapshot()
    ledger_snapshot = token_ledger.snapshot() if token_ledger is not None else None
    try:
        yield state
    except BaseException:
        state.revert(state_snapshot)
        if token_ledger is not None:
            token_ledger.revert(ledger_snapshot)
        raise
    else:
        state.release(state_snapshot)
        if token_ledger is not None:
            token_ledger.release(ledger_snapshot)
