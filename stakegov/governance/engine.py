"""
Governance Engine

Single entry point between the host ledger and the governance components.
Every host node runs an identical instance and feeds it the same ordered
calls, so every node reaches the same state root.

Responsibilities:
  - Owns the GovernanceState arena and the component registries
  - Runs each write call as one all-or-nothing transaction
  - Exposes read queries that return copies, never live records

Usage:

    engine = GovernanceEngine(token_ledger, clock, config)
    motion_id = engine.create_motion(alice, "Raise quorum", "...", "parameter")
    engine.add_action(motion_id, alice, "set-parameter",
                      setting_key="quorum-bp", new_value=2000)
    engine.activate_motion(motion_id, alice)
    engine.cast_ballot(motion_id, bob, "yes")
    ...
    engine.finalize_motion(motion_id)
    engine.execute_motion(motion_id)
"""

from __future__ import annotations

import copy
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..config import GovernanceConfig
from ..exceptions import GovernanceError
from ..logger import get_logger
from .actions import ActionRegistry, MotionAction
from .execution import EffectRunner, LifecycleController
from .ledger import TokenLedger
from .motions import Motion, MotionRegistry
from .settings import CallContext, ProtocolSetting, SettingsStore
from .state import GovernanceState, transaction
from .thresholds import TallyOutcome
from .types import MotionStatus
from .voting import Ballot, BallotLedger

logger = get_logger(__name__)


class GovernanceEngine:
    """
    Motion lifecycle and vote-tally engine.

    Args:
        token_ledger: balance provider and transfer capability
        clock:        zero-argument callable returning the block height
        config:       [governance] configuration; seeds settings on first use
        state:        existing state to resume from (bootstrap is skipped if
                      it already holds settings)
    """

    def __init__(
        self,
        token_ledger: TokenLedger,
        clock: Callable[[], int],
        config: Optional[GovernanceConfig] = None,
        state: Optional[GovernanceState] = None,
    ):
        self.config = config or GovernanceConfig()
        self.config.validate()
        self.token_ledger = token_ledger
        self.clock = clock
        self.state = state if state is not None else GovernanceState(
            motion_deposit=self.config.motion_deposit
        )

        self.settings = SettingsStore(self.state, clock, self.config.min_voting_duration)
        self.settings.bootstrap(self.config)
        self.motions = MotionRegistry(self.state, self.settings, token_ledger, clock, self.config)
        self.actions = ActionRegistry(self.state, self.motions, self.settings)
        self.ballots = BallotLedger(self.state, self.motions, token_ledger, clock)
        self.effects = EffectRunner(self.settings, token_ledger, self.config.treasury_account)
        self.lifecycle = LifecycleController(
            self.state,
            self.motions,
            self.actions,
            self.effects,
            token_ledger,
            clock,
            self.config.participation_ceiling,
        )

    @contextmanager
    def _call(self, operation: str) -> Iterator[None]:
        try:
            with transaction(self.state, self.token_ledger):
                yield
        except GovernanceError as exc:
            logger.warning(f"{operation} rejected @{self.clock()} [{exc.kind.value}]: {exc}")
            raise

    # ── Writes ────────────────────────────────────────────────────────

    def create_motion(
        self,
        proposer: str,
        title: str,
        body: str,
        category: Any,
        duration: Optional[int] = None,
    ) -> int:
        with self._call("create_motion"):
            return self.motions.create_motion(title, body, category, proposer, duration)

    def add_action(
        self,
        motion_id: int,
        caller: str,
        kind: Any,
        setting_key: Optional[str] = None,
        new_value: Any = None,
        recipient: Optional[str] = None,
        amount: Optional[int] = None,
    ) -> MotionAction:
        with self._call("add_action"):
            return self.actions.add_action(
                motion_id,
                caller,
                kind,
                setting_key=setting_key,
                new_value=new_value,
                recipient=recipient,
                amount=amount,
            )

    def activate_motion(self, motion_id: int, caller: str) -> Motion:
        with self._call("activate_motion"):
            return copy.deepcopy(self.lifecycle.activate(motion_id, caller))

    def cast_ballot(self, motion_id: int, voter: str, choice: Any) -> Ballot:
        with self._call("cast_ballot"):
            return self.ballots.cast_ballot(motion_id, voter, choice)

    def finalize_motion(self, motion_id: int) -> TallyOutcome:
        with self._call("finalize_motion"):
            return self.lifecycle.finalize(motion_id)

    def execute_motion(self, motion_id: int) -> List[Dict[str, Any]]:
        with self._call("execute_motion"):
            return self.lifecycle.execute(motion_id)

    def update_protocol_setting(self, key: str, value: Any, caller: str) -> ProtocolSetting:
        """
        Direct settings write from outside the engine.

        External calls never carry the governance-execution flag, so this
        is rejected with UnauthorizedError; settings change through
        SET_PARAMETER actions of executed motions.
        """
        with self._call("update_protocol_setting"):
            return copy.deepcopy(self.settings.set(key, value, CallContext(caller)))

    # ── Reads ─────────────────────────────────────────────────────────

    def get_motion(self, motion_id: int) -> Motion:
        return copy.deepcopy(self.motions.get(motion_id))

    def get_status(self, motion_id: int) -> MotionStatus:
        return self.motions.get(motion_id).status

    def get_setting(self, key: str) -> ProtocolSetting:
        return copy.deepcopy(self.settings.get(key))

    def get_ballot(self, motion_id: int, voter: str) -> Ballot:
        return self.ballots.get_ballot(motion_id, voter)

    def get_actions(self, motion_id: int) -> List[MotionAction]:
        self.motions.get(motion_id)
        return self.actions.actions_for(motion_id)

    def get_ballots(self, motion_id: int) -> List[Ballot]:
        self.motions.get(motion_id)
        return self.ballots.ballots_for(motion_id)

    def get_outcome(self, motion_id: int) -> TallyOutcome:
        """Threshold evaluation of the current tallies (read-only preview)."""
        return self.lifecycle.outcome(motion_id)

    def list_motions(self, status: Optional[Any] = None) -> List[Motion]:
        motions = (
            self.motions.all() if status is None
            else self.motions.by_status(MotionStatus.parse(status))
        )
        return [copy.deepcopy(m) for m in motions]

    @property
    def execution_log(self) -> List[Dict[str, Any]]:
        return self.lifecycle.execution_log

    def state_root(self) -> str:
        return self.state.state_root()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "height": self.clock(),
            "config": self.config.to_dict(),
            "state": self.state.to_dict(),
            "stateRoot": self.state_root(),
            "executionLog": self.execution_log,
        }

    def __repr__(self) -> str:
        return (
            f"<GovernanceEngine motions={len(self.state.motions)} "
            f"ballots={len(self.state.ballots)} executed={self.lifecycle.execution_count()}>"
        )
