"""
Lifecycle Controller & Effect Execution

Implements:
  - LifecycleController: the only writer of a motion's status
      activate  DRAFT  → ACTIVE            (proposer only, no temporal gate)
      finalize  ACTIVE → PASSED | REJECTED (height >= voting_ends)
      execute   PASSED → EXECUTED          (height >= voting_ends + execution_delay)
  - EffectRunner: applies a motion's actions under the governance-execution
    context, with per-kind custom executors

Execution is all-or-nothing across the motion's actions: if any effect
fails, every effect already applied in that attempt is rolled back, the
motion stays PASSED and the call can be retried later.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Dict, List

from ..exceptions import (
    EffectFailedError,
    InvalidInputError,
    InvalidStatusError,
    TooEarlyError,
    UnauthorizedError,
)
from ..logger import get_logger
from .actions import MotionAction
from .ledger import TokenLedger, move_funds
from .settings import CallContext, SettingsStore
from .state import transaction
from .thresholds import TallyOutcome, evaluate
from .types import ActionKind, MotionStatus

if TYPE_CHECKING:
    from .actions import ActionRegistry
    from .motions import Motion, MotionRegistry
    from .state import GovernanceState

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EFFECT RUNNER
# ══════════════════════════════════════════════════════════════════════

class EffectRunner:
    """
    Applies a single MotionAction.

    Built-in effects: SET_PARAMETER writes the settings store,
    TRANSFER_FUNDS pays out of the treasury account. A custom executor
    registered for a kind replaces the built-in one.
    """

    def __init__(
        self,
        settings: SettingsStore,
        token_ledger: TokenLedger,
        treasury_account: str,
    ):
        self._settings = settings
        self._ledger = token_ledger
        self.treasury_account = treasury_account
        self._custom_executors: Dict[ActionKind, Callable[[MotionAction, CallContext], Any]] = {}

    def register_executor(
        self,
        kind: ActionKind,
        executor_fn: Callable[[MotionAction, CallContext], Any],
    ):
        """Register a custom execution function for an action kind."""
        self._custom_executors[ActionKind.parse(kind)] = executor_fn

    def run(self, action: MotionAction, context: CallContext) -> Dict[str, Any]:
        """Apply *action*; returns a description of what changed."""
        if action.kind in self._custom_executors:
            result = self._custom_executors[action.kind](action, context)
            return result if isinstance(result, dict) else {"result": result}

        if action.kind is ActionKind.SET_PARAMETER:
            old = self._settings.get_value(action.setting_key)
            setting = self._settings.set(action.setting_key, action.new_value, context)
            return {action.setting_key: {"old": old, "new": setting.value}}

        if action.kind is ActionKind.TRANSFER_FUNDS:
            move_funds(self._ledger, action.amount, self.treasury_account, action.recipient)
            return {
                "transfer": {
                    "from": self.treasury_account,
                    "to": action.recipient,
                    "amount": action.amount,
                }
            }

        raise InvalidInputError(f"No executor for action kind {action.kind!r}")


# ══════════════════════════════════════════════════════════════════════
#  LIFECYCLE CONTROLLER
# ══════════════════════════════════════════════════════════════════════

class LifecycleController:
    """Drives motions through their lifecycle against the block clock."""

    def __init__(
        self,
        state: "GovernanceState",
        motions: "MotionRegistry",
        actions: "ActionRegistry",
        effects: EffectRunner,
        token_ledger: TokenLedger,
        clock: Callable[[], int],
        participation_ceiling: int,
    ):
        self._state = state
        self._motions = motions
        self._actions = actions
        self._effects = effects
        self._ledger = token_ledger
        self._clock = clock
        self.participation_ceiling = participation_ceiling
        self._execution_log: List[Dict[str, Any]] = []

    # ── Activate ──────────────────────────────────────────────────────

    def activate(self, motion_id: int, caller: str) -> "Motion":
        motion = self._motions.get(motion_id)
        if caller != motion.proposer:
            raise UnauthorizedError(
                f"Only the proposer of motion #{motion_id} may activate it"
            )
        if motion.status != MotionStatus.DRAFT:
            raise InvalidStatusError(
                f"Motion #{motion_id} is {motion.status.name}, not DRAFT"
            )
        motion.transition_to(MotionStatus.ACTIVE, self._clock(), f"Activated by {caller}")
        return motion

    # ── Finalize ──────────────────────────────────────────────────────

    def outcome(self, motion_id: int) -> TallyOutcome:
        """Evaluate the motion's current tallies without changing anything."""
        return evaluate(self._motions.get(motion_id), self.participation_ceiling)

    def finalize(self, motion_id: int) -> TallyOutcome:
        """
        Close voting and decide the motion.

        Raises:
            InvalidStatusError: motion is not ACTIVE
            TooEarlyError:      height < voting_ends
        """
        motion = self._motions.get(motion_id)
        if motion.status != MotionStatus.ACTIVE:
            raise InvalidStatusError(
                f"Motion #{motion_id} is {motion.status.name}, not ACTIVE"
            )
        now = self._clock()
        if now < motion.voting_ends:
            raise TooEarlyError(
                f"Motion #{motion_id} cannot be finalized before @{motion.voting_ends} "
                f"(now @{now})"
            )

        result = evaluate(motion, self.participation_ceiling)
        if result.passed:
            motion.transition_to(
                MotionStatus.PASSED, now,
                f"approval {result.approval_bp}bp >= {result.required_majority_bp}bp, "
                f"participation {result.participation_bp}bp >= {result.min_participation_bp}bp",
            )
        else:
            motion.transition_to(
                MotionStatus.REJECTED, now,
                f"approval {result.approval_bp}/{result.required_majority_bp}bp, "
                f"participation {result.participation_bp}/{result.min_participation_bp}bp",
            )
            if not result.quorum_reached:
                logger.warning(
                    f"Motion #{motion_id}: quorum not reached "
                    f"({result.total_weight}/{result.participation_ceiling})"
                )
        return result

    # ── Execute ───────────────────────────────────────────────────────

    def execute(self, motion_id: int) -> List[Dict[str, Any]]:
        """
        Apply every attached action, then mark the motion EXECUTED.

        Raises:
            InvalidStatusError: motion is not PASSED
            TooEarlyError:      height < voting_ends + execution_delay
            EffectFailedError:  an effect failed; nothing was applied
        """
        motion = self._motions.get(motion_id)
        if motion.status != MotionStatus.PASSED:
            raise InvalidStatusError(
                f"Motion #{motion_id} is {motion.status.name}, not PASSED"
            )
        now = self._clock()
        if now < motion.executable_at:
            raise TooEarlyError(
                f"Motion #{motion_id} executable @{motion.executable_at} (now @{now})"
            )

        context = CallContext(
            caller=self._effects.treasury_account,
            in_governance_execution=True,
        )
        actions = self._actions.actions_for(motion_id)
        changes: List[Dict[str, Any]] = []

        with transaction(self._state, self._ledger):
            for action in actions:
                try:
                    changes.append(self._effects.run(action, context))
                except Exception as exc:
                    logger.warning(
                        f"Motion #{motion_id}: action {action.action_id} "
                        f"({action.kind.name}) failed, execution rolled back: {exc}"
                    )
                    raise EffectFailedError(
                        f"Action {action.action_id} of motion #{motion_id} failed: {exc}"
                    ) from exc
            motion.transition_to(
                MotionStatus.EXECUTED, now, f"{len(actions)} action(s) applied"
            )

        self._execution_log.append({
            "motionId": motion_id,
            "category": motion.category.value,
            "title": motion.title,
            "changes": changes,
            "executedAt": now,
        })
        return changes

    # ── Queries ───────────────────────────────────────────────────────

    @property
    def execution_log(self) -> List[Dict[str, Any]]:
        return list(self._execution_log)

    def execution_count(self) -> int:
        return len(self._execution_log)
