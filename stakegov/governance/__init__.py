"""
stakegov On-Chain Governance

Provides:
  - MotionCategory / MotionStatus / ActionKind / BallotChoice   (types.py)
  - ProtocolSetting / SettingsStore / CallContext                (settings.py)
  - Motion / MotionRegistry                                      (motions.py)
  - MotionAction / ActionRegistry                                (actions.py)
  - Ballot / BallotLedger                                        (voting.py)
  - TallyOutcome / evaluate                                      (thresholds.py)
  - EffectRunner / LifecycleController                           (execution.py)
  - GovernanceState / transaction                                (state.py)
  - TokenLedger / InMemoryTokenLedger / BlockClock               (ledger.py)
  - GovernanceEngine                                             (engine.py)
"""

from .types import (
    ActionKind,
    BallotChoice,
    MotionCategory,
    MotionStatus,
    SettingValueType,
)
from .ledger import (
    BlockClock,
    InMemoryTokenLedger,
    TokenLedger,
)
from .settings import (
    CallContext,
    ProtocolSetting,
    SettingsStore,
)
from .motions import (
    Motion,
    MotionRegistry,
)
from .actions import (
    ActionRegistry,
    MotionAction,
)
from .voting import (
    Ballot,
    BallotLedger,
)
from .thresholds import (
    TallyOutcome,
    evaluate,
)
from .state import (
    GovernanceState,
    transaction,
)
from .execution import (
    EffectRunner,
    LifecycleController,
)
from .engine import GovernanceEngine

__all__ = [
    # Types
    "ActionKind",
    "BallotChoice",
    "MotionCategory",
    "MotionStatus",
    "SettingValueType",
    # Collaborators
    "BlockClock",
    "InMemoryTokenLedger",
    "TokenLedger",
    # Settings
    "CallContext",
    "ProtocolSetting",
    "SettingsStore",
    # Motions & actions
    "Motion",
    "MotionRegistry",
    "ActionRegistry",
    "MotionAction",
    # Voting
    "Ballot",
    "BallotLedger",
    "TallyOutcome",
    "evaluate",
    # State & execution
    "GovernanceState",
    "transaction",
    "EffectRunner",
    "LifecycleController",
    "GovernanceEngine",
]
