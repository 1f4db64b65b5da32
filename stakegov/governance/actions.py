"""
Motion Actions

Effects attached to a motion while it is still a DRAFT. Each action is
keyed by (motion_id, action_id); ids are allocated per motion starting at
0 and actions accumulate in id order, which is also execution order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..exceptions import (
    InvalidInputError,
    InvalidStatusError,
    NotFoundError,
    UnauthorizedError,
)
from ..logger import get_logger
from .types import ActionKind, MotionStatus

if TYPE_CHECKING:
    from .motions import MotionRegistry
    from .settings import SettingsStore
    from .state import GovernanceState

logger = get_logger(__name__)


@dataclass(frozen=True)
class MotionAction:
    """A single effect to apply when its motion is executed."""
    motion_id: int
    action_id: int
    kind: ActionKind
    setting_key: Optional[str] = None
    new_value: Any = None
    recipient: Optional[str] = None
    amount: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "motionId": self.motion_id,
            "actionId": self.action_id,
            "kind": self.kind.value,
            "settingKey": self.setting_key,
            "newValue": self.new_value,
            "recipient": self.recipient,
            "amount": self.amount,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MotionAction":
        return cls(
            motion_id=data["motionId"],
            action_id=data["actionId"],
            kind=ActionKind.parse(data["kind"]),
            setting_key=data.get("settingKey"),
            new_value=data.get("newValue"),
            recipient=data.get("recipient"),
            amount=data.get("amount"),
        )


class ActionRegistry:
    """Attaches actions to DRAFT motions on behalf of their proposer."""

    def __init__(
        self,
        state: "GovernanceState",
        motions: "MotionRegistry",
        settings: "SettingsStore",
    ):
        self._state = state
        self._motions = motions
        self._settings = settings

    def _validate_payload(
        self,
        kind: ActionKind,
        setting_key: Optional[str],
        new_value: Any,
        recipient: Optional[str],
        amount: Optional[int],
    ) -> Any:
        """Check the fields *kind* needs; returns the value to store as new_value."""
        if kind is ActionKind.SET_PARAMETER:
            if not setting_key:
                raise InvalidInputError("set-parameter action needs a setting_key")
            if new_value is None:
                raise InvalidInputError("set-parameter action needs a new_value")
            try:
                self._settings.get(setting_key)
            except NotFoundError as exc:
                raise InvalidInputError(f"Unknown setting '{setting_key}'") from exc
            return self._settings.check_value(setting_key, new_value)

        if kind is ActionKind.TRANSFER_FUNDS:
            if not recipient:
                raise InvalidInputError("transfer-funds action needs a recipient")
            if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
                raise InvalidInputError(
                    f"transfer-funds amount must be a positive integer, got {amount!r}"
                )
            return None

        raise InvalidInputError(f"Unsupported action kind: {kind!r}")

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
        """
        Attach an action to a DRAFT motion.

        Raises:
            NotFoundError:      unknown motion
            UnauthorizedError:  caller is not the proposer
            InvalidStatusError: motion has left DRAFT
            InvalidInputError:  unknown kind or incomplete payload
        """
        motion = self._motions.get(motion_id)
        if caller != motion.proposer:
            raise UnauthorizedError(
                f"Only the proposer of motion #{motion_id} may attach actions"
            )
        if motion.status != MotionStatus.DRAFT:
            raise InvalidStatusError(
                f"Motion #{motion_id} is {motion.status.name}; actions can only "
                f"be attached while DRAFT"
            )
        kind = ActionKind.parse(kind)
        value = self._validate_payload(kind, setting_key, new_value, recipient, amount)

        action = MotionAction(
            motion_id=motion_id,
            action_id=len(self.actions_for(motion_id)),
            kind=kind,
            setting_key=setting_key if kind is ActionKind.SET_PARAMETER else None,
            new_value=value,
            recipient=recipient if kind is ActionKind.TRANSFER_FUNDS else None,
            amount=amount if kind is ActionKind.TRANSFER_FUNDS else None,
        )
        self._state.actions[(motion_id, action.action_id)] = action
        logger.info(
            f"Action {action.action_id} attached to motion #{motion_id}: "
            f"{kind.name} {action.to_dict()}"
        )
        return action

    def actions_for(self, motion_id: int) -> List[MotionAction]:
        """Actions of *motion_id* in execution order."""
        return self._state.actions_for(motion_id)
