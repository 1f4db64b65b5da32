"""
Host Ledger Collaborators

The engine never owns balances or time. It consumes:
  - TokenLedger: balance_of(account) and transfer(amount, sender, recipient)
  - a clock: any zero-argument callable returning the current block height

InMemoryTokenLedger and BlockClock are the stand-alone implementations used
by tests and local simulations.
"""

import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..exceptions import (
    BalanceQueryFailedError,
    GovernanceError,
    InvalidInputError,
    TransferFailedError,
)
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class LedgerError(Exception):
    """Base exception raised by in-memory ledger operations."""


class InsufficientBalanceError(LedgerError):
    """Raised when sender balance is too low."""


# ══════════════════════════════════════════════════════════════════════
#  TOKEN LEDGER
# ══════════════════════════════════════════════════════════════════════

class TokenLedger(ABC):
    """
    Fungible balance provider.

    Implementations that can roll back their own writes override
    snapshot/revert/release so a failed governance call also undoes the
    transfers it made. The defaults are no-ops for ledgers whose host
    already gives per-call atomicity.
    """

    @abstractmethod
    def balance_of(self, account: str) -> int:
        """Return *account*'s balance."""

    @abstractmethod
    def transfer(self, amount: int, sender: str, recipient: str) -> bool:
        """Move *amount* from *sender* to *recipient*; falsy result means refused."""

    def snapshot(self) -> Optional[int]:
        return None

    def revert(self, snapshot_id: Optional[int]) -> None:
        return None

    def release(self, snapshot_id: Optional[int]) -> None:
        return None


def query_balance(ledger: TokenLedger, account: str) -> int:
    """Ask *ledger* for a balance, surfacing any failure as BalanceQueryFailedError."""
    try:
        balance = ledger.balance_of(account)
    except Exception as exc:
        raise BalanceQueryFailedError(
            f"Balance query for {account} failed: {exc}"
        ) from exc
    if isinstance(balance, bool) or not isinstance(balance, int) or balance < 0:
        raise BalanceQueryFailedError(
            f"Balance query for {account} returned {balance!r}"
        )
    return balance


def move_funds(ledger: TokenLedger, amount: int, sender: str, recipient: str) -> None:
    """Transfer through *ledger*, surfacing refusal or failure as TransferFailedError."""
    try:
        ok = ledger.transfer(amount, sender, recipient)
    except GovernanceError:
        raise
    except Exception as exc:
        raise TransferFailedError(
            f"Transfer of {amount} {sender} → {recipient} failed: {exc}"
        ) from exc
    if not ok:
        raise TransferFailedError(
            f"Transfer of {amount} {sender} → {recipient} was refused"
        )


class InMemoryTokenLedger(TokenLedger):
    """Dictionary-backed token ledger with snapshot support."""

    def __init__(self, balances: Optional[Dict[str, int]] = None):
        self._balances: Dict[str, int] = dict(balances or {})
        self._snapshots: List[Dict[str, int]] = []

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def credit(self, account: str, amount: int):
        """Mint *amount* into *account* (test / genesis helper)."""
        if amount < 0:
            raise InvalidInputError("Credit amount cannot be negative")
        self._balances[account] = self._balances.get(account, 0) + amount

    def set_balance(self, account: str, amount: int):
        if amount < 0:
            raise InvalidInputError("Balance cannot be negative")
        self._balances[account] = amount

    def transfer(self, amount: int, sender: str, recipient: str) -> bool:
        if amount <= 0:
            raise LedgerError("Transfer amount must be positive")
        available = self._balances.get(sender, 0)
        if available < amount:
            raise InsufficientBalanceError(
                f"Insufficient balance: {sender} has {available}, needs {amount}"
            )
        self._balances[sender] = available - amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount
        logger.debug(f"Transfer: {sender} → {recipient} ({amount})")
        return True

    # ── Snapshots ─────────────────────────────────────────────────────

    def snapshot(self) -> int:
        self._snapshots.append(dict(self._balances))
        return len(self._snapshots) - 1

    def revert(self, snapshot_id: Optional[int]) -> None:
        if snapshot_id is None or not 0 <= snapshot_id < len(self._snapshots):
            raise ValueError(f"Invalid snapshot ID: {snapshot_id}")
        self._balances = self._snapshots[snapshot_id]
        self._snapshots = self._snapshots[:snapshot_id]

    def release(self, snapshot_id: Optional[int]) -> None:
        if snapshot_id is None or not 0 <= snapshot_id < len(self._snapshots):
            raise ValueError(f"Invalid snapshot ID: {snapshot_id}")
        self._snapshots = self._snapshots[:snapshot_id]

    def to_dict(self) -> Dict[str, Any]:
        return {"balances": copy.copy(self._balances)}

    def __repr__(self) -> str:
        return f"<InMemoryTokenLedger accounts={len(self._balances)}>"


# ══════════════════════════════════════════════════════════════════════
#  CLOCK
# ══════════════════════════════════════════════════════════════════════

class BlockClock:
    """Monotonic block-height counter; calling it returns the current height."""

    def __init__(self, height: int = 0):
        if height < 0:
            raise ValueError("Block height cannot be negative")
        self._height = height

    @property
    def height(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        if blocks < 0:
            raise ValueError("Block height cannot move backwards")
        self._height += blocks
        return self._height

    def set_height(self, height: int) -> int:
        if height < self._height:
            raise ValueError(
                f"Block height cannot move backwards ({self._height} → {height})"
            )
        self._height = height
        return self._height

    def __call__(self) -> int:
        return self._height

    def __repr__(self) -> str:
        return f"<BlockClock height={self._height}>"
