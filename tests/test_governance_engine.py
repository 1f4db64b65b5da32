"""
Governance Engine Lifecycle Test Suite

Coverage:
  - Lifecycle controller: activate, finalize and execute gates
  - Effect execution: settings writes, treasury payouts, custom executors,
    all-or-nothing rollback and retry
  - Snapshotted thresholds: in-flight motions ignore later setting changes
  - State: atomic calls, deterministic state root, persistence round trip
  - End-to-end motion from creation to execution
"""

import logging
import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from stakegov.config import GovernanceConfig
from stakegov.constants import (
    GOVERNANCE_EXECUTION_DELAY,
    GOVERNANCE_MOTION_DEPOSIT,
    GOVERNANCE_QUORUM_BP,
    GOVERNANCE_SIMPLE_MAJORITY_BP,
    SETTING_QUORUM_BP,
    SETTING_SIMPLE_MAJORITY_BP,
)
from stakegov.exceptions import (
    EffectFailedError,
    ErrorKind,
    InvalidInputError,
    InvalidStatusError,
    TooEarlyError,
    TransferFailedError,
    UnauthorizedError,
)
from stakegov.governance import (
    BlockClock,
    GovernanceEngine,
    GovernanceState,
    InMemoryTokenLedger,
    MotionStatus,
    transaction,
)
from stakegov.logger import TerminalSafeFormatter


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

ALICE = "acct:alice"
BOB = "acct:bob"
CAROL = "acct:carol"
TREASURY = "stakegov.treasury"

# 100_000 voting weight reaches a 1000bp quorum exactly at this ceiling
CEILING = 1_000_000


def make_engine(balances=None, height=0, **overrides):
    if balances is None:
        balances = {ALICE: 10_000, BOB: 60_000, CAROL: 40_000}
    ledger = InMemoryTokenLedger(balances)
    clock = BlockClock(height)
    overrides.setdefault("treasury_account", TREASURY)
    overrides.setdefault("participation_ceiling", CEILING)
    engine = GovernanceEngine(ledger, clock, GovernanceConfig(**overrides))
    return engine, ledger, clock


def run_vote(engine, clock, actions=(), bob="yes", carol="no", category="parameter"):
    """Create a motion with *actions*, vote it and leave the clock at voting_ends."""
    motion_id = engine.create_motion(ALICE, "Motion", "Body text", category)
    for kind, payload in actions:
        engine.add_action(motion_id, ALICE, kind, **payload)
    engine.activate_motion(motion_id, ALICE)
    motion = engine.get_motion(motion_id)
    clock.set_height(motion.voting_starts)
    if bob:
        engine.cast_ballot(motion_id, BOB, bob)
    if carol:
        engine.cast_ballot(motion_id, CAROL, carol)
    clock.set_height(motion.voting_ends)
    return motion_id


def passed_motion(engine, clock, actions=()):
    motion_id = run_vote(engine, clock, actions)
    engine.finalize_motion(motion_id)
    assert engine.get_status(motion_id) == MotionStatus.PASSED
    return motion_id


def set_quorum(value):
    return ("set-parameter", {"setting_key": SETTING_QUORUM_BP, "new_value": value})


def pay(recipient, amount):
    return ("transfer-funds", {"recipient": recipient, "amount": amount})


# ══════════════════════════════════════════════════════════════════════
#  ACTIVATE
# ══════════════════════════════════════════════════════════════════════

class TestActivation:

    def test_proposer_activates(self):
        engine, _, _ = make_engine()
        motion_id = engine.create_motion(ALICE, "T", "B", "text")
        motion = engine.activate_motion(motion_id, ALICE)
        assert motion.status == MotionStatus.ACTIVE
        assert engine.get_status(motion_id) == MotionStatus.ACTIVE

    def test_activation_has_no_time_gate(self):
        engine, _, clock = make_engine()
        motion_id = engine.create_motion(ALICE, "T", "B", "text")
        clock.set_height(10_000)
        engine.activate_motion(motion_id, ALICE)
        assert engine.get_status(motion_id) == MotionStatus.ACTIVE

    def test_non_proposer_rejected(self):
        engine, _, _ = make_engine()
        motion_id = engine.create_motion(ALICE, "T", "B", "text")
        with pytest.raises(UnauthorizedError):
            engine.activate_motion(motion_id, BOB)
        assert engine.get_status(motion_id) == MotionStatus.DRAFT

    def test_activate_twice(self):
        engine, _, _ = make_engine()
        motion_id = engine.create_motion(ALICE, "T", "B", "text")
        engine.activate_motion(motion_id, ALICE)
        with pytest.raises(InvalidStatusError):
            engine.activate_motion(motion_id, ALICE)


# ══════════════════════════════════════════════════════════════════════
#  FINALIZE
# ══════════════════════════════════════════════════════════════════════

class TestFinalization:

    def test_too_early(self):
        engine, _, clock = make_engine()
        motion_id = engine.create_motion(ALICE, "T", "B", "text")
        engine.activate_motion(motion_id, ALICE)
        clock.set_height(engine.get_motion(motion_id).voting_ends - 1)
        with pytest.raises(TooEarlyError) as exc_info:
            engine.finalize_motion(motion_id)
        assert exc_info.value.kind is ErrorKind.TOO_EARLY
        assert engine.get_status(motion_id) == MotionStatus.ACTIVE

    def test_passes_at_voting_ends(self):
        engine, _, clock = make_engine()
        motion_id = run_vote(engine, clock)
        outcome = engine.finalize_motion(motion_id)
        assert outcome.approval_bp == 6000
        assert outcome.participation_bp == 1000
        assert outcome.passed
        assert engine.get_status(motion_id) == MotionStatus.PASSED

    def test_rejected_on_majority(self):
        engine, _, clock = make_engine()
        motion_id = run_vote(engine, clock, bob="no", carol="yes")
        outcome = engine.finalize_motion(motion_id)
        assert outcome.quorum_reached and not outcome.majority_reached
        assert engine.get_status(motion_id) == MotionStatus.REJECTED

    def test_rejected_on_quorum(self):
        engine, _, clock = make_engine(participation_ceiling=100_000_000)
        motion_id = run_vote(engine, clock)
        outcome = engine.finalize_motion(motion_id)
        assert outcome.majority_reached and not outcome.quorum_reached
        assert engine.get_status(motion_id) == MotionStatus.REJECTED

    def test_no_ballots_rejected(self):
        engine, _, clock = make_engine()
        motion_id = run_vote(engine, clock, bob=None, carol=None)
        assert not engine.finalize_motion(motion_id).passed
        assert engine.get_status(motion_id) == MotionStatus.REJECTED

    def test_upgrade_needs_super_majority(self):
        engine, _, clock = make_engine()
        motion_id = run_vote(engine, clock, category="upgrade")
        assert engine.finalize_motion(motion_id).approval_bp == 6000
        assert engine.get_status(motion_id) == MotionStatus.REJECTED

    def test_finalize_draft(self):
        engine, _, _ = make_engine()
        motion_id = engine.create_motion(ALICE, "T", "B", "text")
        with pytest.raises(InvalidStatusError):
            engine.finalize_motion(motion_id)

    def test_finalize_twice(self):
        engine, _, clock = make_engine()
        motion_id = run_vote(engine, clock)
        engine.finalize_motion(motion_id)
        with pytest.raises(InvalidStatusError):
            engine.finalize_motion(motion_id)

    def test_outcome_preview_is_read_only(self):
        engine, _, clock = make_engine()
        motion_id = run_vote(engine, clock)
        root = engine.state_root()
        assert engine.get_outcome(motion_id).passed
        assert engine.get_status(motion_id) == MotionStatus.ACTIVE
        assert engine.state_root() == root

    def test_history_records_transitions(self):
        engine, _, clock = make_engine()
        motion_id = passed_motion(engine, clock)
        steps = [(h["from"], h["to"]) for h in engine.get_motion(motion_id).history]
        assert steps == [("INIT", "DRAFT"), ("DRAFT", "ACTIVE"), ("ACTIVE", "PASSED")]


# ══════════════════════════════════════════════════════════════════════
#  EXECUTE
# ══════════════════════════════════════════════════════════════════════

class TestExecution:

    def test_execute_rejected_motion(self):
        engine, _, clock = make_engine()
        motion_id = run_vote(engine, clock, bob="no", carol="no")
        engine.finalize_motion(motion_id)
        clock.advance(GOVERNANCE_EXECUTION_DELAY)
        with pytest.raises(InvalidStatusError):
            engine.execute_motion(motion_id)

    def test_execute_active_motion(self):
        engine, _, clock = make_engine()
        motion_id = run_vote(engine, clock)
        with pytest.raises(InvalidStatusError):
            engine.execute_motion(motion_id)

    def test_execution_delay(self):
        engine, _, clock = make_engine()
        motion_id = passed_motion(engine, clock, [set_quorum(2000)])
        clock.advance(GOVERNANCE_EXECUTION_DELAY - 1)
        with pytest.raises(TooEarlyError):
            engine.execute_motion(motion_id)
        assert engine.get_setting(SETTING_QUORUM_BP).value == GOVERNANCE_QUORUM_BP
        clock.advance()
        engine.execute_motion(motion_id)
        assert engine.get_status(motion_id) == MotionStatus.EXECUTED

    def test_set_parameter_effect(self):
        engine, _, clock = make_engine()
        motion_id = passed_motion(engine, clock, [set_quorum(2000)])
        clock.advance(GOVERNANCE_EXECUTION_DELAY)
        changes = engine.execute_motion(motion_id)
        assert changes == [{SETTING_QUORUM_BP: {"old": GOVERNANCE_QUORUM_BP, "new": 2000}}]
        setting = engine.get_setting(SETTING_QUORUM_BP)
        assert setting.value == 2000
        assert setting.last_updated == clock()

    def test_transfer_effect(self):
        engine, ledger, clock = make_engine()
        ledger.credit(TREASURY, 5_000)
        motion_id = passed_motion(engine, clock, [pay(CAROL, 2_000)])
        clock.advance(GOVERNANCE_EXECUTION_DELAY)
        engine.execute_motion(motion_id)
        assert ledger.balance_of(CAROL) == 42_000
        assert ledger.balance_of(TREASURY) == 5_000 + GOVERNANCE_MOTION_DEPOSIT - 2_000

    def test_text_motion_executes_without_actions(self):
        engine, _, clock = make_engine()
        motion_id = passed_motion(engine, clock)
        clock.advance(GOVERNANCE_EXECUTION_DELAY)
        assert engine.execute_motion(motion_id) == []
        assert engine.get_status(motion_id) == MotionStatus.EXECUTED

    def test_execute_twice(self):
        engine, _, clock = make_engine()
        motion_id = passed_motion(engine, clock)
        clock.advance(GOVERNANCE_EXECUTION_DELAY)
        engine.execute_motion(motion_id)
        with pytest.raises(InvalidStatusError):
            engine.execute_motion(motion_id)

    def test_failed_effect_rolls_back_everything(self):
        engine, ledger, clock = make_engine()
        motion_id = passed_motion(engine, clock, [set_quorum(2000), pay(BOB, 5_000)])
        clock.advance(GOVERNANCE_EXECUTION_DELAY)
        root = engine.state_root()

        with pytest.raises(EffectFailedError) as exc_info:
            engine.execute_motion(motion_id)
        assert isinstance(exc_info.value.__cause__, TransferFailedError)
        assert engine.get_status(motion_id) == MotionStatus.PASSED
        assert engine.get_setting(SETTING_QUORUM_BP).value == GOVERNANCE_QUORUM_BP
        assert ledger.balance_of(TREASURY) == GOVERNANCE_MOTION_DEPOSIT
        assert engine.state_root() == root
        assert engine.execution_log == []

    def test_retry_after_failure(self):
        engine, ledger, clock = make_engine()
        motion_id = passed_motion(engine, clock, [set_quorum(2000), pay(BOB, 5_000)])
        clock.advance(GOVERNANCE_EXECUTION_DELAY)
        with pytest.raises(EffectFailedError):
            engine.execute_motion(motion_id)

        ledger.credit(TREASURY, 10_000)
        clock.advance(5)
        engine.execute_motion(motion_id)
        assert engine.get_status(motion_id) == MotionStatus.EXECUTED
        assert engine.get_setting(SETTING_QUORUM_BP).value == 2000
        assert ledger.balance_of(BOB) == 65_000

    def test_custom_executor(self):
        engine, ledger, clock = make_engine()
        calls = []

        def stream_payment(action, context):
            assert context.in_governance_execution
            calls.append((action.recipient, action.amount))
            return "scheduled"

        engine.effects.register_executor("transfer-funds", stream_payment)
        motion_id = passed_motion(engine, clock, [pay(CAROL, 1_000_000)])
        clock.advance(GOVERNANCE_EXECUTION_DELAY)
        assert engine.execute_motion(motion_id) == [{"result": "scheduled"}]
        assert calls == [(CAROL, 1_000_000)]
        assert ledger.balance_of(CAROL) == 40_000

    def test_custom_executor_failure(self):
        engine, _, clock = make_engine()

        def broken(action, context):
            raise RuntimeError("bridge unavailable")

        engine.effects.register_executor("set-parameter", broken)
        motion_id = passed_motion(engine, clock, [set_quorum(2000)])
        clock.advance(GOVERNANCE_EXECUTION_DELAY)
        with pytest.raises(EffectFailedError, match="bridge unavailable"):
            engine.execute_motion(motion_id)
        assert engine.get_status(motion_id) == MotionStatus.PASSED

    def test_execution_log(self):
        engine, _, clock = make_engine()
        motion_id = passed_motion(engine, clock, [set_quorum(1500)])
        clock.advance(GOVERNANCE_EXECUTION_DELAY)
        engine.execute_motion(motion_id)
        (entry,) = engine.execution_log
        assert entry["motionId"] == motion_id
        assert entry["executedAt"] == clock()
        assert entry["changes"][0][SETTING_QUORUM_BP]["new"] == 1500

    def test_direct_setting_update_still_refused(self):
        engine, _, clock = make_engine()
        motion_id = passed_motion(engine, clock)
        clock.advance(GOVERNANCE_EXECUTION_DELAY)
        engine.execute_motion(motion_id)
        with pytest.raises(UnauthorizedError):
            engine.update_protocol_setting(SETTING_QUORUM_BP, 1, TREASURY)


class TestSnapshottedThresholds:
    """In-flight motions keep the settings they were created under."""

    def test_setting_change_reaches_only_new_motions(self):
        engine, _, clock = make_engine()
        raise_majority = ("set-parameter", {
            "setting_key": SETTING_SIMPLE_MAJORITY_BP, "new_value": 6500,
        })
        first = passed_motion(engine, clock, [raise_majority])
        in_flight = engine.create_motion(ALICE, "In flight", "Body", "parameter")
        clock.advance(GOVERNANCE_EXECUTION_DELAY)
        engine.execute_motion(first)

        later = engine.create_motion(ALICE, "Later", "Body", "parameter")
        assert engine.get_motion(in_flight).required_majority_bp == GOVERNANCE_SIMPLE_MAJORITY_BP
        assert engine.get_motion(later).required_majority_bp == 6500

    def test_execution_delay_snapshotted(self):
        engine, _, clock = make_engine()
        change_delay = ("set-parameter", {"setting_key": "execution-delay", "new_value": 10})
        first = passed_motion(engine, clock, [change_delay])
        second = engine.create_motion(ALICE, "Second", "Body", "text")
        clock.advance(GOVERNANCE_EXECUTION_DELAY)
        engine.execute_motion(first)
        third = engine.create_motion(ALICE, "Third", "Body", "text")
        assert engine.get_motion(second).execution_delay == GOVERNANCE_EXECUTION_DELAY
        assert engine.get_motion(third).execution_delay == 10


# ══════════════════════════════════════════════════════════════════════
#  STATE
# ══════════════════════════════════════════════════════════════════════

class TestStateAtomicity:

    def test_transaction_reverts_state_and_ledger(self):
        state = GovernanceState()
        ledger = InMemoryTokenLedger({ALICE: 10})
        with pytest.raises(RuntimeError):
            with transaction(state, ledger):
                state.next_motion_id = 99
                ledger.credit(ALICE, 5)
                raise RuntimeError("abort")
        assert state.next_motion_id == 1
        assert ledger.balance_of(ALICE) == 10
        assert state._snapshots == []

    def test_transaction_commits(self):
        state = GovernanceState()
        with transaction(state):
            state.next_motion_id = 5
        assert state.next_motion_id == 5
        assert state._snapshots == []

    def test_nested_snapshot_revert(self):
        state = GovernanceState()
        outer = state.snapshot()
        state.next_motion_id = 2
        state.snapshot()
        state.next_motion_id = 3
        state.revert(outer)
        assert state.next_motion_id == 1
        with pytest.raises(ValueError):
            state.revert(1)

    def test_rejected_call_leaves_root(self):
        engine, _, clock = make_engine()
        motion_id = run_vote(engine, clock)
        root = engine.state_root()
        with pytest.raises(InvalidInputError):
            engine.cast_ballot(motion_id, BOB, "maybe")
        with pytest.raises(UnauthorizedError):
            engine.add_action(motion_id, BOB, "transfer-funds", recipient=BOB, amount=1)
        assert engine.state_root() == root

    def test_rejected_call_logged(self, caplog):
        engine, _, _ = make_engine()
        with caplog.at_level(logging.WARNING):
            with pytest.raises(UnauthorizedError):
                engine.update_protocol_setting(SETTING_QUORUM_BP, 1, BOB)
        assert "update_protocol_setting rejected" in caplog.text
        assert "unauthorized" in caplog.text


class TestStateQueries:

    def test_reads_return_copies(self):
        engine, _, _ = make_engine()
        motion_id = engine.create_motion(ALICE, "T", "B", "text")
        copy_ = engine.get_motion(motion_id)
        copy_.yes_weight = 10 ** 9
        copy_.status = MotionStatus.EXECUTED
        assert engine.get_motion(motion_id).yes_weight == 0
        assert engine.get_motion(motion_id) == engine.get_motion(motion_id)
        assert engine.get_status(motion_id) == MotionStatus.DRAFT

    def test_list_motions_by_status(self):
        engine, _, _ = make_engine()
        m1 = engine.create_motion(ALICE, "A", "B", "text")
        engine.create_motion(ALICE, "C", "D", "text")
        engine.activate_motion(m1, ALICE)
        assert [m.id for m in engine.list_motions()] == [1, 2]
        assert [m.id for m in engine.list_motions("active")] == [m1]

    def test_same_calls_same_root(self):
        roots = []
        for _ in range(2):
            engine, _, clock = make_engine()
            motion_id = passed_motion(engine, clock, [set_quorum(2000)])
            clock.advance(GOVERNANCE_EXECUTION_DELAY)
            engine.execute_motion(motion_id)
            roots.append(engine.state_root())
        assert roots[0] == roots[1]
        assert len(roots[0]) == 64  # 32-byte blake2b → hex

    def test_root_changes_with_state(self):
        engine, _, _ = make_engine()
        before = engine.state_root()
        engine.create_motion(ALICE, "T", "B", "text")
        assert engine.state_root() != before

    def test_to_dict_from_dict(self):
        engine, _, clock = make_engine()
        motion_id = passed_motion(engine, clock, [set_quorum(2000), pay(BOB, 1)])
        restored = GovernanceState.from_dict(engine.state.to_dict())
        assert restored.state_root() == engine.state_root()
        assert restored.motions[motion_id].status == MotionStatus.PASSED
        assert len(restored.actions_for(motion_id)) == 2

    def test_resume_from_state(self):
        engine, ledger, clock = make_engine()
        motion_id = passed_motion(engine, clock, [set_quorum(2000)])
        clock.advance(GOVERNANCE_EXECUTION_DELAY)
        engine.execute_motion(motion_id)

        restored = GovernanceState.from_dict(engine.state.to_dict())
        resumed = GovernanceEngine(ledger, clock, engine.config, state=restored)
        assert resumed.get_setting(SETTING_QUORUM_BP).value == 2000
        assert resumed.create_motion(ALICE, "Next", "Body", "text") == motion_id + 1

    def test_engine_to_dict(self):
        engine, _, _ = make_engine()
        engine.create_motion(ALICE, "T", "B", "text")
        d = engine.to_dict()
        assert d["stateRoot"] == engine.state_root()
        assert d["state"]["nextMotionId"] == 2
        assert d["config"]["participation_ceiling"] == CEILING
        assert "motions=1" in repr(engine)


# ══════════════════════════════════════════════════════════════════════
#  LOGGING
# ══════════════════════════════════════════════════════════════════════

class TestLogSanitizing:

    def test_strips_ansi_and_control_chars(self):
        raw = "Motion #1 '\x1b[31mred\x1b[0m\r title\x07'"
        assert TerminalSafeFormatter.sanitize(raw) == "Motion #1 'red title'"


# ══════════════════════════════════════════════════════════════════════
#  END TO END
# ══════════════════════════════════════════════════════════════════════

class TestEndToEnd:

    def test_full_lifecycle(self):
        engine, ledger, clock = make_engine(
            balances={ALICE: 10_000, BOB: 600, CAROL: 400},
            participation_ceiling=10_000,
        )
        motion_id = engine.create_motion(ALICE, "Raise quorum", "Quorum to 20%",
                                         "parameter", 1000)
        engine.add_action(motion_id, ALICE, "set-parameter",
                          setting_key=SETTING_QUORUM_BP, new_value=2000)
        motion = engine.get_motion(motion_id)
        assert (motion.voting_starts, motion.voting_ends) == (1440, 2440)

        engine.activate_motion(motion_id, ALICE)
        clock.set_height(1440)
        engine.cast_ballot(motion_id, BOB, "yes")
        engine.cast_ballot(motion_id, CAROL, "no")

        clock.set_height(2440)
        outcome = engine.finalize_motion(motion_id)
        assert outcome.approval_bp == 6000
        assert outcome.required_majority_bp == 5000
        assert outcome.quorum_reached
        assert engine.get_status(motion_id) == MotionStatus.PASSED

        clock.set_height(2440 + GOVERNANCE_EXECUTION_DELAY)
        engine.execute_motion(motion_id)
        assert engine.get_status(motion_id) == MotionStatus.EXECUTED
        assert engine.get_setting(SETTING_QUORUM_BP).value == 2000
        assert ledger.balance_of(TREASURY) == GOVERNANCE_MOTION_DEPOSIT
