"""
Governance Engine Example

Walks a parameter-change motion and a treasury grant through the full
lifecycle on an in-memory ledger.
"""

from stakegov.config import GovernanceConfig
from stakegov.constants import SETTING_QUORUM_BP
from stakegov.exceptions import EffectFailedError
from stakegov.governance import BlockClock, GovernanceEngine, InMemoryTokenLedger


ALICE = 'acct:alice'
BOB = 'acct:bob'
CAROL = 'acct:carol'


def build_engine():
    """Example: Wire an engine to an in-memory ledger and clock."""

    ledger = InMemoryTokenLedger({ALICE: 5_000, BOB: 600_000, CAROL: 400_000})
    clock = BlockClock()
    config = GovernanceConfig(participation_ceiling=5_000_000)

    engine = GovernanceEngine(ledger, clock, config)
    print(f"Engine ready: {engine}")
    print(f"Treasury account: {config.treasury_account}")

    return engine, ledger, clock


def example_parameter_change(engine, clock):
    """Example: Raise the quorum through a PARAMETER motion."""

    motion_id = engine.create_motion(
        ALICE, 'Raise quorum', 'Raise participation quorum to 20%', 'parameter',
    )
    engine.add_action(motion_id, ALICE, 'set-parameter',
                      setting_key=SETTING_QUORUM_BP, new_value=2_000)
    engine.activate_motion(motion_id, ALICE)

    motion = engine.get_motion(motion_id)
    print(f"Motion #{motion_id} votes from {motion.voting_starts} to {motion.voting_ends}")

    clock.set_height(motion.voting_starts)
    engine.cast_ballot(motion_id, BOB, 'yes')
    engine.cast_ballot(motion_id, CAROL, 'no')

    clock.set_height(motion.voting_ends)
    outcome = engine.finalize_motion(motion_id)
    print(f"Outcome: {outcome.to_dict()}")

    clock.set_height(motion.executable_at)
    changes = engine.execute_motion(motion_id)
    print(f"Applied: {changes}")
    print(f"quorum-bp is now {engine.get_setting(SETTING_QUORUM_BP).value}")


def example_treasury_grant(engine, ledger, clock):
    """Example: A grant that fails until the treasury is funded, then succeeds."""

    motion_id = engine.create_motion(ALICE, 'Grant', 'Fund client audit', 'fund')
    engine.add_action(motion_id, ALICE, 'transfer-funds', recipient=CAROL, amount=50_000)
    engine.activate_motion(motion_id, ALICE)

    motion = engine.get_motion(motion_id)
    clock.set_height(motion.voting_starts)
    engine.cast_ballot(motion_id, BOB, 'yes')
    engine.cast_ballot(motion_id, CAROL, 'yes')
    clock.set_height(motion.voting_ends)
    engine.finalize_motion(motion_id)

    clock.set_height(motion.executable_at)
    try:
        engine.execute_motion(motion_id)
    except EffectFailedError as e:
        print(f"Execution failed, motion still {engine.get_status(motion_id).name}: {e}")

    ledger.credit(engine.config.treasury_account, 100_000)
    engine.execute_motion(motion_id)
    print(f"Carol balance after grant: {ledger.balance_of(CAROL)}")


def main():
    """Run all examples."""

    print("=" * 60)
    print("stakegov Governance Examples")
    print("=" * 60)

    engine, ledger, clock = build_engine()

    print("\n1. Parameter change")
    print("-" * 60)
    example_parameter_change(engine, clock)

    print("\n2. Treasury grant")
    print("-" * 60)
    example_treasury_grant(engine, ledger, clock)

    print("\n" + "=" * 60)
    print(f"State root: {engine.state_root()}")
    print(f"Executed motions: {len(engine.execution_log)}")
    print("=" * 60)


if __name__ == '__main__':
    main()
