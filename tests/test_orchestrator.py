"""
Tests for the borrow -> execute -> repay cycle.
"""

from unittest.mock import patch

import pytest

from conftest import DAI, E18, FACILITY, OPERATOR, OUTSIDER, OWNER, VAULT, WETH
from src.flash_arbitrage import (
    CreditFacility,
    CycleState,
    ExternalFailure,
    Hop,
    InsufficientBalance,
    InsufficientRepayment,
    InvalidAmount,
    InvalidCallback,
    InvalidInitiator,
    InvalidRoute,
    NotAuthorized,
    NotProfitable,
    Paused,
    ReentrancyDetected,
    Strategy,
    StrategyEngine,
    StrategyType,
    VenueId,
)


def simple_route():
    return Strategy(
        StrategyType.SIMPLE_2_STEP,
        (
            Hop(VenueId.UNISWAP_V3, WETH, DAI, fee=3000),
            Hop(VenueId.UNISWAP_V2, DAI, WETH),
        ),
    )


def set_round_trip(system, out_num, out_den):
    """100 A -> 105 B, then 105 B -> 105 * out_num / out_den A."""
    system.venues[VenueId.UNISWAP_V3].set_rate(WETH, DAI, 105, 100)
    system.venues[VenueId.UNISWAP_V2].set_rate(DAI, WETH, out_num, out_den)


class TestSuccessfulCycle:

    def test_worked_example(self, system):
        # Borrow 100 A; 100 A -> 105 B -> 101 A; premium 0.09 A
        set_round_trip(system, 101, 105)

        record = system.orchestrator.execute_arbitrage(OPERATOR, WETH, 100 * E18, simple_route())

        assert record.premium == 9 * E18 // 100
        assert record.final_amount == 101 * E18
        assert record.profit == E18
        assert system.orchestrator.get_stats() == (1, E18, False)
        assert system.orchestrator.state is CycleState.COMMITTED

        # Vault keeps 101 - 100.09; facility gains the premium
        assert system.ledger.balance_of(WETH, VAULT) == 91 * E18 // 100
        assert system.ledger.balance_of(WETH, FACILITY) == 10_000 * E18 + 9 * E18 // 100
        assert system.ledger.allowance(WETH, VAULT, FACILITY) == 0

    def test_owner_can_execute(self, system):
        set_round_trip(system, 101, 105)

        system.orchestrator.execute_arbitrage(OWNER, WETH, 100 * E18, simple_route())

        assert system.orchestrator.get_stats()[0] == 1

    def test_stats_accumulate(self, system):
        set_round_trip(system, 101, 105)

        for _ in range(3):
            system.orchestrator.execute_arbitrage(OPERATOR, WETH, 100 * E18, simple_route())

        count, profit, _ = system.orchestrator.get_stats()
        assert count == 3
        assert profit == 3 * E18

    def test_history_and_metrics(self, system):
        set_round_trip(system, 101, 105)
        system.orchestrator.execute_arbitrage(OPERATOR, WETH, 100 * E18, simple_route())

        history = system.orchestrator.get_execution_history()
        assert len(history) == 1
        assert history[0].to_dict()["strategy_type"] == "SIMPLE_2_STEP"
        assert history[0].caller == OPERATOR

        metrics = system.orchestrator.get_metrics()
        assert metrics["successful"] == 1
        assert metrics["failed"] == 0

    def test_each_cycle_starts_idle(self, system):
        set_round_trip(system, 100, 105)
        with pytest.raises(NotProfitable):
            system.orchestrator.execute_arbitrage(OPERATOR, WETH, 100 * E18, simple_route())
        assert system.orchestrator.state is CycleState.ABORTED

        set_round_trip(system, 101, 105)
        seen = []
        validate = system.engine.validate

        def record_state(strategy, asset):
            seen.append(system.orchestrator.state)
            validate(strategy, asset)

        with patch.object(system.engine, "validate", side_effect=record_state):
            system.orchestrator.execute_arbitrage(OPERATOR, WETH, 100 * E18, simple_route())

        assert seen[0] is CycleState.IDLE
        assert system.orchestrator.state is CycleState.COMMITTED

    def test_get_stats_is_pure(self, system):
        set_round_trip(system, 101, 105)
        system.orchestrator.execute_arbitrage(OPERATOR, WETH, 100 * E18, simple_route())

        assert system.orchestrator.get_stats() == system.orchestrator.get_stats()


class TestRejectedCycles:

    def assert_untouched(self, system, before):
        assert system.ledger.snapshot() == before
        assert system.orchestrator.get_stats()[:2] == (0, 0)

    def test_unauthorized_caller(self, system):
        before = system.ledger.snapshot()

        with pytest.raises(NotAuthorized):
            system.orchestrator.execute_arbitrage(OUTSIDER, WETH, 100 * E18, simple_route())

        self.assert_untouched(system, before)
        assert system.orchestrator.get_metrics()["total_attempts"] == 0

    def test_unauthorized_caller_while_paused(self, system):
        system.orchestrator.pause(OWNER)

        with pytest.raises(NotAuthorized):
            system.orchestrator.execute_arbitrage(OUTSIDER, WETH, 100 * E18, simple_route())

    @pytest.mark.parametrize("caller", [OWNER, OPERATOR])
    def test_paused(self, system, caller):
        set_round_trip(system, 101, 105)
        system.orchestrator.pause(OWNER)
        before = system.ledger.snapshot()

        with pytest.raises(Paused):
            system.orchestrator.execute_arbitrage(caller, WETH, 100 * E18, simple_route())

        self.assert_untouched(system, before)
        assert system.orchestrator.get_stats()[2] is True

    def test_resumes_after_unpause(self, system):
        set_round_trip(system, 101, 105)
        system.orchestrator.pause(OWNER)
        system.orchestrator.unpause(OWNER)

        system.orchestrator.execute_arbitrage(OPERATOR, WETH, 100 * E18, simple_route())

        assert system.orchestrator.get_stats() == (1, E18, False)

    def test_not_profitable_rolls_back(self, system):
        set_round_trip(system, 100, 105)  # exactly break-even
        before = system.ledger.snapshot()

        with pytest.raises(NotProfitable):
            system.orchestrator.execute_arbitrage(OPERATOR, WETH, 100 * E18, simple_route())

        self.assert_untouched(system, before)
        assert system.orchestrator.state is CycleState.ABORTED

    def test_profit_below_premium(self, system):
        # 100.05 back: profitable on its own, but short of 100.09 owed
        set_round_trip(system, 10005, 10500)
        before = system.ledger.snapshot()

        with pytest.raises(InsufficientRepayment):
            system.orchestrator.execute_arbitrage(OPERATOR, WETH, 100 * E18, simple_route())

        self.assert_untouched(system, before)

    def test_route_for_another_asset(self, system):
        before = system.ledger.snapshot()

        with pytest.raises(InvalidRoute):
            system.orchestrator.execute_arbitrage(OPERATOR, DAI, 100 * E18, simple_route())

        self.assert_untouched(system, before)
        assert system.venues[VenueId.UNISWAP_V3].calls == []

    def test_zero_amount(self, system):
        with pytest.raises(InvalidAmount):
            system.orchestrator.execute_arbitrage(OPERATOR, WETH, 0, simple_route())

    def test_collaborator_failure_propagates_unchanged(self, system):
        set_round_trip(system, 101, 105)
        failure = RuntimeError("venue offline")

        def fail():
            raise failure

        system.venues[VenueId.UNISWAP_V2].on_swap = fail
        before = system.ledger.snapshot()

        with pytest.raises(RuntimeError) as exc_info:
            system.orchestrator.execute_arbitrage(OPERATOR, WETH, 100 * E18, simple_route())

        assert exc_info.value is failure
        self.assert_untouched(system, before)
        assert system.orchestrator.get_metrics()["failure_reasons"] == {"RuntimeError": 1}

    def test_reentrant_call_rejected(self, system):
        set_round_trip(system, 101, 105)

        def reenter():
            system.orchestrator.execute_arbitrage(OWNER, WETH, E18, simple_route())

        system.venues[VenueId.UNISWAP_V3].on_swap = reenter
        before = system.ledger.snapshot()

        with pytest.raises(ReentrancyDetected):
            system.orchestrator.execute_arbitrage(OPERATOR, WETH, 100 * E18, simple_route())

        self.assert_untouched(system, before)

        # The guard is released once the cycle ends
        system.venues[VenueId.UNISWAP_V3].on_swap = None
        system.orchestrator.execute_arbitrage(OPERATOR, WETH, 100 * E18, simple_route())
        assert system.orchestrator.get_stats()[0] == 1

    def test_outsider_during_active_cycle_not_authorized(self, system):
        set_round_trip(system, 101, 105)
        inner_errors = []

        def outsider_enters():
            try:
                system.orchestrator.execute_arbitrage(OUTSIDER, WETH, E18, simple_route())
            except Exception as e:
                inner_errors.append(type(e).__name__)
                raise

        system.venues[VenueId.UNISWAP_V3].on_swap = outsider_enters
        before = system.ledger.snapshot()

        with pytest.raises(NotAuthorized):
            system.orchestrator.execute_arbitrage(OPERATOR, WETH, 100 * E18, simple_route())

        assert inner_errors == ["NotAuthorized"]
        self.assert_untouched(system, before)

    def test_facility_without_liquidity(self, system):
        before = system.ledger.snapshot()

        with pytest.raises(InsufficientBalance):
            system.orchestrator.execute_arbitrage(OPERATOR, DAI, 100 * E18, Strategy(
                StrategyType.SIMPLE_2_STEP,
                (Hop(VenueId.UNISWAP_V2, DAI, WETH), Hop(VenueId.UNISWAP_V3, WETH, DAI, 3000)),
            ))

        self.assert_untouched(system, before)


class TestLoanCallback:

    def test_callback_from_stranger(self, system):
        with pytest.raises(InvalidCallback):
            system.orchestrator.on_loan_callback(
                OUTSIDER, [WETH], [E18], [0], VAULT, simple_route().encode()
            )

    def test_loan_initiated_by_someone_else(self, system):
        set_round_trip(system, 101, 105)
        before = system.ledger.snapshot()

        with pytest.raises(InvalidInitiator):
            with system.ledger.transaction():
                system.facility.request_loan(
                    OUTSIDER, system.orchestrator, WETH, 100 * E18, simple_route().encode()
                )

        assert system.ledger.snapshot() == before

    def test_callback_outside_a_cycle(self, system):
        with pytest.raises(InvalidCallback):
            system.orchestrator.on_loan_callback(
                FACILITY, [WETH], [E18], [0], VAULT, simple_route().encode()
            )

    def test_receiver_returning_false(self, ledger):
        class Refuser:
            address = "refuser"

            def on_loan_callback(self, *args):
                return False

        facility = CreditFacility(ledger, FACILITY)
        ledger.mint(WETH, FACILITY, 100)

        with pytest.raises(ExternalFailure):
            with ledger.transaction():
                facility.request_loan("refuser", Refuser(), WETH, 100, b"")
        assert ledger.balance_of(WETH, FACILITY) == 100


class TestAdmin:

    def test_update_strategy_engine(self, system):
        replacement = StrategyEngine(system.router)

        system.orchestrator.update_strategy_engine(OWNER, replacement)

        assert system.orchestrator.strategy_engine is replacement

    def test_update_strategy_engine_owner_only(self, system):
        original = system.orchestrator.strategy_engine

        with pytest.raises(NotAuthorized):
            system.orchestrator.update_strategy_engine(OPERATOR, StrategyEngine(system.router))
        assert system.orchestrator.strategy_engine is original

    def test_revoked_operator_rejected(self, system):
        set_round_trip(system, 101, 105)
        system.orchestrator.set_authorized_caller(OWNER, OPERATOR, False)

        with pytest.raises(NotAuthorized):
            system.orchestrator.execute_arbitrage(OPERATOR, WETH, 100 * E18, simple_route())

    def test_estimate_gas_accepts_strategy(self, system):
        assert system.orchestrator.estimate_gas(simple_route()) == system.orchestrator.estimate_gas(
            StrategyType.SIMPLE_2_STEP
        )
