"""
Loan Orchestrator

Drives one arbitrage cycle as a single unit of work:

    IDLE -> BORROWING -> EXECUTING_STRATEGY -> REPAYING -> COMMITTED
    (any state) -- failure --> ABORTED

The whole cycle runs inside a ledger transaction. Any exception rolls
every balance back and is re-raised unchanged; stats are only touched
after the transaction has committed.

The orchestrator is also the operator-facing surface: admin calls are
delegated to the AccessGate and Treasury it owns.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .access_gate import AccessGate
from .credit_facility import CreditFacility
from .errors import (
    InsufficientRepayment,
    InvalidAmount,
    InvalidCallback,
    InvalidInitiator,
    ReentrancyDetected,
)
from .ledger import TokenLedger
from .strategy import Strategy, StrategyType
from .strategy_engine import StrategyEngine
from .treasury import Treasury, WithdrawalResult

logger = logging.getLogger("flash_arb.orchestrator")


class CycleState(Enum):
    IDLE = "idle"
    BORROWING = "borrowing"
    EXECUTING_STRATEGY = "executing_strategy"
    REPAYING = "repaying"
    COMMITTED = "committed"
    ABORTED = "aborted"


@dataclass
class ExecutionContext:
    """Transient state of the cycle in flight."""
    asset: str
    amount: int
    strategy: Strategy
    premium: int = 0
    final_amount: int = 0
    profit: int = 0

    @property
    def amount_owed(self) -> int:
        return self.amount + self.premium


@dataclass
class ExecutionRecord:
    """Committed arbitrage cycle."""
    asset: str
    amount: int
    premium: int
    final_amount: int
    profit: int
    strategy_type: StrategyType
    hop_count: int
    caller: str
    timestamp: datetime

    def to_dict(self) -> Dict:
        return {
            "asset": self.asset,
            "amount": self.amount,
            "premium": self.premium,
            "final_amount": self.final_amount,
            "profit": self.profit,
            "strategy_type": self.strategy_type.name,
            "hop_count": self.hop_count,
            "caller": self.caller,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class ExecutionMetrics:
    """Attempt counters, including aborted cycles."""
    total_attempts: int = 0
    successful: int = 0
    failed: int = 0
    failure_reasons: Counter = field(default_factory=Counter)

    @property
    def success_rate(self) -> float:
        if self.total_attempts == 0:
            return 0.0
        return self.successful / self.total_attempts


class LoanOrchestrator:
    """
    Borrow, execute, repay, record.

    One cycle at a time: an authorized call made while a cycle is active
    (for example from inside a venue or the loan callback) fails with
    ReentrancyDetected. Each accepted cycle starts again from IDLE.
    """

    def __init__(
        self,
        address: str,
        ledger: TokenLedger,
        access_gate: AccessGate,
        credit_facility: CreditFacility,
        strategy_engine: StrategyEngine,
        treasury: Treasury,
    ):
        self.address = address
        self.ledger = ledger
        self.access_gate = access_gate
        self.credit_facility = credit_facility
        self.strategy_engine = strategy_engine
        self.treasury = treasury

        self.metrics = ExecutionMetrics()
        self._state = CycleState.IDLE
        self._entered = False
        self._context: Optional[ExecutionContext] = None
        self._history: List[ExecutionRecord] = []

        logger.info(
            "LoanOrchestrator initialized: %s (facility=%s, owner=%s)",
            address,
            credit_facility.address,
            access_gate.owner,
        )

    @property
    def state(self) -> CycleState:
        """Current cycle state; between cycles, the outcome of the last one."""
        return self._state

    # ------------------------------------------------------------------
    # Arbitrage cycle
    # ------------------------------------------------------------------

    def execute_arbitrage(
        self,
        caller: str,
        asset: str,
        amount: int,
        strategy: Strategy,
    ) -> ExecutionRecord:
        """
        Borrow ``amount`` of ``asset``, run ``strategy`` and repay.

        Args:
            caller: Operator identity (owner or authorized caller)
            asset: Asset to borrow; the route must start and end with it
            amount: Principal to borrow
            strategy: Route to execute inside the loan callback

        Returns:
            ExecutionRecord of the committed cycle

        Raises:
            NotAuthorized: Caller is neither owner nor authorized
            Paused: Arbitrage is paused
            ReentrancyDetected: A cycle is already active
            RouteError: Route invalid, unprofitable, or cannot repay
        """
        self.access_gate.require_can_execute(caller)
        if self._entered:
            raise ReentrancyDetected("Reentrant call to execute_arbitrage")

        self._entered = True
        self.metrics.total_attempts += 1
        self._transition(CycleState.IDLE)
        try:
            if amount <= 0:
                raise InvalidAmount("Loan amount must be positive")
            self.strategy_engine.validate(strategy, asset)

            self._context = ExecutionContext(asset=asset, amount=amount, strategy=strategy)
            with self.ledger.transaction():
                self._transition(CycleState.BORROWING)
                self.credit_facility.request_loan(
                    self.address, self, asset, amount, strategy.encode()
                )
            context = self._context
        except Exception as e:
            self._transition(CycleState.ABORTED)
            self.metrics.failed += 1
            self.metrics.failure_reasons[type(e).__name__] += 1
            logger.warning("Arbitrage aborted (%s): %s", type(e).__name__, e)
            raise
        finally:
            self._context = None
            self._entered = False

        self.treasury.record_execution(context.profit)
        self._transition(CycleState.COMMITTED)
        self.metrics.successful += 1

        record = ExecutionRecord(
            asset=asset,
            amount=amount,
            premium=context.premium,
            final_amount=context.final_amount,
            profit=context.profit,
            strategy_type=strategy.strategy_type,
            hop_count=len(strategy.hops),
            caller=caller,
            timestamp=datetime.now(timezone.utc),
        )
        self._history.append(record)

        logger.info(
            "Arbitrage executed: %s borrowed %d %s, returned %d, premium %d, profit %d",
            strategy.strategy_type.name,
            amount,
            asset,
            context.final_amount,
            context.premium,
            context.profit,
        )
        return record

    def on_loan_callback(
        self,
        caller: str,
        assets: List[str],
        amounts: List[int],
        premiums: List[int],
        initiator: str,
        params: bytes,
    ) -> bool:
        """Loan callback: run the strategy and approve repayment."""
        if caller != self.credit_facility.address:
            raise InvalidCallback(f"Callback from {caller}, expected credit facility")
        if initiator != self.address:
            raise InvalidInitiator(f"Loan initiated by {initiator}")

        context = self._context
        if context is None or assets[0] != context.asset or amounts[0] != context.amount:
            raise InvalidCallback("Callback does not match the active cycle")

        asset, amount, premium = assets[0], amounts[0], premiums[0]
        strategy = Strategy.decode(params)

        self._transition(CycleState.EXECUTING_STRATEGY)
        final_amount = self.strategy_engine.execute(strategy, asset, amount)

        self._transition(CycleState.REPAYING)
        context.premium = premium
        context.final_amount = final_amount
        if final_amount < context.amount_owed:
            raise InsufficientRepayment(
                f"Insufficient funds to repay: {final_amount} < {context.amount_owed}"
            )

        # Premium is not subtracted from recorded profit
        context.profit = final_amount - amount

        self.ledger.approve(asset, self.address, self.credit_facility.address, context.amount_owed)
        return True

    def _transition(self, new_state: CycleState) -> None:
        logger.debug("Cycle state: %s -> %s", self._state.value, new_state.value)
        self._state = new_state

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def set_authorized_caller(self, caller: str, address: str, allowed: bool) -> None:
        self.access_gate.set_authorized_caller(caller, address, allowed)

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self.access_gate.transfer_ownership(caller, new_owner)

    def pause(self, caller: str) -> None:
        self.access_gate.pause(caller)

    def unpause(self, caller: str) -> None:
        self.access_gate.unpause(caller)

    def update_strategy_engine(self, caller: str, strategy_engine: StrategyEngine) -> None:
        self.access_gate.require_owner(caller)
        self.strategy_engine = strategy_engine
        logger.info("Strategy engine updated by %s", caller)

    def withdraw_profit_with_tip(
        self, caller: str, token: str, amount: int, tip_percent: int
    ) -> WithdrawalResult:
        return self.treasury.withdraw_profit_with_tip(caller, token, amount, tip_percent)

    def emergency_withdraw(self, caller: str, token: str, amount: int) -> int:
        return self.treasury.emergency_withdraw(caller, token, amount)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_stats(self) -> Tuple[int, int, bool]:
        return self.treasury.get_stats()

    def estimate_gas(self, strategy) -> int:
        """Gas estimate for a strategy or a strategy type."""
        if isinstance(strategy, Strategy):
            strategy = strategy.strategy_type
        return self.treasury.estimate_gas(strategy)

    def get_metrics(self) -> Dict:
        return {
            "total_attempts": self.metrics.total_attempts,
            "successful": self.metrics.successful,
            "failed": self.metrics.failed,
            "success_rate": f"{self.metrics.success_rate:.1%}",
            "failure_reasons": dict(self.metrics.failure_reasons),
        }

    def get_execution_history(self, limit: int = 10) -> List[ExecutionRecord]:
        return self._history[-limit:] if limit > 0 else []
