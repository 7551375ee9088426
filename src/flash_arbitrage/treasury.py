"""
Treasury

Profit accounting and withdrawals for the arbitrage vault.

- Stats: execution count and cumulative profit, updated only by a
  committed arbitrage cycle
- Withdrawals with an incentive tip paid in the reference asset
- Emergency drain for the owner, available while paused
- Static gas estimates per strategy variant
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .access_gate import AccessGate
from .errors import InsufficientBalance, InvalidAmount, InvalidRoute, InvalidTipPercentage
from .ledger import TokenLedger
from .strategy import StrategyType
from .venue_router import VenueRouter
from .venues import VenueId

logger = logging.getLogger("flash_arb.treasury")

BPS_DENOMINATOR = 10_000

DEFAULT_GAS_ESTIMATES: Dict[StrategyType, int] = {
    StrategyType.SIMPLE_2_STEP: 300_000,
    StrategyType.TRIANGULAR: 450_000,
    StrategyType.MULTI_HOP: 600_000,
}


@dataclass
class Stats:
    """Lifetime arbitrage statistics (never decrease)."""
    execution_count: int = 0
    cumulative_profit: int = 0


@dataclass
class WithdrawalResult:
    """Where a tipped withdrawal went."""
    token: str
    amount: int
    tip_amount: int
    tip_paid: int  # in the reference asset
    owner_amount: int
    converted: bool = False

    def to_dict(self) -> Dict:
        return {
            "token": self.token,
            "amount": self.amount,
            "tip_amount": self.tip_amount,
            "tip_paid": self.tip_paid,
            "owner_amount": self.owner_amount,
            "converted": self.converted,
        }


class Treasury:
    """
    Accounting and payouts for the funds held by the router's account.

    Tips on non-reference tokens are converted to the reference asset
    through the router before being paid. The owner always receives
    ``amount - tip_amount`` of the withdrawn token, whatever the
    conversion returns.
    """

    def __init__(
        self,
        ledger: TokenLedger,
        access_gate: AccessGate,
        router: VenueRouter,
        tip_recipient: str,
        conversion_venue: VenueId = VenueId.UNISWAP_V3,
        conversion_fee: int = 3000,
        max_conversion_slippage_bps: int = 100,
        gas_estimates: Optional[Dict[StrategyType, int]] = None,
    ):
        """
        Initialize Treasury.

        Args:
            ledger: Token ledger
            access_gate: Gate used for owner checks and pause status
            router: Router whose account is the vault
            tip_recipient: Receiver of withdrawal tips
            conversion_venue: Venue used to convert tips
            conversion_fee: Fee parameter for the conversion swap
            max_conversion_slippage_bps: Allowed shortfall versus the quote
            gas_estimates: Per-variant gas overrides
        """
        self.ledger = ledger
        self.access_gate = access_gate
        self.router = router
        self.tip_recipient = tip_recipient
        self.conversion_venue = conversion_venue
        self.conversion_fee = conversion_fee
        self.max_conversion_slippage_bps = max_conversion_slippage_bps
        self.gas_estimates = dict(DEFAULT_GAS_ESTIMATES)
        if gas_estimates:
            self.gas_estimates.update(
                {StrategyType(k): int(v) for k, v in gas_estimates.items()}
            )
        self._stats = Stats()

    @property
    def vault(self) -> str:
        return self.router.account

    @property
    def reference_asset(self) -> str:
        return self.router.reference_asset

    @property
    def stats(self) -> Stats:
        return Stats(self._stats.execution_count, self._stats.cumulative_profit)

    def balance(self, token: str) -> int:
        return self.ledger.balance_of(token, self.vault)

    def record_execution(self, profit: int) -> Stats:
        """Count one committed cycle and its recorded profit."""
        if profit < 0:
            raise InvalidAmount(f"Recorded profit cannot be negative: {profit}")
        self._stats.execution_count += 1
        self._stats.cumulative_profit += profit
        return self.stats

    # ------------------------------------------------------------------
    # Withdrawals
    # ------------------------------------------------------------------

    def withdraw_profit_with_tip(
        self,
        caller: str,
        token: str,
        amount: int,
        tip_percent: int,
    ) -> WithdrawalResult:
        """
        Withdraw ``amount`` of ``token`` to the owner, tipping a percentage.

        Raises:
            NotAuthorized: Caller is not the owner
            InvalidTipPercentage: ``tip_percent`` above 100
            InsufficientBalance: Vault holds less than ``amount``
        """
        self.access_gate.require_owner(caller)
        if tip_percent < 0 or tip_percent > 100:
            raise InvalidTipPercentage(f"Invalid tip percentage: {tip_percent}")
        available = self.balance(token)
        if amount > available:
            raise InsufficientBalance(f"Insufficient balance: {available} < {amount}")

        tip_amount = amount * tip_percent // 100
        owner_amount = amount - tip_amount
        owner = self.access_gate.owner

        with self.ledger.transaction():
            if tip_amount == 0:
                tip_paid = 0
                converted = False
            elif token == self.reference_asset:
                self.ledger.transfer(token, self.vault, self.tip_recipient, tip_amount)
                tip_paid = tip_amount
                converted = False
            else:
                tip_paid = self._convert_tip(token, tip_amount)
                self.ledger.transfer(self.reference_asset, self.vault, self.tip_recipient, tip_paid)
                converted = True
            self.ledger.transfer(token, self.vault, owner, owner_amount)

        logger.info(
            "Withdrew %d %s: owner=%d, tip=%d %s",
            amount, token, owner_amount, tip_paid, self.reference_asset,
        )
        return WithdrawalResult(
            token=token,
            amount=amount,
            tip_amount=tip_amount,
            tip_paid=tip_paid,
            owner_amount=owner_amount,
            converted=converted,
        )

    def emergency_withdraw(self, caller: str, token: str, amount: int) -> int:
        """Send up to ``amount`` of ``token`` to the owner. Works while paused."""
        self.access_gate.require_owner(caller)
        withdrawn = min(amount, self.balance(token))
        self.ledger.transfer(token, self.vault, self.access_gate.owner, withdrawn)
        logger.warning("Emergency withdrawal: %d %s to %s", withdrawn, token, self.access_gate.owner)
        return withdrawn

    def _convert_tip(self, token: str, tip_amount: int) -> int:
        quoted = self.router.quote(
            self.conversion_venue, token, self.reference_asset, tip_amount, self.conversion_fee
        )
        min_out = quoted * (BPS_DENOMINATOR - self.max_conversion_slippage_bps) // BPS_DENOMINATOR
        return self.router.swap(
            self.conversion_venue,
            token,
            self.reference_asset,
            tip_amount,
            min_out,
            self.conversion_fee,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_stats(self) -> Tuple[int, int, bool]:
        """(execution count, cumulative profit, paused)."""
        return (
            self._stats.execution_count,
            self._stats.cumulative_profit,
            self.access_gate.paused,
        )

    def estimate_gas(self, strategy_type) -> int:
        try:
            return self.gas_estimates[StrategyType(strategy_type)]
        except ValueError:
            raise InvalidRoute(f"Unknown strategy type {strategy_type!r}") from None
