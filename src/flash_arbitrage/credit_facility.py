"""
Credit Facility

Simulated same-cycle lender. A loan is issued, the receiver is called
back exactly once, and principal plus premium are pulled back through the
receiver's allowance before ``request_loan`` returns. Any failure inside
the cycle propagates to the caller, whose ledger transaction discards it.
"""

import logging
from typing import List, Protocol

from .errors import ExternalFailure, InsufficientBalance, InvalidAmount
from .ledger import TokenLedger

logger = logging.getLogger("flash_arb.credit_facility")

BPS_DENOMINATOR = 10_000


class LoanReceiver(Protocol):
    address: str

    def on_loan_callback(
        self,
        caller: str,
        assets: List[str],
        amounts: List[int],
        premiums: List[int],
        initiator: str,
        params: bytes,
    ) -> bool:
        ...


class CreditFacility:
    """Flash lender holding its own liquidity in the ledger."""

    def __init__(self, ledger: TokenLedger, address: str, premium_bps: int = 9):
        """
        Initialize the facility.

        Args:
            ledger: Token ledger holding the facility's reserves
            address: Facility identity, also the callback origin
            premium_bps: Loan fee in basis points (9 = 0.09%)
        """
        self.ledger = ledger
        self.address = address
        self.premium_bps = premium_bps

        logger.info(
            "CreditFacility initialized: %s, premium=%.2f%%",
            address,
            premium_bps / 100,
        )

    def premium_for(self, amount: int) -> int:
        return amount * self.premium_bps // BPS_DENOMINATOR

    def available_liquidity(self, asset: str) -> int:
        return self.ledger.balance_of(asset, self.address)

    def request_loan(
        self,
        initiator: str,
        receiver: LoanReceiver,
        asset: str,
        amount: int,
        params: bytes,
    ) -> None:
        """
        Lend ``amount`` of ``asset`` to ``receiver`` for one callback.

        Raises:
            InvalidAmount: Zero loan
            InsufficientBalance: Facility cannot fund the loan
            ExternalFailure: Receiver returned False from its callback
        """
        if amount <= 0:
            raise InvalidAmount("Loan amount must be positive")
        available = self.available_liquidity(asset)
        if amount > available:
            raise InsufficientBalance(
                f"Facility holds {available} {asset}, cannot lend {amount}"
            )

        premium = self.premium_for(amount)
        logger.info("Issuing loan: %d %s to %s (premium %d)", amount, asset, receiver.address, premium)

        self.ledger.transfer(asset, self.address, receiver.address, amount)
        ok = receiver.on_loan_callback(
            self.address,
            [asset],
            [amount],
            [premium],
            initiator,
            params,
        )
        if not ok:
            raise ExternalFailure("Loan receiver returned an invalid callback result")

        self.ledger.transfer_from(
            asset, self.address, receiver.address, self.address, amount + premium
        )
        logger.info("Loan repaid: %d %s", amount + premium, asset)
