"""
Token Ledger

In-process stand-in for the execution platform's token accounting.

Balances and allowances are plain integers in token base units. Every
mutation made inside ``transaction()`` is journaled; if the block raises,
the journal is replayed backwards so none of the intermediate effects
survive. Transactions nest: an inner failure only unwinds to its own
savepoint.
"""

import logging
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import InsufficientAllowance, InsufficientBalance, InvalidAmount

logger = logging.getLogger("flash_arb.ledger")

BalanceKey = Tuple[str, str]  # (token, holder)
AllowanceKey = Tuple[str, str, str]  # (token, owner, spender)


class TokenLedger:
    """
    Balances, allowances and journaled transactions.

    Transfers and approvals are atomic and immediately visible to every
    reader within the same unit of work.
    """

    def __init__(self):
        self._balances: Dict[BalanceKey, int] = {}
        self._allowances: Dict[AllowanceKey, int] = {}
        self._journal: List[Tuple[str, tuple, int]] = []
        self._depth = 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def balance_of(self, token: str, holder: str) -> int:
        return self._balances.get((token, holder), 0)

    def allowance(self, token: str, owner: str, spender: str) -> int:
        return self._allowances.get((token, owner, spender), 0)

    def holders(self, token: str) -> Dict[str, int]:
        """All non-zero balances of a token."""
        return {
            holder: amount
            for (tok, holder), amount in self._balances.items()
            if tok == token and amount > 0
        }

    def snapshot(self) -> Dict[str, Dict]:
        """Copy of every non-zero balance and allowance."""
        return {
            "balances": {k: v for k, v in self._balances.items() if v},
            "allowances": {k: v for k, v in self._allowances.items() if v},
        }

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def mint(self, token: str, holder: str, amount: int) -> None:
        """Create tokens out of thin air (seeding only)."""
        self._check_amount(amount)
        self._set_balance(token, holder, self.balance_of(token, holder) + amount)

    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None:
        self._check_amount(amount)
        available = self.balance_of(token, sender)
        if amount > available:
            raise InsufficientBalance(
                f"{sender} holds {available} {token}, cannot transfer {amount}"
            )
        if amount == 0 or sender == recipient:
            return
        self._set_balance(token, sender, available - amount)
        self._set_balance(token, recipient, self.balance_of(token, recipient) + amount)

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        self._check_amount(amount)
        self._set_allowance(token, owner, spender, amount)

    def transfer_from(
        self,
        token: str,
        spender: str,
        owner: str,
        recipient: str,
        amount: int,
    ) -> None:
        """Move ``amount`` of the owner's tokens using the spender's allowance."""
        allowed = self.allowance(token, owner, spender)
        if amount > allowed:
            raise InsufficientAllowance(
                f"{spender} may spend {allowed} {token} of {owner}, needs {amount}"
            )
        self.transfer(token, owner, recipient, amount)
        self._set_allowance(token, owner, spender, allowed - amount)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator["TokenLedger"]:
        """
        Run a block as one unit of work.

        On any exception every balance and allowance change made inside the
        block is reverted and the exception is re-raised unchanged.
        """
        savepoint = len(self._journal)
        self._depth += 1
        try:
            yield self
        except BaseException:
            reverted = self._rollback_to(savepoint)
            logger.warning("Ledger transaction rolled back (%d changes reverted)", reverted)
            raise
        finally:
            self._depth -= 1
            if self._depth == 0:
                self._journal.clear()

    def _rollback_to(self, savepoint: int) -> int:
        reverted = 0
        while len(self._journal) > savepoint:
            kind, key, previous = self._journal.pop()
            store = self._balances if kind == "balance" else self._allowances
            if previous:
                store[key] = previous
            else:
                store.pop(key, None)
            reverted += 1
        return reverted

    def _set_balance(self, token: str, holder: str, amount: int) -> None:
        key = (token, holder)
        self._record("balance", key, self._balances.get(key, 0))
        self._balances[key] = amount

    def _set_allowance(self, token: str, owner: str, spender: str, amount: int) -> None:
        key = (token, owner, spender)
        self._record("allowance", key, self._allowances.get(key, 0))
        self._allowances[key] = amount

    def _record(self, kind: str, key: tuple, previous: int) -> None:
        if self._depth > 0:
            self._journal.append((kind, key, previous))

    @staticmethod
    def _check_amount(amount: Optional[int]) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
            raise InvalidAmount(f"Amount must be a non-negative integer, got {amount!r}")
