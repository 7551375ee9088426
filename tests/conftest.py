"""
Pytest configuration and shared fixtures.

Builds a full engine whose venues return scripted, exact outputs so
cycle results can be asserted to the base unit.
"""

import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Callable, Dict, List, Optional, Tuple

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.flash_arbitrage import (
    AccessGate,
    CreditFacility,
    LoanOrchestrator,
    SlippageExceeded,
    StrategyEngine,
    TokenLedger,
    Treasury,
    Venue,
    VenueId,
    VenueRouter,
)

E18 = 10 ** 18

OWNER = "owner"
OPERATOR = "operator"
OUTSIDER = "outsider"
VAULT = "flash-arbitrage"
FACILITY = "credit-facility"
TIP_RECIPIENT = "block-builder"

WETH = "WETH"
DAI = "DAI"
USDC = "USDC"


class ScriptedVenue(Venue):
    """
    Venue paying a fixed rate per token pair out of its own inventory.

    Rates are (numerator, denominator): ``out = amount_in * num // den``.
    ``on_swap`` runs before settlement, e.g. to attempt reentry.
    """

    def __init__(
        self,
        venue_id: VenueId,
        address: str,
        ledger: TokenLedger,
        rates: Optional[Dict[Tuple[str, str], Tuple[int, int]]] = None,
    ):
        super().__init__(venue_id, address, ledger, clock=lambda: 0.0)
        self.rates = dict(rates or {})
        self.calls: List[Tuple[str, str, int]] = []
        self.on_swap: Optional[Callable[[], None]] = None

    def set_rate(self, token_in: str, token_out: str, numerator: int, denominator: int) -> None:
        self.rates[(token_in, token_out)] = (numerator, denominator)

    def _out(self, token_in: str, token_out: str, amount_in: int) -> int:
        numerator, denominator = self.rates[(token_in, token_out)]
        return amount_in * numerator // denominator

    def quote_exact_input_single(self, token_in, token_out, fee, amount_in):
        return self._out(token_in, token_out, amount_in)

    def get_amounts_out(self, amount_in, path):
        return [amount_in, self._out(path[0], path[1], amount_in)]

    def _swap(self, payer, recipient, token_in, token_out, amount_in, min_out):
        self.calls.append((token_in, token_out, amount_in))
        if self.on_swap:
            self.on_swap()
        amount_out = self._out(token_in, token_out, amount_in)
        if amount_out < min_out:
            raise SlippageExceeded(f"{self.name}: too little received")
        self.ledger.transfer_from(token_in, self.address, payer, self.address, amount_in)
        self.ledger.transfer(token_out, self.address, recipient, amount_out)
        return amount_out

    def exact_input_single(self, payer, params):
        return self._swap(
            payer, params.recipient, params.token_in, params.token_out,
            params.amount_in, params.amount_out_minimum,
        )

    def swap_exact_tokens_for_tokens(self, payer, amount_in, amount_out_min, path, recipient, deadline):
        amount_out = self._swap(payer, recipient, path[0], path[1], amount_in, amount_out_min)
        return [amount_in, amount_out]


def build_system(ledger: Optional[TokenLedger] = None) -> SimpleNamespace:
    """Engine wired to scripted venues with deep inventories."""
    ledger = ledger or TokenLedger()
    venues = {
        venue_id: ScriptedVenue(venue_id, f"venue-{venue_id.name.lower()}", ledger)
        for venue_id in VenueId
    }
    for venue in venues.values():
        for token in (WETH, DAI, USDC):
            ledger.mint(token, venue.address, 1_000_000 * E18)

    router = VenueRouter(ledger, VAULT, venues, reference_asset=WETH, clock=lambda: 0.0)
    engine = StrategyEngine(router)
    gate = AccessGate(OWNER)
    gate.set_authorized_caller(OWNER, OPERATOR, True)
    facility = CreditFacility(ledger, FACILITY, premium_bps=9)
    ledger.mint(WETH, FACILITY, 10_000 * E18)
    treasury = Treasury(ledger, gate, router, tip_recipient=TIP_RECIPIENT)
    orchestrator = LoanOrchestrator(VAULT, ledger, gate, facility, engine, treasury)

    return SimpleNamespace(
        ledger=ledger,
        venues=venues,
        router=router,
        engine=engine,
        gate=gate,
        facility=facility,
        treasury=treasury,
        orchestrator=orchestrator,
    )


@pytest.fixture
def ledger():
    return TokenLedger()


@pytest.fixture
def system():
    return build_system()
