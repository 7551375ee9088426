"""
Liquidity Venues

Simulated swap venues with their own call conventions and pricing:

- Concentrated liquidity with fee tiers (Uniswap V3 style):
  ``exact_input_single(SingleSwapParams)``
- Pair-path constant product (Uniswap V2 / SushiSwap style):
  ``swap_exact_tokens_for_tokens(amount_in, min_out, path, recipient, deadline)``

Pool reserves live in the token ledger under a per-pool address, so a
rolled-back ledger transaction also restores every pool.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Callable, Dict, List, Optional, Tuple

from .errors import DeadlineExpired, InvalidAmount, PoolNotFound, SlippageExceeded
from .ledger import TokenLedger

logger = logging.getLogger("flash_arb.venues")

FEE_DENOMINATOR = 1_000_000
FEE_TIERS = (100, 500, 3000, 10000)


class VenueId(IntEnum):
    """Closed set of supported venues (numbering matches the route params)."""

    UNISWAP_V3 = 0
    UNISWAP_V2 = 1
    SUSHISWAP = 2


class QuotingConvention(Enum):
    FEE_TIER = "fee_tier"
    PAIR_PATH = "pair_path"


@dataclass(frozen=True)
class VenueDescriptor:
    """Static description of a venue."""

    venue_id: VenueId
    name: str
    convention: QuotingConvention
    fee_domain: Tuple[int, ...]

    def accepts_fee(self, fee: int) -> bool:
        return fee in self.fee_domain


VENUE_DESCRIPTORS: Dict[VenueId, VenueDescriptor] = {
    VenueId.UNISWAP_V3: VenueDescriptor(
        venue_id=VenueId.UNISWAP_V3,
        name="Uniswap V3",
        convention=QuotingConvention.FEE_TIER,
        fee_domain=FEE_TIERS,
    ),
    VenueId.UNISWAP_V2: VenueDescriptor(
        venue_id=VenueId.UNISWAP_V2,
        name="Uniswap V2",
        convention=QuotingConvention.PAIR_PATH,
        fee_domain=(0,),
    ),
    VenueId.SUSHISWAP: VenueDescriptor(
        venue_id=VenueId.SUSHISWAP,
        name="SushiSwap",
        convention=QuotingConvention.PAIR_PATH,
        fee_domain=(0,),
    ),
}


@dataclass(frozen=True)
class SingleSwapParams:
    """Arguments of a single-pool exact-input swap."""

    token_in: str
    token_out: str
    fee: int
    recipient: str
    deadline: float
    amount_in: int
    amount_out_minimum: int


def constant_product_out(amount_in: int, reserve_in: int, reserve_out: int, fee_ppm: int) -> int:
    """x*y=k output for ``amount_in`` after a fee in parts per million."""
    if amount_in <= 0 or reserve_in <= 0 or reserve_out <= 0:
        return 0
    amount_in_with_fee = amount_in * (FEE_DENOMINATOR - fee_ppm)
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * FEE_DENOMINATOR + amount_in_with_fee
    return numerator // denominator


class Venue:
    """Common pool bookkeeping for the simulated venues."""

    def __init__(
        self,
        venue_id: VenueId,
        address: str,
        ledger: TokenLedger,
        clock: Callable[[], float] = time.time,
    ):
        self.descriptor = VENUE_DESCRIPTORS[venue_id]
        self.address = address
        self.ledger = ledger
        self._clock = clock

    @property
    def venue_id(self) -> VenueId:
        return self.descriptor.venue_id

    @property
    def name(self) -> str:
        return self.descriptor.name

    def pool_address(self, token_a: str, token_b: str, fee: int = 0) -> str:
        t0, t1 = sorted((token_a, token_b))
        suffix = f":{fee}" if self.descriptor.convention is QuotingConvention.FEE_TIER else ""
        return f"{self.address}:{t0}/{t1}{suffix}"

    def reserves(self, token_in: str, token_out: str, fee: int = 0) -> Tuple[int, int]:
        pool = self.pool_address(token_in, token_out, fee)
        return (
            self.ledger.balance_of(token_in, pool),
            self.ledger.balance_of(token_out, pool),
        )

    def seed_pool(
        self,
        token_a: str,
        amount_a: int,
        token_b: str,
        amount_b: int,
        fee: int = 0,
    ) -> str:
        """Mint initial liquidity into a pool and return its address."""
        pool = self.pool_address(token_a, token_b, fee)
        self.ledger.mint(token_a, pool, amount_a)
        self.ledger.mint(token_b, pool, amount_b)
        logger.debug(
            "%s pool seeded: %s (%d %s / %d %s)",
            self.name, pool, amount_a, token_a, amount_b, token_b,
        )
        return pool

    def _check_deadline(self, deadline: float) -> None:
        if self._clock() > deadline:
            raise DeadlineExpired(f"{self.name}: transaction too old")


class ConcentratedLiquidityVenue(Venue):
    """Fee-tier pools; one pool per (pair, fee tier)."""

    def quote_exact_input_single(
        self, token_in: str, token_out: str, fee: int, amount_in: int
    ) -> int:
        reserve_in, reserve_out = self._pool_reserves(token_in, token_out, fee)
        return constant_product_out(amount_in, reserve_in, reserve_out, fee)

    def exact_input_single(self, payer: str, params: SingleSwapParams) -> int:
        self._check_deadline(params.deadline)
        if params.amount_in <= 0:
            raise InvalidAmount(f"{self.name}: zero input")

        amount_out = self.quote_exact_input_single(
            params.token_in, params.token_out, params.fee, params.amount_in
        )
        if amount_out < params.amount_out_minimum:
            raise SlippageExceeded(
                f"{self.name}: too little received ({amount_out} < {params.amount_out_minimum})"
            )

        pool = self.pool_address(params.token_in, params.token_out, params.fee)
        # Pull input through the allowance granted to the venue, pay output from the pool
        self.ledger.transfer_from(params.token_in, self.address, payer, pool, params.amount_in)
        self.ledger.transfer(params.token_out, pool, params.recipient, amount_out)
        return amount_out

    def _pool_reserves(self, token_in: str, token_out: str, fee: int) -> Tuple[int, int]:
        if not self.descriptor.accepts_fee(fee):
            raise PoolNotFound(f"{self.name}: unsupported fee tier {fee}")
        reserve_in, reserve_out = self.reserves(token_in, token_out, fee)
        if reserve_in == 0 or reserve_out == 0:
            raise PoolNotFound(f"{self.name}: no {token_in}/{token_out} pool at fee {fee}")
        return reserve_in, reserve_out


class ConstantProductVenue(Venue):
    """Pair-path router over x*y=k pairs with a flat fee."""

    def __init__(
        self,
        venue_id: VenueId,
        address: str,
        ledger: TokenLedger,
        fee_ppm: int = 3000,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(venue_id, address, ledger, clock)
        self.fee_ppm = fee_ppm

    def get_amounts_out(self, amount_in: int, path: List[str]) -> List[int]:
        if len(path) < 2:
            raise PoolNotFound(f"{self.name}: invalid path {path}")
        amounts = [amount_in]
        for token_in, token_out in zip(path, path[1:]):
            reserve_in, reserve_out = self.reserves(token_in, token_out)
            if reserve_in == 0 or reserve_out == 0:
                raise PoolNotFound(f"{self.name}: no {token_in}/{token_out} pair")
            amounts.append(constant_product_out(amounts[-1], reserve_in, reserve_out, self.fee_ppm))
        return amounts

    def swap_exact_tokens_for_tokens(
        self,
        payer: str,
        amount_in: int,
        amount_out_min: int,
        path: List[str],
        recipient: str,
        deadline: float,
    ) -> List[int]:
        self._check_deadline(deadline)
        if amount_in <= 0:
            raise InvalidAmount(f"{self.name}: zero input")

        amounts = self.get_amounts_out(amount_in, path)
        if amounts[-1] < amount_out_min:
            raise SlippageExceeded(
                f"{self.name}: insufficient output amount ({amounts[-1]} < {amount_out_min})"
            )

        # Intermediate legs pay straight into the next pair; only the last pays the recipient
        first_pool = self.pool_address(path[0], path[1])
        self.ledger.transfer_from(path[0], self.address, payer, first_pool, amount_in)
        for i, (token_in, token_out) in enumerate(zip(path, path[1:])):
            pool = self.pool_address(token_in, token_out)
            is_last = i == len(path) - 2
            next_holder = recipient if is_last else self.pool_address(token_out, path[i + 2])
            self.ledger.transfer(token_out, pool, next_holder, amounts[i + 1])
        return amounts


def build_venue(
    venue_id: VenueId,
    address: str,
    ledger: TokenLedger,
    fee_ppm: int = 3000,
    clock: Optional[Callable[[], float]] = None,
) -> Venue:
    """Instantiate the adapter class matching a venue's quoting convention."""
    clock = clock or time.time
    convention = VENUE_DESCRIPTORS[venue_id].convention
    if convention is QuotingConvention.FEE_TIER:
        return ConcentratedLiquidityVenue(venue_id, address, ledger, clock=clock)
    return ConstantProductVenue(venue_id, address, ledger, fee_ppm=fee_ppm, clock=clock)
