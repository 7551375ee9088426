"""
Strategy Engine

Validates a strategy against the borrowed asset and walks its hops in
order, feeding each hop's output into the next hop's input. The round
trip must end strictly above the principal.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import InvalidRoute, NotProfitable
from .strategy import Strategy, hop_count_matches
from .venue_router import VenueRouter

logger = logging.getLogger("flash_arb.strategy_engine")


@dataclass
class HopResult:
    """Realized amounts of one executed hop."""
    venue: int
    token_in: str
    token_out: str
    amount_in: int
    amount_out: int


@dataclass
class RouteExecution:
    """Outcome of a full route."""
    amount_in: int
    final_amount: int
    hops: List[HopResult] = field(default_factory=list)

    @property
    def gross_profit(self) -> int:
        return self.final_amount - self.amount_in


class StrategyEngine:
    """
    Executes arbitrage routes through a VenueRouter.

    Deterministic given deterministic venue responses: no randomness,
    no retries, no reordering of hops.
    """

    def __init__(self, router: VenueRouter):
        self.router = router
        self.last_execution: Optional[RouteExecution] = None

    def validate(self, strategy: Strategy, asset: str) -> None:
        """Reject a strategy before any external call is made."""
        if not hop_count_matches(strategy.strategy_type, len(strategy.hops)):
            raise InvalidRoute(
                f"{strategy.strategy_type.name} cannot have {len(strategy.hops)} hops"
            )
        strategy.validate_for(asset)

    def execute(self, strategy: Strategy, asset: str, amount_in: int) -> int:
        """
        Run every hop of the strategy starting from ``amount_in`` of ``asset``.

        Args:
            strategy: Validated strategy to execute
            asset: Borrowed asset the route must start and end with
            amount_in: Principal fed into the first hop

        Returns:
            Amount of ``asset`` held after the final hop

        Raises:
            InvalidRoute: Strategy does not fit the asset or its variant
            NotProfitable: Final amount not strictly above ``amount_in``
        """
        self.last_execution = None
        self.validate(strategy, asset)

        execution = RouteExecution(amount_in=amount_in, final_amount=0)
        running = amount_in
        for i, hop in enumerate(strategy.hops):
            amount_out = self.router.swap(
                hop.venue,
                hop.token_in,
                hop.token_out,
                running,
                hop.min_out,
                hop.fee,
            )
            execution.hops.append(
                HopResult(hop.venue, hop.token_in, hop.token_out, running, amount_out)
            )
            logger.debug(
                "Hop %d/%d: %d %s -> %d %s",
                i + 1, len(strategy.hops), running, hop.token_in, amount_out, hop.token_out,
            )
            running = amount_out

        execution.final_amount = running

        if running <= amount_in:
            logger.info(
                "%s route not profitable: %d in, %d out",
                strategy.strategy_type.name, amount_in, running,
            )
            raise NotProfitable(
                f"Arbitrage not profitable: {running} returned for {amount_in}"
            )

        self.last_execution = execution
        logger.info(
            "%s route executed: %d -> %d %s (+%d)",
            strategy.strategy_type.name, amount_in, running, asset, running - amount_in,
        )
        return running
