"""
Deployment

Wires a complete engine from configuration: venues, router, strategy
engine, access gate, credit facility, treasury and orchestrator, then
seeds the simulated pools and balances.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .access_gate import AccessGate
from .config import FlashArbConfig
from .credit_facility import CreditFacility
from .ledger import TokenLedger
from .orchestrator import LoanOrchestrator
from .strategy_engine import StrategyEngine
from .treasury import Treasury
from .venue_router import VenueRouter
from .venues import Venue, VenueId, build_venue

logger = logging.getLogger("flash_arb.deployment")


@dataclass
class Deployment:
    """Handles to every deployed component."""
    config: FlashArbConfig
    ledger: TokenLedger
    venues: Dict[VenueId, Venue]
    router: VenueRouter
    strategy_engine: StrategyEngine
    access_gate: AccessGate
    credit_facility: CreditFacility
    treasury: Treasury
    orchestrator: LoanOrchestrator

    def summary(self) -> Dict[str, str]:
        summary = {
            "orchestrator": self.orchestrator.address,
            "owner": self.access_gate.owner,
            "credit_facility": self.credit_facility.address,
        }
        for venue_id, venue in self.venues.items():
            summary[venue.name] = venue.address
        return summary


def deploy(
    config: FlashArbConfig,
    ledger: Optional[TokenLedger] = None,
    clock: Optional[Callable[[], float]] = None,
) -> Deployment:
    """Build and seed an engine from ``config``."""
    ledger = ledger or TokenLedger()

    logger.info("Deploying venues...")
    venues: Dict[VenueId, Venue] = {
        venue_cfg.venue_id: build_venue(
            venue_cfg.venue_id,
            venue_cfg.address,
            ledger,
            fee_ppm=venue_cfg.fee_ppm,
            clock=clock,
        )
        for venue_cfg in config.venues
    }

    router_kwargs = {"clock": clock} if clock else {}
    router = VenueRouter(
        ledger,
        config.orchestrator_address,
        venues,
        config.reference_asset,
        deadline_seconds=config.deadline_seconds,
        **router_kwargs,
    )

    logger.info("Deploying strategy engine...")
    strategy_engine = StrategyEngine(router)
    access_gate = AccessGate(config.owner)
    credit_facility = CreditFacility(ledger, config.facility_address, config.premium_bps)
    treasury = Treasury(
        ledger,
        access_gate,
        router,
        tip_recipient=config.tip_recipient,
        conversion_venue=config.conversion_venue,
        conversion_fee=config.conversion_fee,
        max_conversion_slippage_bps=config.max_conversion_slippage_bps,
        gas_estimates=config.gas_estimates,
    )

    logger.info("Deploying loan orchestrator...")
    orchestrator = LoanOrchestrator(
        config.orchestrator_address,
        ledger,
        access_gate,
        credit_facility,
        strategy_engine,
        treasury,
    )

    for pool in config.pools:
        if pool.venue_id not in venues:
            logger.warning("Skipping pool on unconfigured venue %s", pool.venue_id.name)
            continue
        venues[pool.venue_id].seed_pool(
            pool.token_a, pool.amount_a, pool.token_b, pool.amount_b, pool.fee
        )
    for token, amount in config.facility_liquidity.items():
        ledger.mint(token, credit_facility.address, amount)
    for token, amount in config.vault_balances.items():
        ledger.mint(token, orchestrator.address, amount)

    deployment = Deployment(
        config=config,
        ledger=ledger,
        venues=venues,
        router=router,
        strategy_engine=strategy_engine,
        access_gate=access_gate,
        credit_facility=credit_facility,
        treasury=treasury,
        orchestrator=orchestrator,
    )
    for name, address in deployment.summary().items():
        logger.info("%-16s %s", name, address)
    return deployment
