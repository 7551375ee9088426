"""
Flash Loan Arbitrage Module

Borrows from a credit facility, runs an ordered route of swaps across
liquidity venues, repays the loan plus premium and records the profit,
all as one unit of work:

1. Operator calls execute_arbitrage (owner or authorized caller, not paused)
2. Credit facility lends the asset and calls back once
3. Strategy engine swaps hop by hop through the venue router
4. Orchestrator checks repayment and approves it
5. Treasury records the committed result

Any failure rolls the whole cycle back.
"""

from .errors import (
    FlashArbitrageError,
    AuthorizationError,
    NotAuthorized,
    InvalidCallback,
    InvalidInitiator,
    StateError,
    Paused,
    NotPaused,
    ReentrancyDetected,
    RouteError,
    InvalidRoute,
    UnsupportedVenue,
    PoolNotFound,
    DeadlineExpired,
    SlippageExceeded,
    NotProfitable,
    InsufficientRepayment,
    ParameterError,
    InvalidTipPercentage,
    InsufficientBalance,
    InsufficientAllowance,
    InvalidAmount,
    ExternalFailure,
)
from .ledger import TokenLedger
from .venues import (
    VenueId,
    QuotingConvention,
    VenueDescriptor,
    VENUE_DESCRIPTORS,
    Venue,
    ConcentratedLiquidityVenue,
    ConstantProductVenue,
    SingleSwapParams,
    build_venue,
)
from .venue_router import VenueRouter
from .strategy import Hop, Strategy, StrategyType
from .strategy_engine import StrategyEngine, RouteExecution, HopResult
from .access_gate import AccessGate, PauseState
from .credit_facility import CreditFacility
from .treasury import Treasury, Stats, WithdrawalResult
from .orchestrator import (
    LoanOrchestrator,
    CycleState,
    ExecutionContext,
    ExecutionRecord,
    ExecutionMetrics,
)
from .config import FlashArbConfig, load_config, setup_logging
from .deployment import Deployment, deploy
from .reporting import ExecutionReport

__all__ = [
    # Errors
    "FlashArbitrageError",
    "AuthorizationError",
    "NotAuthorized",
    "InvalidCallback",
    "InvalidInitiator",
    "StateError",
    "Paused",
    "NotPaused",
    "ReentrancyDetected",
    "RouteError",
    "InvalidRoute",
    "UnsupportedVenue",
    "PoolNotFound",
    "DeadlineExpired",
    "SlippageExceeded",
    "NotProfitable",
    "InsufficientRepayment",
    "ParameterError",
    "InvalidTipPercentage",
    "InsufficientBalance",
    "InsufficientAllowance",
    "InvalidAmount",
    "ExternalFailure",
    # Ledger
    "TokenLedger",
    # Venues
    "VenueId",
    "QuotingConvention",
    "VenueDescriptor",
    "VENUE_DESCRIPTORS",
    "Venue",
    "ConcentratedLiquidityVenue",
    "ConstantProductVenue",
    "SingleSwapParams",
    "build_venue",
    "VenueRouter",
    # Strategy
    "Hop",
    "Strategy",
    "StrategyType",
    "StrategyEngine",
    "RouteExecution",
    "HopResult",
    # Access
    "AccessGate",
    "PauseState",
    # Loan cycle
    "CreditFacility",
    "LoanOrchestrator",
    "CycleState",
    "ExecutionContext",
    "ExecutionRecord",
    "ExecutionMetrics",
    # Treasury
    "Treasury",
    "Stats",
    "WithdrawalResult",
    # Config / deployment
    "FlashArbConfig",
    "load_config",
    "setup_logging",
    "Deployment",
    "deploy",
    "ExecutionReport",
]
