#!/usr/bin/env python3
"""
Run a flash loan arbitrage against the simulated venues.

Deploys the engine from a config file, executes one route and prints
the result, stats and gas estimate.

Usage:
    python scripts/run_simulation.py
    python scripts/run_simulation.py --amount 1 --tokens WETH DAI --dex 1 0 --fees 0 3000
    python scripts/run_simulation.py --strategy triangular --tokens WETH DAI USDC \
        --dex 1 2 0 --fees 0 0 500 --report logs/executions.csv
"""

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.flash_arbitrage import (
    ExecutionReport,
    FlashArbitrageError,
    Strategy,
    StrategyType,
    deploy,
    load_config,
    setup_logging,
)

STRATEGY_TYPES = {
    "simple": StrategyType.SIMPLE_2_STEP,
    "triangular": StrategyType.TRIANGULAR,
    "multi": StrategyType.MULTI_HOP,
}


def to_base_units(amount: float, decimals: int) -> int:
    return int(round(amount * 10 ** decimals))


def from_base_units(amount: int, decimals: int) -> float:
    return amount / 10 ** decimals


def main():
    parser = argparse.ArgumentParser(
        description="Execute a flash loan arbitrage route on simulated venues"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=str(PROJECT_ROOT / "config" / "config.yaml"),
        help="Path to configuration file",
    )
    parser.add_argument(
        "--strategy",
        choices=sorted(STRATEGY_TYPES),
        default="simple",
        help="Strategy variant",
    )
    parser.add_argument("--amount", type=float, default=1.0, help="Amount to borrow (whole tokens)")
    parser.add_argument("--decimals", type=int, default=18, help="Token decimals")
    parser.add_argument("--tokens", nargs="+", default=["WETH", "DAI"], help="Input token of each hop")
    parser.add_argument("--dex", nargs="+", type=int, default=[1, 0], help="Venue id of each hop")
    parser.add_argument("--fees", nargs="+", type=int, default=[0, 3000], help="Fee parameter of each hop")
    parser.add_argument("--min-outs", nargs="+", type=int, default=None, help="Minimum output of each hop")
    parser.add_argument("--report", type=str, default=None, help="Write execution report CSV here")

    args = parser.parse_args()

    load_dotenv(dotenv_path=PROJECT_ROOT / ".env")
    config = load_config(args.config)
    setup_logging(config)

    operator = os.getenv("FLASH_ARB_OPERATOR", config.owner)
    deployment = deploy(config)
    orchestrator = deployment.orchestrator
    if operator != config.owner:
        orchestrator.set_authorized_caller(config.owner, operator, True)

    min_outs = args.min_outs or [0] * len(args.tokens)
    strategy = Strategy.from_params(
        STRATEGY_TYPES[args.strategy],
        args.tokens,
        args.dex,
        args.fees,
        min_outs,
    )
    asset = args.tokens[0]
    amount = to_base_units(args.amount, args.decimals)

    print("\n" + "=" * 50)
    print("FLASH LOAN ARBITRAGE - SIMULATION")
    print("=" * 50)
    print(f"Route:        {' -> '.join(strategy.tokens)}")
    print(f"Borrow:       {args.amount} {asset}")
    print(f"Gas estimate: {orchestrator.estimate_gas(strategy):,}")

    try:
        record = orchestrator.execute_arbitrage(operator, asset, amount, strategy)
    except FlashArbitrageError as e:
        print(f"\nArbitrage failed: {type(e).__name__}: {e}")
        sys.exit(1)

    count, total_profit, paused = orchestrator.get_stats()
    print(f"\nReturned:     {from_base_units(record.final_amount, args.decimals):.6f} {asset}")
    print(f"Premium:      {from_base_units(record.premium, args.decimals):.6f} {asset}")
    print(f"Profit:       {from_base_units(record.profit, args.decimals):.6f} {asset}")
    print(f"\nExecutions:   {count}")
    print(f"Total profit: {from_base_units(total_profit, args.decimals):.6f} {asset}")
    print(f"Paused:       {paused}")
    print("=" * 50 + "\n")

    if args.report:
        ExecutionReport(orchestrator.get_execution_history(limit=100)).to_csv(args.report)


if __name__ == "__main__":
    main()
