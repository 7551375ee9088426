"""
Execution Reporting

Tabular view of committed arbitrage cycles for operators.
"""

import logging
from pathlib import Path
from typing import Dict, List, Union

import numpy as np
import pandas as pd

from .orchestrator import ExecutionRecord

logger = logging.getLogger("flash_arb.reporting")

COLUMNS = [
    "timestamp",
    "strategy_type",
    "hop_count",
    "asset",
    "amount",
    "premium",
    "final_amount",
    "profit",
    "caller",
]


class ExecutionReport:
    """Summaries over a list of execution records."""

    def __init__(self, records: List[ExecutionRecord]):
        self.records = list(records)

    def to_dataframe(self) -> pd.DataFrame:
        if not self.records:
            return pd.DataFrame(columns=COLUMNS)
        df = pd.DataFrame([r.to_dict() for r in self.records], columns=COLUMNS)
        df["timestamp"] = pd.to_datetime(df["timestamp"])
        return df

    def summary(self) -> Dict:
        """Counts and profit aggregates, overall and per strategy type."""
        if not self.records:
            return {
                "executions": 0,
                "total_profit": 0,
                "avg_profit": 0.0,
                "max_profit": 0,
                "total_premium": 0,
                "by_strategy": {},
            }

        profits = np.array([r.profit for r in self.records], dtype=object)
        df = self.to_dataframe()
        by_strategy = {
            name: {"executions": int(len(group)), "total_profit": int(sum(group["profit"]))}
            for name, group in df.groupby("strategy_type")
        }

        return {
            "executions": len(self.records),
            "total_profit": int(np.sum(profits)),
            "avg_profit": float(np.mean(profits.astype(float))),
            "max_profit": int(np.max(profits)),
            "total_premium": int(sum(r.premium for r in self.records)),
            "by_strategy": by_strategy,
        }

    def to_csv(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.to_dataframe().to_csv(path, index=False)
        logger.info("Execution report saved: %s (%d rows)", path, len(self.records))
        return path
