"""
Configuration for the flash arbitrage engine.

YAML file merged over built-in defaults, plus logging setup for the
``flash_arb`` logger namespace.
"""

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .strategy import StrategyType
from .venues import VenueId

logger = logging.getLogger("flash_arb.config")

DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
CONSOLE_HANDLER_NAME = "flash_arb.console"

DEFAULT_CONFIG: Dict[str, Any] = {
    "reference_asset": "WETH",
    "deadline_seconds": 300,
    "orchestrator": {
        "address": "flash-arbitrage",
        "owner": "deployer",
    },
    "credit_facility": {
        "address": "0xB53C1a33016B2DC2fF3653530bfF1848a515c8c5",
        "premium_bps": 9,
    },
    "venues": {
        "UNISWAP_V3": {"address": "0xE592427A0AEce92De3Edee1F18E0157C05861564"},
        "UNISWAP_V2": {"address": "0x7a250d5630B4cF539739dF2C5dAcb4c659F2488D", "fee_ppm": 3000},
        "SUSHISWAP": {"address": "0xd9e1cE17f2641f24aE83637ab66a2cca9C378B9F", "fee_ppm": 3000},
    },
    "treasury": {
        "tip_recipient": "block-builder",
        "conversion_venue": "UNISWAP_V3",
        "conversion_fee": 3000,
        "max_conversion_slippage_bps": 100,
    },
    "gas_estimates": {
        "SIMPLE_2_STEP": 300000,
        "TRIANGULAR": 450000,
        "MULTI_HOP": 600000,
    },
    "simulation": {
        "facility_liquidity": {},
        "vault_balances": {},
        "pools": [],
    },
    "logging": {
        "level": "INFO",
        "format": DEFAULT_LOG_FORMAT,
        "date_format": DEFAULT_DATE_FORMAT,
    },
}


@dataclass
class VenueConfig:
    venue_id: VenueId
    address: str
    fee_ppm: int = 3000


@dataclass
class PoolConfig:
    """Initial liquidity of one simulated pool."""
    venue_id: VenueId
    token_a: str
    amount_a: int
    token_b: str
    amount_b: int
    fee: int = 0


@dataclass
class FlashArbConfig:
    """Resolved engine configuration."""

    reference_asset: str = "WETH"
    deadline_seconds: int = 300
    orchestrator_address: str = "flash-arbitrage"
    owner: str = "deployer"
    facility_address: str = DEFAULT_CONFIG["credit_facility"]["address"]
    premium_bps: int = 9
    venues: List[VenueConfig] = field(default_factory=list)
    tip_recipient: str = "block-builder"
    conversion_venue: VenueId = VenueId.UNISWAP_V3
    conversion_fee: int = 3000
    max_conversion_slippage_bps: int = 100
    gas_estimates: Dict[StrategyType, int] = field(default_factory=dict)
    facility_liquidity: Dict[str, int] = field(default_factory=dict)
    vault_balances: Dict[str, int] = field(default_factory=dict)
    pools: List[PoolConfig] = field(default_factory=list)
    log_level: str = "INFO"
    log_format: str = DEFAULT_LOG_FORMAT
    log_date_format: str = DEFAULT_DATE_FORMAT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlashArbConfig":
        """Build from a (possibly partial) config dictionary."""
        raw = _deep_merge(DEFAULT_CONFIG, data or {})
        orchestrator = raw["orchestrator"]
        facility = raw["credit_facility"]
        treasury = raw["treasury"]
        simulation = raw["simulation"]

        venues = [
            VenueConfig(
                venue_id=_venue_id(name),
                address=str(settings["address"]),
                fee_ppm=int(settings.get("fee_ppm", 3000)),
            )
            for name, settings in raw["venues"].items()
            if settings
        ]
        pools = [
            PoolConfig(
                venue_id=_venue_id(pool["venue"]),
                token_a=pool["token_a"],
                amount_a=int(pool["amount_a"]),
                token_b=pool["token_b"],
                amount_b=int(pool["amount_b"]),
                fee=int(pool.get("fee", 0)),
            )
            for pool in simulation.get("pools") or []
        ]

        return cls(
            reference_asset=raw["reference_asset"],
            deadline_seconds=int(raw["deadline_seconds"]),
            orchestrator_address=orchestrator["address"],
            owner=orchestrator["owner"],
            facility_address=facility["address"],
            premium_bps=int(facility["premium_bps"]),
            venues=venues,
            tip_recipient=treasury["tip_recipient"],
            conversion_venue=_venue_id(treasury["conversion_venue"]),
            conversion_fee=int(treasury["conversion_fee"]),
            max_conversion_slippage_bps=int(treasury["max_conversion_slippage_bps"]),
            gas_estimates={
                StrategyType[name]: int(gas) for name, gas in raw["gas_estimates"].items()
            },
            facility_liquidity={k: int(v) for k, v in (simulation.get("facility_liquidity") or {}).items()},
            vault_balances={k: int(v) for k, v in (simulation.get("vault_balances") or {}).items()},
            pools=pools,
            log_level=str(raw["logging"].get("level", "INFO")),
            log_format=raw["logging"].get("format", DEFAULT_LOG_FORMAT),
            log_date_format=raw["logging"].get("date_format", DEFAULT_DATE_FORMAT),
        )


def load_config(config_path: Optional[Union[str, Path]] = None) -> FlashArbConfig:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to config file. None returns the defaults.

    Returns:
        Resolved FlashArbConfig.

    Raises:
        FileNotFoundError: If config file does not exist.
        yaml.YAMLError: If config file is malformed.
    """
    if config_path is None:
        logger.debug("No config file given, using defaults")
        return FlashArbConfig.from_dict({})

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    logger.debug("Configuration loaded from %s", config_path)
    return FlashArbConfig.from_dict(data)


def setup_logging(config: Optional[FlashArbConfig] = None) -> logging.Logger:
    """
    Attach a console handler to the ``flash_arb`` logger namespace.

    Level, format and date format come from the config's ``log_*`` fields.
    An unknown level name falls back to INFO. Calling this again replaces
    the console handler it installed earlier; other handlers are kept.

    Returns:
        The ``flash_arb`` logger.
    """
    config = config or FlashArbConfig()
    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler()
    handler.set_name(CONSOLE_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(config.log_format, datefmt=config.log_date_format))

    namespace = logging.getLogger("flash_arb")
    for existing in list(namespace.handlers):
        if existing.get_name() == CONSOLE_HANDLER_NAME:
            namespace.removeHandler(existing)
    namespace.addHandler(handler)
    namespace.setLevel(level)
    return namespace


def _venue_id(value: Union[str, int, VenueId]) -> VenueId:
    if isinstance(value, str):
        try:
            return VenueId[value.upper()]
        except KeyError:
            raise ValueError(f"Unknown venue: {value}") from None
    return VenueId(value)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged
