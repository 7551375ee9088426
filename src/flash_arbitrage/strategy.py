"""
Arbitrage Strategy Model

A strategy is a variant tag plus a route of hops. Routes are validated
when the strategy is built, so a malformed route never reaches a venue.
"""

import json
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Sequence, Tuple

from .errors import InvalidRoute


class StrategyType(IntEnum):
    """Strategy variants (numbering matches the route params)."""

    SIMPLE_2_STEP = 0
    TRIANGULAR = 1
    MULTI_HOP = 2


MIN_MULTI_HOP = 2


def hop_count_matches(strategy_type: StrategyType, hop_count: int) -> bool:
    """Simple2Step needs exactly 2 hops, Triangular 3, MultiHop at least 2."""
    if strategy_type is StrategyType.SIMPLE_2_STEP:
        return hop_count == 2
    if strategy_type is StrategyType.TRIANGULAR:
        return hop_count == 3
    return hop_count >= MIN_MULTI_HOP


@dataclass(frozen=True)
class Hop:
    """One swap within a route."""

    venue: int
    token_in: str
    token_out: str
    fee: int = 0
    min_out: int = 0

    def to_dict(self) -> Dict:
        return {
            "venue": int(self.venue),
            "token_in": self.token_in,
            "token_out": self.token_out,
            "fee": self.fee,
            "min_out": self.min_out,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Hop":
        return cls(
            venue=int(data["venue"]),
            token_in=data["token_in"],
            token_out=data["token_out"],
            fee=int(data.get("fee", 0)),
            min_out=int(data.get("min_out", 0)),
        )


@dataclass(frozen=True)
class Strategy:
    """
    Variant tag plus its route.

    Construction checks the hop count against the variant, the chaining
    of hop tokens and that the route closes on its starting token.
    """

    strategy_type: StrategyType
    hops: Tuple[Hop, ...]

    def __post_init__(self):
        try:
            strategy_type = StrategyType(self.strategy_type)
        except ValueError:
            raise InvalidRoute(f"Unknown strategy type {self.strategy_type!r}") from None
        object.__setattr__(self, "strategy_type", strategy_type)
        object.__setattr__(self, "hops", tuple(self.hops))

        if not hop_count_matches(self.strategy_type, len(self.hops)):
            raise InvalidRoute(
                f"{self.strategy_type.name} cannot have {len(self.hops)} hops"
            )
        for i, (current, following) in enumerate(zip(self.hops, self.hops[1:])):
            if current.token_out != following.token_in:
                raise InvalidRoute(
                    f"Hop {i} outputs {current.token_out} but hop {i + 1} "
                    f"expects {following.token_in}"
                )
        if self.hops[0].token_in != self.hops[-1].token_out:
            raise InvalidRoute(
                f"Route starts with {self.hops[0].token_in} "
                f"but ends with {self.hops[-1].token_out}"
            )

    @property
    def start_token(self) -> str:
        return self.hops[0].token_in

    @property
    def tokens(self) -> List[str]:
        """Token path including the closing token."""
        return [hop.token_in for hop in self.hops] + [self.hops[-1].token_out]

    def validate_for(self, asset: str) -> None:
        """The route must start and end on the borrowed asset."""
        if self.start_token != asset:
            raise InvalidRoute(
                f"Route must start and end with {asset}, got {self.start_token}"
            )

    @classmethod
    def from_params(
        cls,
        strategy_type: int,
        tokens: Sequence[str],
        dex_sequence: Sequence[int],
        fee_sequence: Sequence[int],
        min_outs: Sequence[int],
    ) -> "Strategy":
        """
        Build a strategy from parallel parameter lists.

        ``tokens`` lists each hop's input token; the last hop returns to
        ``tokens[0]``. ``dex_sequence``, ``fee_sequence`` and ``min_outs``
        carry one entry per hop.
        """
        hop_count = len(tokens)
        if not (len(dex_sequence) == len(fee_sequence) == len(min_outs) == hop_count):
            raise InvalidRoute(
                "tokens, dex_sequence, fee_sequence and min_outs must have equal length"
            )
        if hop_count == 0:
            raise InvalidRoute("Route has no hops")

        hops = [
            Hop(
                venue=int(dex_sequence[i]),
                token_in=tokens[i],
                token_out=tokens[(i + 1) % hop_count],
                fee=int(fee_sequence[i]),
                min_out=int(min_outs[i]),
            )
            for i in range(hop_count)
        ]
        return cls(strategy_type, tuple(hops))

    def to_dict(self) -> Dict:
        return {
            "strategy_type": int(self.strategy_type),
            "hops": [hop.to_dict() for hop in self.hops],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Strategy":
        try:
            hops = tuple(Hop.from_dict(h) for h in data["hops"])
            strategy_type = int(data["strategy_type"])
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidRoute(f"Malformed strategy: {e}") from e
        return cls(strategy_type, hops)

    def encode(self) -> bytes:
        """Serialize for the opaque loan params."""
        return json.dumps(self.to_dict(), sort_keys=True).encode("utf-8")

    @classmethod
    def decode(cls, params: bytes) -> "Strategy":
        try:
            data = json.loads(params.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise InvalidRoute(f"Undecodable strategy params: {e}") from e
        return cls.from_dict(data)
