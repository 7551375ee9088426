"""
Venue Router

One swap call over the closed set of venues. Each venue keeps its own
call convention; the router matches on the venue id, grants the venue an
allowance for the input, calls it once and checks the realized output.
"""

import logging
import time
from typing import Callable, Dict

from .errors import SlippageExceeded, UnsupportedVenue
from .ledger import TokenLedger
from .venues import SingleSwapParams, Venue, VenueId

logger = logging.getLogger("flash_arb.router")


class VenueRouter:
    """
    Swap the funds of ``account`` across the configured venues.

    Single synchronous attempt per swap, no retry. The deadline attached
    to every venue call is a safety bound only.
    """

    def __init__(
        self,
        ledger: TokenLedger,
        account: str,
        venues: Dict[VenueId, Venue],
        reference_asset: str,
        deadline_seconds: int = 300,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the router.

        Args:
            ledger: Token ledger holding the account's balances
            account: Address whose tokens are swapped and who receives output
            venues: Adapter per venue id
            reference_asset: Asset profits and tips are denominated in
            deadline_seconds: Expiry offset attached to each venue call
            clock: Time source for deadlines
        """
        self.ledger = ledger
        self.account = account
        self.reference_asset = reference_asset
        self.deadline_seconds = deadline_seconds
        self._venues = dict(venues)
        self._clock = clock

        logger.info(
            "VenueRouter initialized: account=%s, venues=%s",
            account,
            ", ".join(v.name for v in VenueId if v in self._venues),
        )

    def venue(self, venue_id) -> Venue:
        """Resolve a venue id (int or VenueId) to its adapter."""
        try:
            resolved = VenueId(venue_id)
        except ValueError:
            raise UnsupportedVenue(f"Unknown venue id {venue_id!r}") from None
        if resolved not in self._venues:
            raise UnsupportedVenue(f"Venue {resolved.name} is not configured")
        return self._venues[resolved]

    def venue_address(self, venue_id) -> str:
        return self.venue(venue_id).address

    def quote(
        self,
        venue_id,
        token_in: str,
        token_out: str,
        amount_in: int,
        fee: int = 0,
    ) -> int:
        """Read-only output estimate for a single swap."""
        venue = self.venue(venue_id)
        venue_id = venue.venue_id
        if venue_id is VenueId.UNISWAP_V3:
            return venue.quote_exact_input_single(token_in, token_out, fee, amount_in)
        elif venue_id in (VenueId.UNISWAP_V2, VenueId.SUSHISWAP):
            return venue.get_amounts_out(amount_in, [token_in, token_out])[-1]
        raise UnsupportedVenue(f"No quoting convention for {venue_id!r}")

    def swap(
        self,
        venue_id,
        token_in: str,
        token_out: str,
        amount_in: int,
        min_out: int,
        fee: int = 0,
    ) -> int:
        """
        Swap ``amount_in`` of ``token_in`` for ``token_out`` on one venue.

        Returns:
            Realized output amount credited to the account

        Raises:
            UnsupportedVenue: Unknown or unconfigured venue id
            SlippageExceeded: Realized output below ``min_out``
        """
        venue = self.venue(venue_id)
        deadline = self._clock() + self.deadline_seconds
        balance_before = self.ledger.balance_of(token_out, self.account)

        self.ledger.approve(token_in, self.account, venue.address, amount_in)

        resolved = venue.venue_id
        if resolved is VenueId.UNISWAP_V3:
            venue.exact_input_single(
                self.account,
                SingleSwapParams(
                    token_in=token_in,
                    token_out=token_out,
                    fee=fee,
                    recipient=self.account,
                    deadline=deadline,
                    amount_in=amount_in,
                    amount_out_minimum=min_out,
                ),
            )
        elif resolved in (VenueId.UNISWAP_V2, VenueId.SUSHISWAP):
            venue.swap_exact_tokens_for_tokens(
                self.account,
                amount_in,
                min_out,
                [token_in, token_out],
                self.account,
                deadline,
            )
        else:
            raise UnsupportedVenue(f"No call convention for {resolved!r}")

        amount_out = self.ledger.balance_of(token_out, self.account) - balance_before
        if amount_out < min_out:
            raise SlippageExceeded(
                f"{venue.name}: received {amount_out} {token_out}, minimum {min_out}"
            )

        logger.debug(
            "Swap on %s: %d %s -> %d %s",
            venue.name, amount_in, token_in, amount_out, token_out,
        )
        return amount_out

    def configured_venues(self) -> Dict[VenueId, str]:
        return {venue_id: venue.address for venue_id, venue in self._venues.items()}

    def has_venue(self, venue_id) -> bool:
        try:
            self.venue(venue_id)
        except UnsupportedVenue:
            return False
        return True
