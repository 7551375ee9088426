"""
Access Gate

Owner, authorized callers and the pause switch. Every privileged
operation in the engine asks the gate before touching state.
"""

import logging
from enum import Enum
from typing import Set

from .errors import NotAuthorized, NotPaused, Paused

logger = logging.getLogger("flash_arb.access")


class PauseState(Enum):
    ACTIVE = "active"
    PAUSED = "paused"


class AccessGate:
    """
    Two-tier authorization plus a pause state machine.

    - owner: single identity, transferable, runs every admin operation
    - authorized callers: may start arbitrage cycles
    - pause: only gates arbitrage; admin operations work in both states
    """

    def __init__(self, owner: str):
        self._owner = owner
        self._authorized: Set[str] = {owner}
        self._pause_state = PauseState.ACTIVE

        logger.info("AccessGate initialized: owner=%s", owner)

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def authorized_callers(self) -> Set[str]:
        return set(self._authorized)

    @property
    def pause_state(self) -> PauseState:
        return self._pause_state

    @property
    def paused(self) -> bool:
        return self._pause_state is PauseState.PAUSED

    def is_authorized(self, address: str) -> bool:
        return address == self._owner or address in self._authorized

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def require_owner(self, caller: str) -> None:
        if caller != self._owner:
            raise NotAuthorized(f"{caller} is not the owner")

    def require_can_execute(self, caller: str) -> None:
        """Authorization is checked before pause, so outsiders always see NotAuthorized."""
        if not self.is_authorized(caller):
            raise NotAuthorized(f"Not authorized: {caller}")
        if self.paused:
            raise Paused("Pausable: paused")

    # ------------------------------------------------------------------
    # Owner operations
    # ------------------------------------------------------------------

    def set_authorized_caller(self, caller: str, address: str, allowed: bool) -> None:
        self.require_owner(caller)
        if allowed:
            self._authorized.add(address)
        else:
            self._authorized.discard(address)
        logger.info("Authorized caller %s: %s", "added" if allowed else "removed", address)

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self.require_owner(caller)
        if not new_owner:
            raise NotAuthorized("New owner cannot be empty")
        previous = self._owner
        self._owner = new_owner
        logger.warning("Ownership transferred: %s -> %s", previous, new_owner)

    def pause(self, caller: str) -> None:
        self.require_owner(caller)
        if self.paused:
            raise Paused("Pausable: paused")
        self._pause_state = PauseState.PAUSED
        logger.warning("Arbitrage PAUSED by %s", caller)

    def unpause(self, caller: str) -> None:
        self.require_owner(caller)
        if not self.paused:
            raise NotPaused("Pausable: not paused")
        self._pause_state = PauseState.ACTIVE
        logger.info("Arbitrage resumed by %s", caller)
