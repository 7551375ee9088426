"""
Error taxonomy for the flash arbitrage engine.

Every error is fatal to its unit of work. Nothing here is retried; the
ledger transaction that wraps the cycle is rolled back and the exception
propagates to the operator unchanged.
"""


class FlashArbitrageError(Exception):
    """Base class for all engine errors."""


# Authorization
class AuthorizationError(FlashArbitrageError):
    """Caller identity check failed."""


class NotAuthorized(AuthorizationError):
    pass


class InvalidCallback(AuthorizationError):
    """Loan callback did not come from the credit facility."""


class InvalidInitiator(AuthorizationError):
    """Loan was not initiated by the orchestrator itself."""


# State
class StateError(FlashArbitrageError):
    """Operation not allowed in the current state."""


class Paused(StateError):
    pass


class NotPaused(StateError):
    pass


class ReentrancyDetected(StateError):
    pass


# Routing
class RouteError(FlashArbitrageError):
    """Route could not be executed or did not pay off."""


class InvalidRoute(RouteError):
    """Hop count or token chaining does not match the strategy."""


class UnsupportedVenue(RouteError):
    pass


class PoolNotFound(RouteError):
    pass


class DeadlineExpired(RouteError):
    pass


class SlippageExceeded(RouteError):
    pass


class NotProfitable(RouteError):
    pass


class InsufficientRepayment(RouteError):
    pass


# Parameters
class ParameterError(FlashArbitrageError):
    """Invalid amount, percentage or balance."""


class InvalidTipPercentage(ParameterError):
    pass


class InsufficientBalance(ParameterError):
    pass


class InsufficientAllowance(ParameterError):
    pass


class InvalidAmount(ParameterError):
    pass


# Collaborators
class ExternalFailure(FlashArbitrageError):
    """A collaborator reported failure without raising its own error."""
