"""
DSWAP Exceptions

Every rejection raised by the engines is one of these classes, so callers can
tell the reasons apart. A raised exception always means the whole operation
was reverted.
"""


class DswapException(Exception):
    """Base exception for DSWAP."""
    pass


class InvalidInputError(DswapException):
    """Zero or negative amount, or otherwise malformed parameters."""
    pass


class InsufficientFundsError(DswapException):
    """Caller balance, reserve or reward pool below the required amount."""
    pass


class SlippageExceededError(DswapException):
    """Computed output is below the caller's minimum."""

    def __init__(self, actual: int, minimum: int):
        super().__init__(f"Slippage exceeded: got {actual}, minimum {minimum}")
        self.actual = actual
        self.minimum = minimum


class GuardViolationError(DswapException):
    """A protocol guard rejected the call."""
    pass


class ReentrancyError(GuardViolationError):
    """Engine re-entered while a mutating call was in progress."""
    pass


class CooldownError(GuardViolationError):
    """Cooldown period has not passed."""
    pass


class ReserveFloorError(GuardViolationError):
    """Sell would take the native reserve to or below its floor."""
    pass


class TransferFailureError(DswapException):
    """A value transfer to a party failed."""
    pass


class ConfigurationError(DswapException):
    """Configuration error."""
    pass
