"""Exception types for the shadeswap core.

Recoverable failures derive from ``ShadeswapError`` so callers can catch the
whole family. ``ReserveInvariantError`` is an ``AssertionError``:
it signals corrupted pool state and is never caught inside the core.
"""

from __future__ import annotations


class ShadeswapError(Exception):
    """Base class for all recoverable shadeswap errors."""


class MathOverflow(ShadeswapError):
    """Arithmetic left the checked 128-bit domain (or divided by zero)."""


class InputTooSmall(ShadeswapError):
    """Nothing is left to trade once the input transfer fee is deducted."""


class OutputZero(ShadeswapError):
    """The trader would receive zero after the output transfer fee."""


class TradeTooLarge(ShadeswapError):
    """The pool ratio would drift past the configured tolerance."""


class InsufficientReserve(ShadeswapError):
    """The amount to lock is not strictly below the available source reserve."""


class AmmHalted(ShadeswapError):
    """The AMM config is halted; mutating operations are rejected."""


class OrderError(ShadeswapError):
    """Base class for finalize-path rejections."""


class OrderExpired(OrderError):
    """Settle or cancel was attempted after the order deadline."""


class OrderNotExpired(OrderError):
    """Slash was attempted before the order deadline."""


class WrongFinalizePath(OrderError):
    """The requested path contradicts the threshold/output relation."""

    def __init__(self, requested: str, expected: str) -> None:
        self.requested = requested
        self.expected = expected
        super().__init__(f"cannot {requested} this order; expected path is {expected}")


class ProofGenerationFailure(ShadeswapError):
    """Witness generation or proving failed; no proof is emitted."""


class SerializationFailure(ShadeswapError):
    """A value could not be encoded into its fixed-width wire form."""


class ArtifactError(ProofGenerationFailure):
    """A circuit artifact is missing, unreadable or malformed."""


class ReserveInvariantError(AssertionError):
    """A pool snapshot has negative available reserves."""

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__(f"reserve invariant violations: {', '.join(violations)}")
