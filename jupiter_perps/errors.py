"""Custom exceptions for the perps client."""
from __future__ import annotations


class PerpsError(RuntimeError):
    """Base class for failures raised by this package."""

    pass


class PositionNotFoundError(PerpsError):
    """Raised when a position account does not exist on chain."""

    def __init__(self, address: str) -> None:
        super().__init__(f"position {address} not found")
        self.address = address


class EmptyPositionError(PerpsError):
    """Raised when a position exists but has zero notional size."""

    def __init__(self, address: str) -> None:
        super().__init__(f"position {address} is empty (sizeUsd == 0)")
        self.address = address


class AccountDecodeError(PerpsError):
    """Raised when account bytes do not match the expected layout."""

    pass


class PriceUnavailableError(PerpsError):
    """Raised when no reference price could be obtained for a mint."""

    def __init__(self, mint: str, message: str | None = None) -> None:
        super().__init__(f"no price for {mint}" + (f": {message}" if message else ""))
        self.mint = mint
