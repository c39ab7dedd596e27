"""
Error types raised inside the engine.

Resolution failures are returned as values (see models.resolution); these
exceptions only cross internal seams and are caught at tool boundaries.
"""

from typing import Optional


class OnPageError(Exception):
    """Base class for all engine errors."""


class InvalidAddressError(OnPageError):
    """The address could not be parsed as a selector."""

    def __init__(self, address: str, reason: str = ""):
        self.address = address
        self.reason = reason
        super().__init__(f"Invalid selector '{address}': {reason}" if reason else f"Invalid selector '{address}'")


class StorageError(OnPageError):
    """A persistence read or write failed."""


class DeliveryError(OnPageError):
    """An outbound send was rejected or could not reach the server."""

    def __init__(self, message: str, error_code: str = "NETWORK_ERROR", body: Optional[str] = None):
        self.error_code = error_code
        self.body = body
        super().__init__(message)
