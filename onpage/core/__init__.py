"""
Core Package - Configuration, errors, and the document surfaces

This package contains the settings singleton, the exception hierarchy and
the abstract Document / ScrollHost interfaces every engine works against.
"""

from .config import settings, Settings, ConfidenceTier
from .errors import OnPageError, InvalidAddressError, StorageError, DeliveryError

__all__ = [
    'settings',
    'Settings',
    'ConfidenceTier',
    'OnPageError',
    'InvalidAddressError',
    'StorageError',
    'DeliveryError',
]
